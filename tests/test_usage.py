import os
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from sqlalchemy import create_engine, delete
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

from app.models.form import Form
from app.models.response import Response
from app.models.user import User
from app.services.usage import (
    UsageUnavailableError,
    month_start,
    next_month_start,
    monthly_response_count,
    owned_form_count,
    usage_summary,
)

AS_OF = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class UsageCounterTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        User.__table__.create(bind=cls.engine)
        Form.__table__.create(bind=cls.engine)
        Response.__table__.create(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        Response.__table__.drop(bind=cls.engine)
        Form.__table__.drop(bind=cls.engine)
        User.__table__.drop(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        with self.SessionLocal() as db:
            db.execute(delete(Response))
            db.execute(delete(Form))
            db.execute(delete(User))
            db.commit()

    def _seed(self, db):
        owner = User(email="owner@example.com", plan="FREE")
        other = User(email="other@example.com", plan="FREE")
        db.add_all([owner, other])
        db.flush()
        first = Form(owner_id=owner.id, title="First", published=True, fields=[])
        second = Form(owner_id=owner.id, title="Second", published=True, fields=[])
        foreign = Form(owner_id=other.id, title="Foreign", published=True, fields=[])
        db.add_all([first, second, foreign])
        db.flush()
        stamps = [
            (first, datetime(2026, 3, 1, 0, 0, tzinfo=timezone.utc)),
            (first, datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)),
            (second, datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)),
            (first, datetime(2026, 2, 28, 23, 59, tzinfo=timezone.utc)),
            (foreign, datetime(2026, 3, 5, 12, 0, tzinfo=timezone.utc)),
        ]
        for form, created_at in stamps:
            db.add(Response(form_id=form.id, email=None, data={}, created_at=created_at))
        db.commit()
        return owner, other

    def test_month_start(self):
        self.assertEqual(month_start(AS_OF), datetime(2026, 3, 1, tzinfo=timezone.utc))
        self.assertEqual(month_start(datetime(2026, 3, 31, 23, 59)), datetime(2026, 3, 1, tzinfo=timezone.utc))

    def test_next_month_start_rolls_over_year(self):
        self.assertEqual(next_month_start(AS_OF), datetime(2026, 4, 1, tzinfo=timezone.utc))
        self.assertEqual(next_month_start(datetime(2026, 12, 31, 23, 59)), datetime(2027, 1, 1, tzinfo=timezone.utc))

    def test_counts_current_month_across_owner_forms(self):
        with self.SessionLocal() as db:
            owner, other = self._seed(db)
            self.assertEqual(monthly_response_count(db, owner.id, AS_OF), 3)
            self.assertEqual(monthly_response_count(db, other.id, AS_OF), 1)
            self.assertEqual(monthly_response_count(db, owner.id, datetime(2026, 2, 28, tzinfo=timezone.utc)), 1)

    def test_store_failure_fails_closed(self):
        with self.SessionLocal() as db:
            owner, _ = self._seed(db)
            owner_id = owner.id
            with patch.object(db, "execute", side_effect=OperationalError("SELECT", {}, Exception("down"))):
                with self.assertRaises(UsageUnavailableError):
                    monthly_response_count(db, owner_id, AS_OF)

    def test_usage_summary(self):
        with self.SessionLocal() as db:
            owner, _ = self._seed(db)
            self.assertEqual(owned_form_count(db, owner.id), 2)
            summary = usage_summary(db, owner, AS_OF)
        self.assertEqual(summary["plan"], "FREE")
        self.assertEqual(summary["forms_count"], 2)
        self.assertEqual(summary["monthly_responses"], 3)
        self.assertEqual(summary["limits"]["max_forms"], 3)
        self.assertTrue(summary["can_create_form"])
        self.assertTrue(summary["can_accept_response"])
        self.assertEqual(summary["period_start"], "2026-03-01T00:00:00+00:00")
