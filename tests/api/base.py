import os
import unittest
from datetime import timedelta
from uuid import UUID, uuid4

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure settings can be initialized in test environments
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("S3_ENDPOINT", "http://localhost:9000")
os.environ.setdefault("S3_ACCESS_KEY", "test")
os.environ.setdefault("S3_SECRET_KEY", "test")
os.environ.setdefault("S3_BUCKET", "test")

from app.core.config import settings
from app.core.security import create_access_token
from app.db.session import get_db
from app.main import app
from app.models.common import utcnow
from app.models.form import Form
from app.models.response import Response
from app.models.user import User
from app.services import rate_limit
from app.services.rate_limit import InMemoryRateLimiter

NAME_FIELD = {"id": "name", "type": "short_text", "label": "Name", "required": True}


class FakeSheets:
    def __init__(self):
        self.created = []
        self.shared = []
        self.headers = []
        self.rows = []
        self.deleted = []

    def create_spreadsheet(self, title, headers):
        self.created.append((title, list(headers)))
        return "sheet-new", "https://docs.google.com/spreadsheets/d/sheet-new/edit"

    def share(self, spreadsheet_id, email, role="writer"):
        self.shared.append((spreadsheet_id, email, role))

    def update_headers(self, spreadsheet_id, headers):
        self.headers.append((spreadsheet_id, list(headers)))

    def append_row(self, spreadsheet_id, row):
        self.rows.append((spreadsheet_id, list(row)))

    def append_rows(self, spreadsheet_id, rows):
        for row in rows:
            self.append_row(spreadsheet_id, row)

    def delete_spreadsheet(self, spreadsheet_id):
        self.deleted.append(spreadsheet_id)


class ApiTestBase(unittest.TestCase):
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

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        rate_limit._cached_limiter = InMemoryRateLimiter()
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()
        rate_limit._cached_limiter = None

    def _create_user(self, email: str, *, plan: str = "FREE", role: str = "USER", is_active: bool = True) -> UUID:
        with self.SessionLocal() as db:
            user = User(email=email, plan=plan, role=role, is_active=is_active)
            db.add(user)
            db.commit()
            return user.id

    def _create_form(self, owner_id: UUID, **overrides) -> UUID:
        values = {
            "title": "Signup",
            "published": True,
            "require_email": True,
            "fields": [NAME_FIELD],
        }
        values.update(overrides)
        with self.SessionLocal() as db:
            form = Form(owner_id=owner_id, **values)
            db.add(form)
            db.commit()
            return form.id

    def _add_responses(self, form_id: UUID, count: int, *, email: str | None = None) -> None:
        now = utcnow()
        with self.SessionLocal() as db:
            for i in range(count):
                db.add(Response(form_id=form_id, email=email, data={"name": f"r{i}"}, created_at=now))
            db.commit()

    def _response_count(self, form_id: UUID) -> tuple[int, int]:
        with self.SessionLocal() as db:
            counter = db.execute(select(Form.response_count).where(Form.id == form_id)).scalar_one_or_none()
            rows = db.execute(select(func.count(Response.id)).where(Response.form_id == form_id)).scalar_one()
        return counter, int(rows)

    @staticmethod
    def _auth_headers(user_id: UUID, email: str) -> dict[str, str]:
        token = create_access_token(str(user_id), email, timedelta(minutes=30))
        return {"Authorization": f"Bearer {token}"}

