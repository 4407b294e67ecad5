from datetime import timedelta

from tests.api.base import *  # noqa: F401,F403
from app.models.common import utcnow


class AdminApiTests(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.user_id = self._create_user("user@example.com")
        self.admin_id = self._create_user("admin@example.com", role="ADMIN")
        self.root_id = self._create_user("root@example.com", role="SUPER_ADMIN")

    def test_stats_require_admin(self):
        denied = self.client.get("/api/admin/stats", headers=self._auth_headers(self.user_id, "user@example.com"))
        self.assertEqual(denied.status_code, 403)

    def test_stats(self):
        busy_form = self._create_form(self.user_id)
        idle_form = self._create_form(self.admin_id)
        self._add_responses(busy_form, 3)
        with self.SessionLocal() as db:
            db.add(Response(form_id=idle_form, email=None, data={}, created_at=utcnow() - timedelta(days=45)))
            db.commit()

        stats = self.client.get("/api/admin/stats", headers=self._auth_headers(self.admin_id, "admin@example.com"))
        self.assertEqual(stats.status_code, 200)
        body = stats.json()
        self.assertEqual(body["total_users"], 3)
        self.assertEqual(body["total_forms"], 2)
        self.assertEqual(body["total_responses"], 4)
        self.assertEqual(body["active_users"], 1)
        self.assertEqual(body["forms_today"], 2)
        self.assertEqual(body["responses_today"], 3)

    def test_plan_change_needs_super_admin(self):
        denied = self.client.patch(
            f"/api/admin/users/{self.admin_id}/plan",
            headers=self._auth_headers(self.admin_id, "admin@example.com"),
            json={"plan": "BUSINESS"},
        )
        self.assertEqual(denied.status_code, 403)
        with self.SessionLocal() as db:
            self.assertEqual(db.get(User, self.admin_id).plan, "FREE")

    def test_super_admin_changes_plan(self):
        response = self.client.patch(
            f"/api/admin/users/{self.user_id}/plan",
            headers=self._auth_headers(self.root_id, "root@example.com"),
            json={"plan": "PREMIUM"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["plan"], "PREMIUM")
        with self.SessionLocal() as db:
            self.assertEqual(db.get(User, self.user_id).plan, "PREMIUM")

    def test_unknown_plan_is_rejected(self):
        response = self.client.patch(
            f"/api/admin/users/{self.user_id}/plan",
            headers=self._auth_headers(self.root_id, "root@example.com"),
            json={"plan": "GOLD"},
        )
        self.assertEqual(response.status_code, 422)

    def test_plan_change_for_missing_user(self):
        response = self.client.patch(
            f"/api/admin/users/{uuid4()}/plan",
            headers=self._auth_headers(self.root_id, "root@example.com"),
            json={"plan": "FREE"},
        )
        self.assertEqual(response.status_code, 404)

    def test_role_change_needs_super_admin(self):
        denied = self.client.patch(
            f"/api/admin/users/{self.user_id}/role",
            headers=self._auth_headers(self.admin_id, "admin@example.com"),
            json={"role": "ADMIN"},
        )
        self.assertEqual(denied.status_code, 403)

        granted = self.client.patch(
            f"/api/admin/users/{self.user_id}/role",
            headers=self._auth_headers(self.root_id, "root@example.com"),
            json={"role": "ADMIN"},
        )
        self.assertEqual(granted.status_code, 200)
        self.assertEqual(granted.json()["role"], "ADMIN")

    def test_super_admin_cannot_change_own_role(self):
        response = self.client.patch(
            f"/api/admin/users/{self.root_id}/role",
            headers=self._auth_headers(self.root_id, "root@example.com"),
            json={"role": "USER"},
        )
        self.assertEqual(response.status_code, 400)

    def test_user_list_carries_form_counts(self):
        self._create_form(self.user_id)
        self._create_form(self.user_id)
        self._create_form(self.root_id)

        denied = self.client.get("/api/admin/users", headers=self._auth_headers(self.user_id, "user@example.com"))
        self.assertEqual(denied.status_code, 403)

        listed = self.client.get("/api/admin/users", headers=self._auth_headers(self.admin_id, "admin@example.com"))
        self.assertEqual(listed.status_code, 200)
        body = listed.json()
        self.assertEqual(body["pagination"], {"page": 1, "limit": 10, "total": 3, "total_pages": 1})
        counts = {row["email"]: row["form_count"] for row in body["rows"]}
        self.assertEqual(counts, {"user@example.com": 2, "admin@example.com": 0, "root@example.com": 1})

        page = self.client.get("/api/admin/users?page=2&limit=2", headers=self._auth_headers(self.admin_id, "admin@example.com"))
        self.assertEqual(page.json()["pagination"]["total_pages"], 2)
        self.assertEqual(len(page.json()["rows"]), 1)

    def test_form_list_includes_owner(self):
        self._create_form(self.user_id, title="Signup", response_count=2)
        self._create_form(self.admin_id, title="Internal", published=False)

        listed = self.client.get("/api/admin/forms?limit=5", headers=self._auth_headers(self.admin_id, "admin@example.com"))
        self.assertEqual(listed.status_code, 200)
        body = listed.json()
        self.assertEqual(body["pagination"], {"page": 1, "limit": 5, "total": 2, "total_pages": 1})
        rows = {row["title"]: row for row in body["rows"]}
        self.assertEqual(rows["Signup"]["owner"]["email"], "user@example.com")
        self.assertEqual(rows["Signup"]["response_count"], 2)
        self.assertFalse(rows["Internal"]["published"])
        self.assertEqual(rows["Internal"]["owner"]["role"], "ADMIN")

        denied = self.client.get("/api/admin/forms", headers=self._auth_headers(self.user_id, "user@example.com"))
        self.assertEqual(denied.status_code, 403)
