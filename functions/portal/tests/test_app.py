import unittest
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from portal.app import create_app
from portal.config import Settings, StorageBackend
from portal.storage import InMemoryStorage


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, storage_backend=StorageBackend.MEMORY, **overrides)


class PortalApiTests(unittest.TestCase):
    def setUp(self):
        self.storage = InMemoryStorage()
        self.client = TestClient(create_app(make_settings(), storage=self.storage))

    def _create_user(self, username="owner", password="hunter22"):
        response = self.client.post(
            "/api/users", json={"username": username, "password": password}
        )
        self.assertEqual(response.status_code, 201)
        return response.json()

    def test_create_user_returns_safe_projection(self):
        payload = self._create_user()
        self.assertEqual(set(payload), {"id", "username"})
        self.assertEqual(payload["username"], "owner")

    def test_create_user_conflict(self):
        self._create_user()
        response = self.client.post(
            "/api/users", json={"username": "owner", "password": "other"}
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json(), {"error": "Username already exists"})

    def test_create_user_invalid_payload(self):
        for body in [{"username": "x"}, {"password": "y"}, {"username": "  ", "password": "y"}, []]:
            with self.subTest(body=body):
                response = self.client.post("/api/users", json=body)
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json(), {"error": "Invalid request data"})
        self.assertEqual(self.storage.users, {})

    def test_create_user_rejects_slash_in_username(self):
        for username in ["a/b", "/", "owner/"]:
            with self.subTest(username=username):
                response = self.client.post(
                    "/api/users", json={"username": username, "password": "pw"}
                )
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json(), {"error": "Invalid request data"})
        self.assertEqual(self.storage.users, {})

    def test_get_user_by_id_and_username(self):
        created = self._create_user()
        response = self.client.get(f"/api/users/{created['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), created)
        self.assertEqual(response.headers["content-type"], "application/json")

        response = self.client.get("/api/users/username/owner")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), created)

    def test_get_user_not_found(self):
        for path in ["/api/users/missing", "/api/users/username/missing"]:
            with self.subTest(path=path):
                response = self.client.get(path)
                self.assertEqual(response.status_code, 404)
                self.assertEqual(response.json(), {"error": "User not found"})

    def test_login_success(self):
        self._create_user()
        response = self.client.post(
            "/api/auth/login", json={"username": "owner", "password": "hunter22"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["success"])

    def test_login_accepts_email_field(self):
        self._create_user(username="owner@example.com")
        response = self.client.post(
            "/api/auth/login",
            json={"email": "owner@example.com", "password": "hunter22"},
        )
        self.assertEqual(response.status_code, 200)

    def test_login_identifier_is_stripped_like_registration(self):
        self._create_user(username=" owner ")
        for body in [
            {"username": " owner ", "password": "hunter22"},
            {"username": "owner", "password": "hunter22"},
            {"email": "owner\t", "password": "hunter22"},
        ]:
            with self.subTest(body=body):
                response = self.client.post("/api/auth/login", json=body)
                self.assertEqual(response.status_code, 200)

    def test_login_failures_look_identical(self):
        self._create_user()
        wrong_password = self.client.post(
            "/api/auth/login", json={"username": "owner", "password": "nope"}
        )
        unknown_user = self.client.post(
            "/api/auth/login", json={"username": "ghost", "password": "hunter22"}
        )
        self.assertEqual(wrong_password.status_code, 401)
        self.assertEqual(unknown_user.status_code, 401)
        self.assertEqual(wrong_password.json(), unknown_user.json())
        self.assertEqual(wrong_password.json(), {"error": "Invalid credentials"})

    def test_login_missing_fields_skip_storage(self):
        storage = MagicMock()
        client = TestClient(create_app(make_settings(), storage=storage))
        for body in [
            {"username": "owner"},
            {"password": "pw"},
            {"email": "", "password": "pw"},
            {"username": "   ", "password": "pw"},
        ]:
            with self.subTest(body=body):
                response = client.post("/api/auth/login", json=body)
                self.assertEqual(response.status_code, 400)
                self.assertIn("error", response.json())
        self.assertEqual(storage.mock_calls, [])

    def test_login_rejects_malformed_json(self):
        response = self.client.post(
            "/api/auth/login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Request body must be valid JSON"})

    def test_content_round_trip(self):
        self.assertEqual(self.client.get("/api/content").json(), {})

        response = self.client.put(
            "/api/content", json={"hero_title": "Old", "hero_subtitle": "Sub"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["success"], True)

        self.client.put("/api/content", json={"hero_title": "X"})
        response = self.client.get("/api/content")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"hero_title": "X", "hero_subtitle": "Sub"})

    def test_content_put_validation(self):
        for body in [["hero_title"], {"hero_title": 3}, {"hero_title": None}, "text"]:
            with self.subTest(body=body):
                response = self.client.put("/api/content", json=body)
                self.assertEqual(response.status_code, 400)
        self.assertEqual(self.storage.content, {})

    def test_content_defaults_to_demo_site(self):
        self.client.put("/api/content", json={"hero_title": "Demo"})
        self.assertEqual(self.storage.content, {"sitio_test_001": {"hero_title": "Demo"}})

    def test_content_is_resolved_by_host(self):
        settings = make_settings(site_hosts={"acme.example": "acme"})
        client = TestClient(create_app(settings, storage=self.storage))
        client.put(
            "/api/content",
            json={"hero_title": "Acme"},
            headers={"Host": "acme.example:8080"},
        )
        client.put("/api/content", json={"hero_title": "Demo"})

        acme = client.get("/api/content", headers={"Host": "ACME.example"})
        self.assertEqual(acme.json(), {"hero_title": "Acme"})
        self.assertEqual(client.get("/api/content").json(), {"hero_title": "Demo"})

    def test_storage_failure_is_internal_error(self):
        storage = MagicMock()
        storage.get_content.side_effect = RuntimeError("connection refused")
        client = TestClient(create_app(make_settings(), storage=storage))
        response = client.get("/api/content")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Internal server error"})

    def test_unknown_route(self):
        response = self.client.get("/api/nope")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Route not found: GET /api/nope"})

        response = self.client.delete("/api/content")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(
            response.json(), {"error": "Route not found: DELETE /api/content"}
        )

    def test_errors_outside_dispatch_use_error_body(self):
        response = self.client.get("/nowhere")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Not Found"})

        response = self.client.options("/api/content")
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.json(), {"error": "Method Not Allowed"})
        self.assertIn("GET", response.headers["allow"])

        response = self.client.post("/health")
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.json(), {"error": "Method Not Allowed"})

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "storage": "InMemoryStorage"})


if __name__ == "__main__":
    unittest.main()
