import unittest

import httpx

from app.main import create_app
from tests.support import PASSWORD, FakeClock, make_settings


class ApiTestCase(unittest.IsolatedAsyncioTestCase):
    settings_overrides: dict = {}

    async def asyncSetUp(self):
        self.clock = FakeClock()
        self.app = create_app(settings=make_settings(**self.settings_overrides), clock=self.clock)
        self.client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.app),
            base_url="http://testserver",
        )

    async def asyncTearDown(self):
        await self.client.aclose()

    async def register(self, email="alice@example.com", name="Alice", password=PASSWORD) -> httpx.Response:
        return await self.client.post(
            "/api/auth/register", json={"name": name, "email": email, "password": password}
        )

    async def login(self, email="alice@example.com", password=PASSWORD) -> httpx.Response:
        return await self.client.post("/api/auth/login", json={"email": email, "password": password})

    async def login_token(self, email="alice@example.com") -> str:
        response = await self.login(email)
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["data"]["accessToken"]

    @staticmethod
    def bearer(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}


class TestRegisterAndLogin(ApiTestCase):
    async def test_register(self):
        response = await self.register(email="  Alice@Example.com ")

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["success"])
        user = body["data"]["user"]
        self.assertEqual(user["email"], "alice@example.com")
        self.assertEqual(user["role"], "user")
        self.assertNotIn("hashed_password", user)
        self.assertNotIn("refreshToken", response.cookies)

    async def test_register_duplicate_email(self):
        await self.register()
        response = await self.register()

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["data"]["code"], "duplicate_email")

    async def test_register_validation(self):
        response = await self.register(password="abcdef")

        self.assertEqual(response.status_code, 422)
        body = response.json()
        self.assertEqual(body["message"], "Validation error")
        self.assertEqual(body["data"]["code"], "validation_error")
        self.assertEqual(body["data"]["validation_errors"][0]["field"], "password")

    async def test_register_rejects_unknown_fields(self):
        response = await self.client.post(
            "/api/auth/register",
            json={"name": "Alice", "email": "alice@example.com", "password": PASSWORD, "role": "admin"},
        )
        self.assertEqual(response.status_code, 422)

    async def test_login_sets_refresh_cookie(self):
        await self.register()
        response = await self.login()

        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertTrue(data["accessToken"])
        self.assertEqual(data["user"]["email"], "alice@example.com")

        set_cookie = response.headers["set-cookie"]
        self.assertIn("refreshToken=", set_cookie)
        self.assertIn("HttpOnly", set_cookie)
        self.assertIn("SameSite=strict", set_cookie)
        self.assertIn("Max-Age=604800", set_cookie)

    async def test_login_wrong_password(self):
        await self.register()
        response = await self.login(password="wrong-password1")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["data"]["code"], "invalid_credentials")

    async def test_five_failures_then_correct_password_is_locked(self):
        await self.register()
        for _ in range(5):
            self.assertEqual((await self.login(password="wrong-password1")).status_code, 401)

        response = await self.login()

        self.assertEqual(response.status_code, 423)
        self.assertEqual(response.json()["data"]["code"], "account_locked")

        self.clock.advance(minutes=30)
        self.assertEqual((await self.login()).status_code, 200)


class TestSessionLifecycle(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        await self.register()

    async def test_profile_requires_bearer_token(self):
        response = await self.client.get("/api/auth/profile")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["data"]["code"], "missing_token")

    async def test_profile_and_update(self):
        token = await self.login_token()

        response = await self.client.get("/api/auth/profile", headers=self.bearer(token))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["user"]["name"], "Alice")

        response = await self.client.put(
            "/api/auth/profile", json={"name": "  Alicia "}, headers=self.bearer(token)
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["user"]["name"], "Alicia")

    async def test_expired_access_token_then_refresh(self):
        first = await self.login_token()
        self.clock.advance(minutes=15)

        response = await self.client.get("/api/auth/profile", headers=self.bearer(first))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["data"]["code"], "token_expired")

        response = await self.client.post("/api/auth/refresh-token")
        self.assertEqual(response.status_code, 200)
        second = response.json()["data"]["accessToken"]
        self.assertNotEqual(first, second)

        response = await self.client.get("/api/auth/profile", headers=self.bearer(second))
        self.assertEqual(response.status_code, 200)

    async def test_invalid_access_token(self):
        response = await self.client.get("/api/auth/profile", headers=self.bearer("garbage"))

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["data"]["code"], "token_invalid")

    async def test_refresh_without_cookie(self):
        response = await self.client.post("/api/auth/refresh-token")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["data"]["code"], "missing_token")

    async def test_logout_then_refresh_is_forbidden(self):
        await self.login_token()
        refresh_token = self.client.cookies.get("refreshToken")
        self.assertTrue(refresh_token)

        response = await self.client.post("/api/auth/logout")
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(self.client.cookies.get("refreshToken"))

        response = await self.client.post(
            "/api/auth/refresh-token", headers={"Cookie": f"refreshToken={refresh_token}"}
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["data"]["code"], "token_invalid")

    async def test_second_login_invalidates_first_refresh_token(self):
        await self.login_token()
        first_refresh = self.client.cookies.get("refreshToken")
        self.client.cookies.clear()
        await self.login_token()

        response = await self.client.post(
            "/api/auth/refresh-token", headers={"Cookie": f"refreshToken={first_refresh}"}
        )
        self.assertEqual(response.status_code, 403)

    async def test_logout_without_cookie(self):
        response = await self.client.post("/api/auth/logout")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["success"])


class TestAdminEndpoints(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        admin = (await self.register(email="root@example.com", name="Root")).json()["data"]["user"]
        self.app.state.memory_store.users_by_id[admin["id"]]["role"] = "admin"
        self.admin_id = admin["id"]
        self.admin_token = await self.login_token("root@example.com")

    async def test_standard_user_is_forbidden(self):
        await self.register()
        token = await self.login_token()

        response = await self.client.get("/api/auth/admin/users", headers=self.bearer(token))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["data"]["code"], "insufficient_role")

    async def test_admin_requires_authentication(self):
        response = await self.client.get("/api/auth/admin/users")
        self.assertEqual(response.status_code, 401)

    async def test_create_list_update_delete(self):
        response = await self.client.post(
            "/api/auth/admin/create-user",
            json={"name": "Bob", "email": "bob@example.com", "password": "hunter22", "role": "admin"},
            headers=self.bearer(self.admin_token),
        )
        self.assertEqual(response.status_code, 201)
        bob = response.json()["data"]["user"]
        self.assertEqual(bob["role"], "admin")

        response = await self.client.get("/api/auth/admin/users", headers=self.bearer(self.admin_token))
        self.assertEqual([u["email"] for u in response.json()["data"]["users"]], ["bob@example.com", "root@example.com"])

        response = await self.client.put(
            f"/api/auth/admin/update-user/{bob['id']}",
            json={"name": "Robert", "role": "user"},
            headers=self.bearer(self.admin_token),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["user"]["role"], "user")

        response = await self.client.delete(
            f"/api/auth/admin/users/{bob['id']}", headers=self.bearer(self.admin_token)
        )
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(self.app.state.memory_store.users_by_id.get(bob["id"]))

    async def test_create_duplicate_is_conflict(self):
        response = await self.client.post(
            "/api/auth/admin/create-user",
            json={"name": "Root", "email": "root@example.com", "password": "hunter22"},
            headers=self.bearer(self.admin_token),
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["data"]["code"], "duplicate_email")

    async def test_update_missing_user(self):
        response = await self.client.put(
            "/api/auth/admin/update-user/999", json={"name": "Ghost"}, headers=self.bearer(self.admin_token)
        )
        self.assertEqual(response.status_code, 404)

    async def test_delete_self_and_missing(self):
        response = await self.client.delete(
            f"/api/auth/admin/users/{self.admin_id}", headers=self.bearer(self.admin_token)
        )
        self.assertEqual(response.status_code, 400)

        response = await self.client.delete("/api/auth/admin/users/999", headers=self.bearer(self.admin_token))
        self.assertEqual(response.status_code, 404)


class TestHealth(ApiTestCase):
    async def test_memory_store_is_healthy(self):
        response = await self.client.get("/api/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "healthy")


class TestHealthWithoutDatabase(ApiTestCase):
    # The lifespan is not run here, so no pool exists
    settings_overrides = {"CREDENTIAL_STORE": "postgres"}

    async def test_unreachable_store(self):
        response = await self.client.get("/api/health")

        self.assertEqual(response.status_code, 503)
        self.assertFalse(response.json()["success"])


class TestRateLimiting(ApiTestCase):
    settings_overrides = {"RATE_LIMIT_ENABLED": True, "LOGIN_RATE_LIMIT_PER_MINUTE": 2}

    async def test_login_rate_limit(self):
        for _ in range(2):
            self.assertEqual((await self.login(email="nobody@example.com")).status_code, 401)

        response = await self.login(email="nobody@example.com")
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json()["data"]["code"], "rate_limited")


class TestErrorEnvelope(ApiTestCase):
    async def test_unknown_route(self):
        response = await self.client.get("/api/auth/does-not-exist")

        self.assertEqual(response.status_code, 404)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["data"]["code"], "not_found")

    async def test_wrong_method(self):
        response = await self.client.get("/api/auth/login")

        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.json()["data"]["code"], "method_not_allowed")
        self.assertIn("POST", response.headers["allow"])

    async def test_unhandled_error_is_hidden(self):
        async def boom():
            raise RuntimeError("database password is hunter2")

        self.app.add_api_route("/api/boom", boom)
        client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.app, raise_app_exceptions=False),
            base_url="http://testserver",
        )
        with self.assertLogs("app.core.handler", level="ERROR"):
            response = await client.get("/api/boom")
        await client.aclose()

        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertEqual(body["data"], {"code": "internal_error"})
        self.assertNotIn("hunter2", body["message"])


if __name__ == "__main__":
    unittest.main()
