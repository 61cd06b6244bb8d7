import unittest

from mercado_obras import create_app
from mercado_obras.auth import parse_users
from mercado_obras.config import Config
from mercado_obras.db import close_db
from mercado_obras.ui_strings import error_message
from tests.helpers.temp_db import TempDbSandbox


_USERS = (
    "admin@demo.com:admin123:admin:Administrador,"
    "cliente@demo.com:cliente123:cliente,"
    "forn@demo.com:forn123:fornecedor:Fornecedor Demo:fornecedor-1"
)


class ParseUsersTest(unittest.TestCase):
    def test_entries_are_parsed(self) -> None:
        users = parse_users(_USERS)
        self.assertEqual([user["email"] for user in users], ["admin@demo.com", "cliente@demo.com", "forn@demo.com"])
        self.assertEqual(users[1]["display_name"], "cliente")
        self.assertEqual(users[2]["fornecedor_id"], "fornecedor-1")

    def test_invalid_entries_are_skipped(self) -> None:
        users = parse_users("sem-senha@demo.com,x@demo.com:1:superuser;ok@demo.com:1:cliente")
        self.assertEqual([user["email"] for user in users], ["ok@demo.com"])
        self.assertEqual(parse_users(None), [])


class AuthLoginTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="auth_login")
        self.app = create_app(
            self._temp_db.make_config(
                Config,
                TESTING=True,
                AUTH_ENABLED=True,
                RATE_LIMIT_ENABLED=False,
                APP_USERS=_USERS,
            )
        )
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_login_opens_protected_api(self) -> None:
        self.assertEqual(self.client.get("/api/obras").status_code, 401)

        response = self.client.post("/api/login", json={"email": "Cliente@Demo.com", "senha": "cliente123"})
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertTrue(payload["authenticated"])
        self.assertEqual(payload["user"]["papel"], "cliente")

        self.assertEqual(self.client.get("/api/obras").status_code, 200)
        session_payload = self.client.get("/api/session").get_json()
        self.assertEqual(session_payload["user"]["email"], "cliente@demo.com")

    def test_supplier_session_carries_fornecedor_id(self) -> None:
        response = self.client.post("/api/login", json={"email": "forn@demo.com", "password": "forn123"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["user"]["fornecedor_id"], "fornecedor-1")

    def test_invalid_credentials(self) -> None:
        response = self.client.post("/api/login", json={"email": "admin@demo.com", "senha": "errada"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["error"], "auth_invalid_credentials")
        self.assertEqual(self.client.get("/api/session").get_json(), {"authenticated": False})

    def test_missing_credentials(self) -> None:
        response = self.client.post("/api/login", json={"email": "admin@demo.com"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "auth_missing_credentials")

    def test_logout_clears_session(self) -> None:
        self.client.post("/api/login", json={"email": "admin@demo.com", "senha": "admin123"})
        self.assertEqual(self.client.get("/api/admin/catalogo").status_code, 200)

        response = self.client.post("/api/logout")
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.get_json()["authenticated"])

        blocked = self.client.get("/api/admin/catalogo")
        self.assertEqual(blocked.status_code, 401)
        self.assertEqual(blocked.get_json()["message"], error_message("auth_required"))

    def test_cliente_cannot_manage_catalog(self) -> None:
        self.client.post("/api/login", json={"email": "cliente@demo.com", "senha": "cliente123"})
        response = self.client.post("/api/admin/fases", json={"nome": "Fundacao"})
        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()
