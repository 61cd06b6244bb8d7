import unittest
from unittest.mock import patch

from mercado_obras import create_app
from mercado_obras.config import Config
from mercado_obras.db import close_db
from mercado_obras.ui_strings import error_message
from tests.helpers.temp_db import TempDbSandbox


def _build_temp_app(temp_db: TempDbSandbox, **overrides):
    attrs = {
        "PROPAGATE_EXCEPTIONS": False,
        "RATE_LIMIT_ENABLED": False,
    }
    attrs.update(overrides)
    return create_app(temp_db.make_config(Config, **attrs))


class ErrorPermissionTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="error_perm")
        self.app = _build_temp_app(self._temp_db, TESTING=False, DB_AUTO_INIT=False, AUTH_ENABLED=True)
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_permission_error_for_unauthenticated_api(self) -> None:
        response = self.client.get("/api/obras")
        self.assertEqual(response.status_code, 401)

        payload = response.get_json()
        self.assertEqual(payload.get("error"), "auth_required")
        self.assertEqual(payload.get("message"), error_message("auth_required"))
        self.assertTrue((payload.get("request_id") or "").strip())
        self.assertEqual(response.headers.get("X-Request-Id"), payload.get("request_id"))
        self.assertNotIn("Traceback", response.get_data(as_text=True))

    def test_public_paths_stay_open(self) -> None:
        self.assertEqual(self.client.get("/").status_code, 200)
        self.assertEqual(self.client.get("/api/session").get_json(), {"authenticated": False})


class ErrorHandlingApiTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="error_api")
        self.app = _build_temp_app(self._temp_db, TESTING=True, AUTH_ENABLED=False)
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_incoming_request_id_is_echoed(self) -> None:
        response = self.client.get("/api/obras/nao-existe", headers={"X-Request-Id": "req-abc-123"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["error"], "obra_not_found")
        self.assertEqual(response.get_json()["request_id"], "req-abc-123")
        self.assertEqual(response.headers.get("X-Request-Id"), "req-abc-123")

    def test_unexpected_exception_is_mapped_without_traceback(self) -> None:
        with patch(
            "mercado_obras.application.obra_service.ObraService.list_obras",
            side_effect=RuntimeError("boom interno"),
        ):
            response = self.client.get("/api/obras")

        self.assertEqual(response.status_code, 500)
        payload = response.get_json()
        self.assertEqual(payload["error"], "unexpected_error")
        self.assertEqual(payload["message"], error_message("unexpected_error"))
        body = response.get_data(as_text=True)
        self.assertNotIn("Traceback", body)
        self.assertNotIn("boom interno", body)

    def test_store_failure_surfaces_as_catalog_unavailable(self) -> None:
        with patch(
            "mercado_obras.infrastructure.repositories.catalog_repository.CatalogRepository.load_rows",
            side_effect=RuntimeError("conexao perdida"),
        ):
            response = self.client.get("/api/catalogo/arvore")

        self.assertEqual(response.status_code, 503)
        payload = response.get_json()
        self.assertEqual(payload["error"], "catalog_unavailable")
        self.assertNotIn("conexao perdida", response.get_data(as_text=True))

    def test_unknown_route_keeps_http_status(self) -> None:
        response = self.client.get("/api/nao-existe")
        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
