import unittest

from mercado_obras import create_app
from mercado_obras.config import Config
from mercado_obras.critical_actions import CRITICAL_ACTIONS, critical_actions_bundle
from mercado_obras.db import close_db
from mercado_obras.ui_strings import (
    MESSAGES,
    STATUS_GROUPS,
    confirm_message,
    error_message,
    status_keys_for_group,
    status_label,
)
from tests.helpers.temp_db import TempDbSandbox


class UiStringsStatusGroupsTest(unittest.TestCase):
    def test_required_status_groups_exist(self) -> None:
        required_groups = {"obra", "cotacao", "fornecedor"}
        self.assertTrue(required_groups.issubset(set(STATUS_GROUPS.keys())))

    def test_status_labels_and_descriptions_are_not_empty(self) -> None:
        for group_name, statuses in STATUS_GROUPS.items():
            self.assertTrue(statuses, f"grupo vazio: {group_name}")
            for status in statuses:
                self.assertTrue((status.get("label") or "").strip(), f"label vazio em {group_name}:{status.get('key')}")
                self.assertTrue(
                    (status.get("description") or "").strip(),
                    f"descricao vazia em {group_name}:{status.get('key')}",
                )

    def test_status_helpers(self) -> None:
        self.assertIn("enviada", status_keys_for_group("cotacao"))
        self.assertEqual(status_label("obra", "ativa"), "Ativa")
        self.assertEqual(status_label("obra", "desconhecido"), "desconhecido")
        self.assertEqual(status_keys_for_group("inexistente"), [])

    def test_unknown_message_falls_back(self) -> None:
        self.assertEqual(error_message("codigo_inexistente", "padrao"), "padrao")
        self.assertTrue(error_message("unexpected_error").strip())

    def test_every_critical_action_has_confirm_message(self) -> None:
        for action_key, meta in CRITICAL_ACTIONS.items():
            self.assertIn(meta["confirm_message_key"], MESSAGES["confirm"], action_key)
            self.assertTrue(confirm_message(meta["confirm_message_key"]).strip())

        bundle = critical_actions_bundle()
        self.assertEqual(set(bundle), set(CRITICAL_ACTIONS))
        for payload in bundle.values():
            self.assertTrue(payload["impact"].strip())


class UiBundleRouteTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="ui_bundle")
        self.app = create_app(
            self._temp_db.make_config(Config, TESTING=True, AUTH_ENABLED=True, RATE_LIMIT_ENABLED=False)
        )
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_bundle_is_public_and_complete(self) -> None:
        response = self.client.get("/api/ui")
        self.assertEqual(response.status_code, 200)

        payload = response.get_json()
        self.assertEqual(payload["terms"]["app_name"], "Mercado Obras")
        self.assertIn("obra", payload["status_groups"])
        self.assertIn("delete_fase", payload["critical_actions"])
        self.assertEqual(
            payload["critical_actions"]["submit_out_of_phase"]["confirm_message"],
            confirm_message("submit_out_of_phase"),
        )


if __name__ == "__main__":
    unittest.main()
