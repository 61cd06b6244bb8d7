import unittest
from datetime import datetime, timedelta, timezone

from mercado_obras import create_app
from mercado_obras.config import Config
from mercado_obras.db import close_db, get_db
from tests.helpers.catalog_data import store_sample_catalog
from tests.helpers.temp_db import TempDbSandbox


def _today():
    return datetime.now(timezone.utc).date()


def _iso(days: int) -> str:
    return (_today() + timedelta(days=days)).isoformat()


def _build_temp_app(temp_db: TempDbSandbox, **overrides):
    attrs = {
        "TESTING": True,
        "AUTH_ENABLED": False,
        "RATE_LIMIT_ENABLED": False,
        "APP_TIMEZONE": "UTC",
    }
    attrs.update(overrides)
    return create_app(temp_db.make_config(Config, **attrs))


class ObraRoutesTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="obra_routes")
        self.app = _build_temp_app(self._temp_db)
        with self.app.app_context():
            store_sample_catalog(get_db())
        self.client = self.app.test_client()
        self._login_as("cliente@demo.com", "cliente")

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def _login_as(self, user_id: str, role: str) -> None:
        with self.client.session_transaction() as sess:
            sess["user_id"] = user_id
            sess["user_role"] = role

    def _create_obra(self, obra_id: str = "obra-1"):
        response = self.client.post(
            "/api/obras",
            json={
                "id": obra_id,
                "nome": "Casa da praia",
                "cidade": "Florianopolis",
                "estado": "SC",
                "etapa": "Fundacao",
                "inicio_recebimento_oferta": _iso(-1),
                "etapas": [
                    {"id": "e-fund", "fase_id": "f1", "data_prevista": _iso(-3), "dias_antecedencia_cotacao": 0},
                    {"id": "e-estr", "fase_id": "f2", "data_prevista": _iso(10), "dias_antecedencia_cotacao": 15},
                    {"id": "e-acab", "fase_id": "f3", "data_prevista": _iso(60), "dias_antecedencia_cotacao": 5},
                ],
            },
        )
        self.assertEqual(response.status_code, 201, response.get_json())
        return response.get_json()

    def test_create_obra_stores_etapas_with_phase_names(self) -> None:
        payload = self._create_obra()
        obra = payload["obra"]
        self.assertEqual(obra["user_id"], "cliente@demo.com")
        self.assertEqual([etapa["nome"] for etapa in obra["etapas"]], ["Fundacao", "Estrutura", "Acabamento"])
        situacoes = {etapa["id"]: etapa["situacao"] for etapa in obra["etapas"]}
        self.assertEqual(situacoes, {"e-fund": "open", "e-estr": "open", "e-acab": "closed"})

    def test_eligible_phases_follow_windows(self) -> None:
        self._create_obra()
        response = self.client.get("/api/obras/obra-1/fases-elegiveis")
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["hoje"], _today().isoformat())
        self.assertEqual(payload["fase_ids_elegiveis"], ["f1", "f2"])
        flags = {fase["id"]: fase["elegivel"] for fase in payload["fases"]}
        self.assertEqual(flags, {"f1": True, "f2": True, "f3": False})

    def test_completing_an_etapa_closes_its_phase(self) -> None:
        self._create_obra()
        response = self.client.post("/api/obras/obra-1/etapas/e-estr/concluir")
        self.assertEqual(response.status_code, 200)
        etapa = next(item for item in response.get_json()["obra"]["etapas"] if item["id"] == "e-estr")
        self.assertTrue(etapa["is_completed"])
        self.assertEqual(etapa["data_conclusao"], _today().isoformat())

        payload = self.client.get("/api/obras/obra-1/fases-elegiveis").get_json()
        self.assertEqual(payload["fase_ids_elegiveis"], ["f1"])

        missing = self.client.post("/api/obras/obra-1/etapas/nao-existe/concluir")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.get_json()["error"], "etapa_not_found")

    def test_create_then_upsert_obra_reports_status_and_logs(self) -> None:
        with self.assertLogs("mercado_obras.application.obra_service", level="INFO") as logs:
            created = self.client.post("/api/obras", json={"id": "obra-9", "nome": "Sobrado"})
            again = self.client.post("/api/obras", json={"id": "obra-9", "nome": "Sobrado reformado"})

        self.assertEqual(created.status_code, 201)
        self.assertEqual(again.status_code, 200)
        self.assertEqual(again.get_json()["obra"]["nome"], "Sobrado reformado")
        saved = [record for record in logs.records if record.getMessage() == "obra_saved"]
        self.assertEqual([record.obra_created for record in saved], [True, False])

    def test_completing_the_declared_etapa_drops_its_phase(self) -> None:
        self._create_obra()
        before = self.client.get("/api/obras/obra-1/fases-elegiveis").get_json()
        self.assertIn("f1", before["fase_ids_elegiveis"])

        response = self.client.post("/api/obras/obra-1/etapas/e-fund/concluir")
        self.assertEqual(response.status_code, 200)

        after = self.client.get("/api/obras/obra-1/fases-elegiveis").get_json()
        self.assertEqual(after["fase_ids_elegiveis"], ["f2"])
        flags = {fase["id"]: fase["elegivel"] for fase in after["fases"]}
        self.assertFalse(flags["f1"])
        catalogo = self.client.get("/api/obras/obra-1/catalogo").get_json()
        self.assertEqual([fase["id"] for fase in catalogo["fases"]], ["f2"])

    def test_etapa_without_lead_time_stays_closed(self) -> None:
        self._create_obra()
        response = self.client.put(
            "/api/obras/obra-1/etapas",
            json={"etapas": [{"id": "e-x", "fase_id": "f3", "data_prevista": _iso(-30)}]},
        )
        self.assertEqual(response.status_code, 200)
        etapa = response.get_json()["obra"]["etapas"][0]
        self.assertEqual(etapa["situacao"], "closed")
        self.assertIsNone(etapa["janela_inicio"])

        payload = self.client.get("/api/obras/obra-1/fases-elegiveis").get_json()
        self.assertNotIn("f3", payload["fase_ids_elegiveis"])

    def test_quotation_catalog_shows_only_eligible_phases(self) -> None:
        self._create_obra()
        payload = self.client.get("/api/obras/obra-1/catalogo").get_json()
        self.assertEqual([fase["id"] for fase in payload["fases"]], ["f1", "f2"])
        self.assertTrue(all(fase["elegivel"] for fase in payload["fases"]))

        searched = self.client.get("/api/obras/obra-1/catalogo?q=vergalhao").get_json()
        self.assertEqual([fase["id"] for fase in searched["fases"]], ["f2"])

    def test_validate_material_against_current_phase(self) -> None:
        self._create_obra()
        ok = self.client.post("/api/obras/obra-1/validar-material", json={"material_id": "m1"}).get_json()
        self.assertTrue(ok["ok"])
        warned = self.client.post("/api/obras/obra-1/validar-material", json={"material_id": "m2"}).get_json()
        self.assertFalse(warned["ok"])
        self.assertEqual(warned["warning"], "material_outside_phase")
        self.assertEqual(warned["fase_inicial"]["id"], "f2")

        missing = self.client.post("/api/obras/obra-1/validar-material", json={"material_id": "nao-existe"})
        self.assertEqual(missing.status_code, 404)
        blank = self.client.post("/api/obras/obra-1/validar-material", json={})
        self.assertEqual(blank.status_code, 400)

    def test_obras_are_scoped_to_their_owner(self) -> None:
        self._create_obra()
        self._login_as("outro@demo.com", "cliente")
        self.assertEqual(self.client.get("/api/obras/obra-1").status_code, 404)
        self.assertEqual(self.client.get("/api/obras").get_json()["obras"], [])
        clash = self.client.post("/api/obras", json={"id": "obra-1", "nome": "Invasao"})
        self.assertEqual(clash.status_code, 409)

        self._login_as("admin@demo.com", "admin")
        self.assertEqual(self.client.get("/api/obras/obra-1").status_code, 200)

    def test_update_obra_and_replace_etapas(self) -> None:
        self._create_obra()
        updated = self.client.patch("/api/obras/obra-1", json={"etapa": "Estrutura", "status": "pausada"})
        self.assertEqual(updated.status_code, 200)
        obra = updated.get_json()["obra"]
        self.assertEqual(obra["etapa"], "Estrutura")
        self.assertEqual(obra["status"], "pausada")
        self.assertEqual(obra["nome"], "Casa da praia")

        invalid = self.client.patch("/api/obras/obra-1", json={"status": "demolida"})
        self.assertEqual(invalid.status_code, 400)
        self.assertEqual(invalid.get_json()["error"], "status_invalid")

        replaced = self.client.put(
            "/api/obras/obra-1/etapas",
            json={"etapas": [{"nome": "Telhado", "data_prevista": _iso(5), "dias_antecedencia_cotacao": 7}]},
        )
        self.assertEqual(replaced.status_code, 200)
        etapas = replaced.get_json()["obra"]["etapas"]
        self.assertEqual(len(etapas), 1)
        self.assertIsNone(etapas[0]["fase_id"])
        self.assertTrue(etapas[0]["elegivel"])

    def test_etapa_input_is_validated(self) -> None:
        self._create_obra()
        bad_date = self.client.put("/api/obras/obra-1/etapas", json={"etapas": [{"nome": "X", "data_prevista": "amanha"}]})
        self.assertEqual(bad_date.status_code, 400)
        self.assertEqual(bad_date.get_json()["error"], "date_invalid")

        bad_days = self.client.put(
            "/api/obras/obra-1/etapas",
            json={"etapas": [{"nome": "X", "data_prevista": _iso(1), "dias_antecedencia_cotacao": -2}]},
        )
        self.assertEqual(bad_days.get_json()["error"], "days_invalid")

        unknown = self.client.put("/api/obras/obra-1/etapas", json={"etapas": [{"fase_id": "nao-existe"}]})
        self.assertEqual(unknown.status_code, 404)
        self.assertEqual(unknown.get_json()["error"], "fase_not_found")

        # Rejected input leaves the stored etapas untouched.
        obra = self.client.get("/api/obras/obra-1").get_json()["obra"]
        self.assertEqual(len(obra["etapas"]), 3)

    def test_suppliers_cannot_manage_obras(self) -> None:
        self._login_as("fornecedor@demo.com", "fornecedor")
        response = self.client.get("/api/obras")
        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()
