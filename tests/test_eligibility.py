import unittest
from dataclasses import replace
from datetime import date, datetime, timedelta

from mercado_obras.catalog.eligibility import (
    describe_etapa,
    eligible_fase_ids,
    is_etapa_valid,
    is_phase_valid_for_quotation,
    parse_date,
    quotation_window_start,
    valid_etapas,
)
from mercado_obras.domain.contracts import Fase, Obra, ObraEtapa, ObraStage


def _obra(**overrides) -> Obra:
    attrs = {"id": "obra-1", "user_id": "cliente@demo.com", "nome": "Casa"}
    attrs.update(overrides)
    return Obra(**attrs)


def _etapa(**overrides) -> ObraEtapa:
    attrs = {"id": "etapa-1", "obra_id": "obra-1", "nome": "Fundacao"}
    attrs.update(overrides)
    return ObraEtapa(**attrs)


class PhaseQuotationWindowTest(unittest.TestCase):
    def test_declared_phase_opens_on_offer_start_date(self) -> None:
        obra = _obra(etapa="Fundação", inicio_recebimento_oferta="2025-01-10")
        self.assertFalse(is_phase_valid_for_quotation("Fundação", obra, date(2025, 1, 9)))
        self.assertTrue(is_phase_valid_for_quotation("Fundação", obra, date(2025, 1, 10)))

    def test_offer_start_ignores_time_of_day(self) -> None:
        obra = _obra(etapa="Fundacao", inicio_recebimento_oferta="2025-01-10T23:59:00-03:00")
        self.assertTrue(is_phase_valid_for_quotation("Fundacao", obra, date(2025, 1, 10)))

    def test_stage_window_uses_predicted_date_minus_lead_time(self) -> None:
        obra = _obra(stages=(ObraStage(name="Estrutura", predicted_date="2025-03-01", quotation_advance_days=15),))
        self.assertFalse(is_phase_valid_for_quotation("Estrutura", obra, date(2025, 2, 13)))
        self.assertTrue(is_phase_valid_for_quotation("Estrutura", obra, date(2025, 2, 14)))
        self.assertTrue(is_phase_valid_for_quotation("Estrutura", obra, date(2026, 1, 1)))

    def test_name_comparison_ignores_case_and_spacing(self) -> None:
        obra = _obra(stages=(ObraStage(name="  Estrutura  ", predicted_date="2025-03-01", quotation_advance_days=0),))
        self.assertTrue(is_phase_valid_for_quotation("ESTRUTURA", obra, date(2025, 3, 1)))

    def test_stage_without_lead_time_is_not_eligible(self) -> None:
        obra = _obra(stages=(ObraStage(name="Estrutura", predicted_date="2025-03-01"),))
        self.assertFalse(is_phase_valid_for_quotation("Estrutura", obra, date(2025, 6, 1)))

    def test_unknown_phase_is_not_eligible(self) -> None:
        obra = _obra(etapa="Fundacao", inicio_recebimento_oferta="2025-01-10")
        self.assertFalse(is_phase_valid_for_quotation("Acabamento", obra, date(2025, 6, 1)))
        self.assertFalse(is_phase_valid_for_quotation("", obra, date(2025, 6, 1)))

    def test_completed_stage_closes_the_window(self) -> None:
        stage = ObraStage(
            name="Fundacao",
            predicted_date="2025-01-01",
            quotation_advance_days=5,
            is_completed=True,
        )
        obra = _obra(etapa="Fundacao", inicio_recebimento_oferta="2025-01-01", stages=(stage,))
        self.assertFalse(is_phase_valid_for_quotation("Fundacao", obra, date(2025, 6, 1)))

    def test_malformed_dates_fail_closed(self) -> None:
        obra = _obra(
            etapa="Fundacao",
            inicio_recebimento_oferta="10/01/2025",
            stages=(ObraStage(name="Estrutura", predicted_date="amanha", quotation_advance_days="quinze"),),
        )
        self.assertFalse(is_phase_valid_for_quotation("Fundacao", obra, date(2025, 6, 1)))
        self.assertFalse(is_phase_valid_for_quotation("Estrutura", obra, date(2025, 6, 1)))

    def test_window_stays_open_once_reached(self) -> None:
        obra = _obra(stages=(ObraStage(name="Estrutura", predicted_date="2025-03-01", quotation_advance_days=10),))
        opened = date(2025, 2, 19)
        for offset in range(0, 400, 37):
            self.assertTrue(is_phase_valid_for_quotation("Estrutura", obra, opened + timedelta(days=offset)))


class EtapaValidityTest(unittest.TestCase):
    def test_lead_time_boundary(self) -> None:
        etapa = _etapa(data_prevista="2025-03-01", dias_antecedencia_cotacao=15)
        self.assertTrue(is_etapa_valid(etapa, date(2025, 2, 14)))
        self.assertFalse(is_etapa_valid(etapa, date(2025, 2, 13)))

    def test_missing_predicted_date_is_never_valid(self) -> None:
        etapa = _etapa(data_prevista=None, dias_antecedencia_cotacao=9999)
        self.assertFalse(is_etapa_valid(etapa, date(2030, 1, 1)))

    def test_completed_etapa_is_not_valid(self) -> None:
        etapa = _etapa(data_prevista="2025-03-01", dias_antecedencia_cotacao=15, is_completed=True)
        self.assertFalse(is_etapa_valid(etapa, date(2025, 3, 10)))

    def test_missing_lead_time_is_never_valid(self) -> None:
        etapa = _etapa(data_prevista="2025-03-01")
        self.assertFalse(is_etapa_valid(etapa, date(2025, 6, 1)))
        self.assertFalse(is_etapa_valid(_etapa(data_prevista="2025-03-01", dias_antecedencia_cotacao=""), date(2025, 6, 1)))
        described = describe_etapa(etapa, date(2025, 6, 1))
        self.assertIsNone(described["janela_inicio"])
        self.assertEqual(described["situacao"], "closed")

    def test_valid_etapas_filters_list(self) -> None:
        etapas = [
            _etapa(id="a", data_prevista="2025-03-01", dias_antecedencia_cotacao=15),
            _etapa(id="b", data_prevista="2025-05-01", dias_antecedencia_cotacao=15),
            _etapa(id="c", data_prevista=None),
        ]
        self.assertEqual([etapa.id for etapa in valid_etapas(etapas, date(2025, 3, 1))], ["a"])

    def test_describe_etapa_reports_state(self) -> None:
        etapa = _etapa(data_prevista=date(2025, 3, 1), dias_antecedencia_cotacao=15)
        described = describe_etapa(etapa, date(2025, 2, 1))
        self.assertEqual(described["janela_inicio"], "2025-02-14")
        self.assertEqual(described["situacao"], "closed")
        self.assertFalse(described["elegivel"])
        self.assertEqual(described["data_prevista"], "2025-03-01")
        self.assertEqual(describe_etapa(etapa, date(2025, 2, 20))["situacao"], "open")


class EligibleFaseIdsTest(unittest.TestCase):
    def test_matches_stage_by_fase_id_even_when_names_differ(self) -> None:
        fases = [Fase(id="f1", cronologia=1, nome="Fundacao"), Fase(id="f2", cronologia=2, nome="Estrutura")]
        stages = (
            ObraStage(name="Sapatas do bloco A", predicted_date="2025-03-01", quotation_advance_days=5, fase_id="f1"),
        )
        obra = _obra(stages=stages)
        self.assertEqual(eligible_fase_ids(fases, obra, date(2025, 2, 24)), frozenset({"f1"}))
        self.assertEqual(eligible_fase_ids(fases, obra, date(2025, 2, 23)), frozenset())

    def test_declared_phase_and_stage_windows_combine(self) -> None:
        fases = [
            Fase(id="f1", cronologia=1, nome="Fundacao"),
            Fase(id="f2", cronologia=2, nome="Estrutura"),
            Fase(id="f3", cronologia=3, nome="Acabamento"),
        ]
        obra = _obra(
            etapa="Fundacao",
            inicio_recebimento_oferta="2025-01-01",
            stages=(ObraStage(name="Estrutura", predicted_date="2025-02-01", quotation_advance_days=10),),
        )
        self.assertEqual(eligible_fase_ids(fases, obra, date(2025, 1, 25)), frozenset({"f1", "f2"}))

    def test_any_open_stage_opens_a_shared_phase(self) -> None:
        fases = [Fase(id="f1", cronologia=1, nome="Fundacao")]
        etapas = [
            _etapa(id="a", nome="Bloco A", fase_id="f1", data_prevista="2025-03-01", dias_antecedencia_cotacao=5),
            _etapa(id="b", nome="Bloco B", fase_id="f1", data_prevista="2025-09-01", dias_antecedencia_cotacao=5),
        ]
        obra = _obra(stages=tuple(etapa.as_stage() for etapa in etapas))
        today = date(2025, 6, 1)

        self.assertEqual([etapa.id for etapa in valid_etapas(etapas, today)], ["a"])
        self.assertEqual(eligible_fase_ids(fases, obra, today), frozenset({"f1"}))

    def test_shared_phase_with_same_stage_names(self) -> None:
        fases = [Fase(id="f1", cronologia=1, nome="Fundacao")]
        stages = (
            ObraStage(name="Fundacao", predicted_date="2025-09-01", quotation_advance_days=5, fase_id="f1"),
            ObraStage(name="Fundacao", predicted_date="2025-03-01", quotation_advance_days=5, fase_id="f1"),
        )
        self.assertEqual(eligible_fase_ids(fases, _obra(stages=stages), date(2025, 6, 1)), frozenset({"f1"}))

    def test_phase_closes_once_every_linked_stage_is_completed(self) -> None:
        fases = [Fase(id="f1", cronologia=1, nome="Fundacao")]
        stages = (
            ObraStage(name="Bloco A", predicted_date="2025-03-01", quotation_advance_days=5, fase_id="f1", is_completed=True),
            ObraStage(name="Bloco B", predicted_date="2025-03-01", quotation_advance_days=5, fase_id="f1"),
        )
        obra = _obra(stages=stages)
        self.assertEqual(eligible_fase_ids(fases, obra, date(2025, 6, 1)), frozenset({"f1"}))

        done = _obra(stages=tuple(replace(stage, is_completed=True) for stage in stages))
        self.assertEqual(eligible_fase_ids(fases, done, date(2025, 6, 1)), frozenset())

    def test_missing_lead_time_agrees_across_views(self) -> None:
        fases = [Fase(id="f1", cronologia=1, nome="Fundacao")]
        etapa = _etapa(fase_id="f1", data_prevista="2025-03-01")
        obra = _obra(stages=(etapa.as_stage(),))
        today = date(2025, 6, 1)

        self.assertFalse(is_etapa_valid(etapa, today))
        self.assertEqual(eligible_fase_ids(fases, obra, today), frozenset())


class DateParsingTest(unittest.TestCase):
    def test_parse_date_accepts_dates_datetimes_and_iso_text(self) -> None:
        self.assertEqual(parse_date(date(2025, 1, 2)), date(2025, 1, 2))
        self.assertEqual(parse_date(datetime(2025, 1, 2, 23, 59)), date(2025, 1, 2))
        self.assertEqual(parse_date("2025-01-02 08:00:00"), date(2025, 1, 2))
        self.assertIsNone(parse_date("2025-13-40"))
        self.assertIsNone(parse_date(""))
        self.assertIsNone(parse_date(True))

    def test_window_start_rejects_bad_lead_time(self) -> None:
        self.assertEqual(quotation_window_start("2025-03-01", "15"), date(2025, 2, 14))
        self.assertIsNone(quotation_window_start("2025-03-01", "1.5"))
        self.assertIsNone(quotation_window_start(None, 3))


if __name__ == "__main__":
    unittest.main()
