"""Quotation window rules for obra phases.

A phase opens for supplier quotes ``dias_antecedencia_cotacao`` days before its
predicted start and stays open until the etapa is completed. All comparisons
are made on calendar dates; anything that cannot be read as a date makes the
phase ineligible instead of raising.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from mercado_obras.domain.contracts import Fase, Obra, ObraEtapa, ObraStage


def today_in(tz_name: str | None = None) -> date:
    if tz_name:
        try:
            return datetime.now(ZoneInfo(tz_name)).date()
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return datetime.now(timezone.utc).date()


def parse_date(value: Any) -> date | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if len(raw) < 10:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def parse_days(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def normalize_name(value: Any) -> str:
    return " ".join(str(value or "").split()).casefold()


def quotation_window_start(predicted_date: Any, advance_days: Any) -> date | None:
    predicted = parse_date(predicted_date)
    days = parse_days(advance_days)
    if predicted is None or days is None:
        return None
    try:
        return predicted - timedelta(days=days)
    except OverflowError:
        return None


def _find_stage(phase_name: str, stages: Iterable[ObraStage]) -> ObraStage | None:
    wanted = normalize_name(phase_name)
    for stage in stages or ():
        if normalize_name(stage.name) == wanted:
            return stage
    return None


def _declared_phase_open(phase_name: str, obra: Obra, current: date) -> bool | None:
    """Offer start rule for the obra's current etapa; None when it does not apply."""
    if normalize_name(phase_name) != normalize_name(obra.etapa) or not obra.inicio_recebimento_oferta:
        return None
    opens_at = parse_date(obra.inicio_recebimento_oferta)
    return opens_at is not None and current >= opens_at


def _stage_window_open(stage: ObraStage, current: date) -> bool:
    if stage.is_completed or not stage.predicted_date or stage.quotation_advance_days is None:
        return False
    window_start = quotation_window_start(stage.predicted_date, stage.quotation_advance_days)
    return window_start is not None and current >= window_start


def _pending_stage_open(stage: ObraStage, obra: Obra, current: date) -> bool:
    declared = _declared_phase_open(stage.name, obra, current)
    if declared is not None:
        return declared
    return _stage_window_open(stage, current)


def is_phase_valid_for_quotation(phase_name: str, obra: Obra, today: date | None = None) -> bool:
    current = today or today_in()
    if not normalize_name(phase_name):
        return False

    stage = _find_stage(phase_name, obra.stages)
    if stage is not None and stage.is_completed:
        return False

    declared = _declared_phase_open(phase_name, obra, current)
    if declared is not None:
        return declared

    return stage is not None and _stage_window_open(stage, current)


def is_etapa_valid(etapa: ObraEtapa, today: date | None = None) -> bool:
    if etapa.is_completed or not etapa.data_prevista:
        return False
    window_start = quotation_window_start(etapa.data_prevista, etapa.dias_antecedencia_cotacao)
    if window_start is None:
        return False
    return (today or today_in()) >= window_start


def valid_etapas(etapas: Iterable[ObraEtapa], today: date | None = None) -> List[ObraEtapa]:
    current = today or today_in()
    return [etapa for etapa in etapas or () if is_etapa_valid(etapa, current)]


def eligible_fase_ids(fases: Iterable[Fase], obra: Obra, today: date | None = None) -> frozenset:
    """Catalog phases open for quotes in ``obra``.

    Stages pointing at a phase by ``fase_id`` are judged each on its own
    window, and any open one opens the phase; a phase whose linked stages are
    all completed stays closed. Otherwise the phase qualifies by name through
    ``is_phase_valid_for_quotation``.
    """
    current = today or today_in()
    stages_by_fase: Dict[str, List[ObraStage]] = {}
    for stage in obra.stages:
        if stage.fase_id:
            stages_by_fase.setdefault(stage.fase_id, []).append(stage)

    eligible = set()
    for fase in fases or ():
        linked = stages_by_fase.get(fase.id, [])
        pending = [stage for stage in linked if not stage.is_completed]
        if linked and not pending:
            continue
        if any(_pending_stage_open(stage, obra, current) for stage in pending):
            eligible.add(fase.id)
            continue
        if is_phase_valid_for_quotation(fase.nome, obra, current):
            eligible.add(fase.id)
    return frozenset(eligible)


def describe_etapa(etapa: ObraEtapa, today: date | None = None) -> dict:
    current = today or today_in()
    window_start = quotation_window_start(etapa.data_prevista, etapa.dias_antecedencia_cotacao)
    if etapa.is_completed:
        state = "completed"
    elif is_etapa_valid(etapa, current):
        state = "open"
    else:
        state = "closed"
    payload = etapa.to_dict()
    payload.update(
        {
            "janela_inicio": window_start.isoformat() if window_start else None,
            "elegivel": state == "open",
            "situacao": state,
        }
    )
    return payload
