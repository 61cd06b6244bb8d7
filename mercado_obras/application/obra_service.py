from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Sequence

from mercado_obras.application.catalog_service import CatalogService
from mercado_obras.catalog.eligibility import (
    describe_etapa,
    eligible_fase_ids,
    parse_date,
    parse_days,
    today_in,
)
from mercado_obras.catalog.search import quotation_tree, validate_material_fase
from mercado_obras.domain.contracts import AuthUser, Obra, ObraEtapa, ServiceOutput
from mercado_obras.errors import NotFoundError, ValidationError
from mercado_obras.infrastructure.repositories import ObraRepository
from mercado_obras.policies import sees_every_owner
from mercado_obras.ui_strings import status_keys_for_group, success_message


logger = logging.getLogger(__name__)

_ADDRESS_FIELDS = ("cep", "logradouro", "numero", "complemento", "bairro", "cidade", "estado")


def etapa_from_row(row: Dict[str, Any]) -> ObraEtapa:
    return ObraEtapa(
        id=str(row["id"]),
        obra_id=str(row["obra_id"]),
        nome=str(row.get("nome") or ""),
        fase_id=row.get("fase_id"),
        data_prevista=row.get("data_prevista"),
        dias_antecedencia_cotacao=row.get("dias_antecedencia_cotacao"),
        is_completed=bool(row.get("is_completed")),
        data_conclusao=row.get("data_conclusao"),
    )


def obra_from_rows(row: Dict[str, Any], etapas: Sequence[ObraEtapa] = ()) -> Obra:
    return Obra(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        nome=str(row.get("nome") or ""),
        etapa=row.get("etapa"),
        inicio_recebimento_oferta=row.get("inicio_recebimento_oferta"),
        status=str(row.get("status") or "ativa"),
        stages=tuple(etapa.as_stage() for etapa in etapas),
        **{field: row.get(field) for field in _ADDRESS_FIELDS},
    )


def _optional_date(value: Any) -> str | None:
    """ISO date string for storage; blank clears, anything unreadable is rejected."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(code="date_invalid", payload={"value": str(value)})
    return parsed.isoformat()


def _optional_days(value: Any) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    days = parse_days(value)
    if days is None or days < 0:
        raise ValidationError(code="days_invalid", payload={"value": str(value)})
    return days


class ObraService:
    def __init__(self, catalog_service: CatalogService, timezone_name: str | None = None) -> None:
        self.catalog_service = catalog_service
        self.timezone_name = timezone_name

    def today(self) -> date:
        return today_in(self.timezone_name)

    @staticmethod
    def repository_for(user: AuthUser) -> ObraRepository:
        return ObraRepository(user_id=user.user_id, unrestricted=sees_every_owner(user))

    # Reads -------------------------------------------------------------------

    def load(self, db, user: AuthUser, obra_id: str) -> tuple[Obra, List[ObraEtapa]]:
        repository = self.repository_for(user)
        row = repository.get_by_id(db, obra_id)
        if row is None:
            raise NotFoundError(code="obra_not_found")
        etapas = [etapa_from_row(item) for item in repository.list_etapas(db, [obra_id])]
        return obra_from_rows(row, etapas), etapas

    def _obra_payload(self, obra: Obra, etapas: Sequence[ObraEtapa], today: date) -> Dict[str, Any]:
        payload = obra.to_dict()
        payload["etapas"] = [describe_etapa(etapa, today) for etapa in etapas]
        return payload

    def list_obras(self, db, user: AuthUser, today: date | None = None) -> Dict[str, Any]:
        current = today or self.today()
        repository = self.repository_for(user)
        rows = repository.list_all(db)
        etapas_by_obra: Dict[str, List[ObraEtapa]] = {}
        for item in repository.list_etapas(db, [str(row["id"]) for row in rows]):
            etapa = etapa_from_row(item)
            etapas_by_obra.setdefault(etapa.obra_id, []).append(etapa)
        obras = []
        for row in rows:
            etapas = etapas_by_obra.get(str(row["id"]), [])
            obras.append(self._obra_payload(obra_from_rows(row, etapas), etapas, current))
        return {"obras": obras}

    def get_obra(self, db, user: AuthUser, obra_id: str, today: date | None = None) -> Dict[str, Any]:
        obra, etapas = self.load(db, user, obra_id)
        return {"obra": self._obra_payload(obra, etapas, today or self.today())}

    # Writes ------------------------------------------------------------------

    def _obra_values(self, payload: Dict[str, Any], existing: Dict[str, Any] | None) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        if "nome" in payload or existing is None:
            nome = " ".join(str(payload.get("nome") or "").split())
            if not nome:
                raise ValidationError(code="nome_required")
            values["nome"] = nome
        if "status" in payload:
            status = str(payload.get("status") or "").strip().lower()
            if status not in status_keys_for_group("obra"):
                raise ValidationError(code="status_invalid", payload={"allowed": status_keys_for_group("obra")})
            values["status"] = status
        if "etapa" in payload:
            values["etapa"] = " ".join(str(payload.get("etapa") or "").split()) or None
        if "inicio_recebimento_oferta" in payload:
            values["inicio_recebimento_oferta"] = _optional_date(payload.get("inicio_recebimento_oferta"))
        for field in _ADDRESS_FIELDS:
            if field in payload:
                values[field] = str(payload.get(field) or "").strip() or None
        return values

    def create_obra(self, db, user: AuthUser, payload: Dict[str, Any]) -> ServiceOutput:
        obra_id = str(payload.get("id") or "").strip() or str(uuid.uuid4())
        repository = self.repository_for(user)
        existing = repository.get_by_id(db, obra_id)
        if existing is None and ObraRepository(unrestricted=True).get_by_id(db, obra_id) is not None:
            # Id taken by someone else's obra.
            raise ValidationError(code="validation_error", http_status=409, details="obra id em uso")
        values = self._obra_values(payload, existing)
        repository.upsert(db, obra_id=obra_id, user_id=existing["user_id"] if existing else user.user_id, values=values)
        if "etapas" in payload:
            self._write_etapas(db, repository, obra_id, payload.get("etapas"))
        db.commit()
        logger.info("obra_saved", extra={"obra_id": obra_id, "obra_created": existing is None})
        result = self.get_obra(db, user, obra_id)
        result["message"] = success_message("obra_saved")
        return ServiceOutput(payload=result, status_code=200 if existing else 201)

    def update_obra(self, db, user: AuthUser, obra_id: str, payload: Dict[str, Any]) -> ServiceOutput:
        repository = self.repository_for(user)
        existing = repository.get_by_id(db, obra_id)
        if existing is None:
            raise NotFoundError(code="obra_not_found")
        values = self._obra_values(payload, existing)
        repository.upsert(db, obra_id=obra_id, user_id=existing["user_id"], values=values)
        if "etapas" in payload:
            self._write_etapas(db, repository, obra_id, payload.get("etapas"))
        db.commit()
        result = self.get_obra(db, user, obra_id)
        result["message"] = success_message("obra_saved")
        return ServiceOutput(payload=result)

    def replace_etapas(self, db, user: AuthUser, obra_id: str, etapas: Any) -> ServiceOutput:
        repository = self.repository_for(user)
        if repository.get_by_id(db, obra_id) is None:
            raise NotFoundError(code="obra_not_found")
        self._write_etapas(db, repository, obra_id, etapas)
        db.commit()
        result = self.get_obra(db, user, obra_id)
        result["message"] = success_message("etapas_saved")
        return ServiceOutput(payload=result)

    def _write_etapas(self, db, repository: ObraRepository, obra_id: str, raw_etapas: Any) -> None:
        if not isinstance(raw_etapas, list):
            raise ValidationError(code="validation_error", details="etapas deve ser uma lista")
        graph = self.catalog_service.snapshot(db)
        rows = []
        for raw in raw_etapas:
            if not isinstance(raw, dict):
                raise ValidationError(code="validation_error", details="etapa invalida")
            fase_id = str(raw.get("fase_id") or "").strip() or None
            if fase_id and fase_id not in graph.fases:
                raise NotFoundError(code="fase_not_found", details=fase_id)
            nome = " ".join(str(raw.get("nome") or "").split())
            if not nome and fase_id:
                nome = graph.fases[fase_id].nome
            if not nome:
                raise ValidationError(code="nome_required")
            is_completed = bool(raw.get("is_completed"))
            rows.append(
                {
                    "id": str(raw.get("id") or "").strip() or str(uuid.uuid4()),
                    "fase_id": fase_id,
                    "nome": nome,
                    "data_prevista": _optional_date(raw.get("data_prevista")),
                    "dias_antecedencia_cotacao": _optional_days(raw.get("dias_antecedencia_cotacao")),
                    "is_completed": is_completed,
                    "data_conclusao": _optional_date(raw.get("data_conclusao")) if is_completed else None,
                }
            )
        repository.replace_etapas(db, obra_id, rows)

    def complete_etapa(self, db, user: AuthUser, obra_id: str, etapa_id: str, today: date | None = None) -> ServiceOutput:
        repository = self.repository_for(user)
        if repository.get_by_id(db, obra_id) is None:
            raise NotFoundError(code="obra_not_found")
        updated = repository.complete_etapa(db, obra_id, etapa_id, (today or self.today()).isoformat())
        if not updated:
            raise NotFoundError(code="etapa_not_found")
        db.commit()
        logger.info("obra_etapa_completed", extra={"obra_id": obra_id, "etapa_id": etapa_id})
        result = self.get_obra(db, user, obra_id, today)
        result["message"] = success_message("etapa_completed")
        return ServiceOutput(payload=result)

    # Eligibility -------------------------------------------------------------

    def eligible_phases(self, db, user: AuthUser, obra_id: str, today: date | None = None) -> Dict[str, Any]:
        current = today or self.today()
        obra, etapas = self.load(db, user, obra_id)
        graph = self.catalog_service.snapshot(db)
        eligible = eligible_fase_ids(graph.fases.values(), obra, current)
        return {
            "obra_id": obra.id,
            "hoje": current.isoformat(),
            "etapas": [describe_etapa(etapa, current) for etapa in etapas],
            "fases": [dict(fase.to_dict(), elegivel=fase.id in eligible) for fase in graph.fases_sorted()],
            "fase_ids_elegiveis": sorted(eligible, key=lambda fase_id: graph.fases[fase_id].cronologia),
        }

    def quotation_catalog(self, db, user: AuthUser, obra_id: str, query: str | None, today: date | None = None) -> Dict[str, Any]:
        obra, _etapas = self.load(db, user, obra_id)
        graph = self.catalog_service.snapshot(db, allow_empty=False)
        tree = quotation_tree(query, graph, obra, today or self.today())
        payload = tree.to_dict()
        payload["obra_id"] = obra.id
        return payload

    def validate_material(self, db, user: AuthUser, obra_id: str, material_id: str) -> Dict[str, Any]:
        obra, _etapas = self.load(db, user, obra_id)
        graph = self.catalog_service.snapshot(db)
        if material_id not in graph.materiais:
            raise NotFoundError(code="material_not_found")
        return validate_material_fase(material_id, obra, graph).to_dict()
