from __future__ import annotations

import logging
import time
import uuid
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List

from mercado_obras.catalog.graph import CatalogGraph, build_catalog_graph
from mercado_obras.catalog.search import filter_catalog
from mercado_obras.core import CatalogChanged, EventBus, get_event_bus
from mercado_obras.domain.contracts import ServiceOutput
from mercado_obras.errors import DataUnavailableError, NotFoundError, ValidationError
from mercado_obras.infrastructure.repositories import CatalogRepository
from mercado_obras.observability import observe_catalog_cache_hit, observe_catalog_snapshot_build
from mercado_obras.ui_strings import success_message


logger = logging.getLogger(__name__)

ENTITY_KINDS = ("fase", "servico", "grupo", "material")

# link kind -> (left entity, right entity)
LINK_KINDS = {
    "servico_fase": ("servico", "fase"),
    "servico_grupo": ("servico", "grupo"),
    "material_grupo": ("material", "grupo"),
}


def _clean_text(value: Any) -> str:
    return " ".join(str(value or "").split())


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


def _as_int(value: Any, code: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(code=code, http_status=400)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(code=code, http_status=400) from None


def _id_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValidationError(code="validation_error", details="lista de ids esperada")
    ids: Dict[str, None] = {}
    for item in value:
        cleaned = str(item or "").strip()
        if cleaned:
            ids[cleaned] = None
    return list(ids)


class CatalogService:
    """Catalog reads from a cached immutable snapshot plus catalog maintenance.

    The snapshot is rebuilt from one full read of the catalog tables; any write
    published through the event bus drops it, and ``ttl_seconds`` bounds how
    long another process's writes can stay invisible.
    """

    def __init__(
        self,
        repository: CatalogRepository | None = None,
        event_bus: EventBus | None = None,
        ttl_seconds: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.repository = repository or CatalogRepository()
        self.event_bus = event_bus or get_event_bus()
        self.ttl_seconds = max(0, int(ttl_seconds or 0))
        self._clock = clock
        self._lock = RLock()
        self._graph: CatalogGraph | None = None
        self._loaded_at = 0.0
        self.event_bus.subscribe(CatalogChanged, self.invalidate)

    # Snapshot ----------------------------------------------------------------

    def invalidate(self, _event: CatalogChanged | None = None) -> None:
        with self._lock:
            self._graph = None
            self._loaded_at = 0.0

    def _cached(self) -> CatalogGraph | None:
        with self._lock:
            if self._graph is None or not self.ttl_seconds:
                return None
            if self._clock() - self._loaded_at > self.ttl_seconds:
                self._graph = None
                return None
            return self._graph

    def snapshot(self, db, *, allow_empty: bool = True) -> CatalogGraph:
        graph = self._cached()
        if graph is not None:
            observe_catalog_cache_hit()
        else:
            graph = self._load(db)
        if graph.is_empty() and not allow_empty:
            raise DataUnavailableError(details="catalogo sem fases cadastradas")
        return graph

    def _load(self, db) -> CatalogGraph:
        started = time.perf_counter()
        try:
            rows = self.repository.load_rows(db)
            graph = build_catalog_graph(
                rows["fases"],
                rows["servicos"],
                rows["grupos"],
                rows["materiais"],
                servico_fase=rows["servico_fase"],
                servico_grupo=rows["servico_grupo"],
                material_grupo=rows["material_grupo"],
            )
        except Exception as exc:  # noqa: BLE001
            observe_catalog_snapshot_build("failed", (time.perf_counter() - started) * 1000.0)
            logger.exception("catalog_snapshot_failed")
            raise DataUnavailableError(details=str(exc)) from exc

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        observe_catalog_snapshot_build("ok", elapsed_ms, graph.dropped_links)
        logger.info(
            "catalog_snapshot_built",
            extra={
                "fases": len(graph.fases),
                "servicos": len(graph.servicos),
                "grupos": len(graph.grupos),
                "materiais": len(graph.materiais),
                "dropped_links": graph.dropped_links,
                "duration_ms": round(elapsed_ms, 2),
            },
        )
        with self._lock:
            self._graph = graph
            self._loaded_at = self._clock()
        return graph

    # Reads -------------------------------------------------------------------

    def tree(self, db, query: str | None) -> Dict[str, Any]:
        graph = self.snapshot(db, allow_empty=False)
        return filter_catalog(query, graph).to_dict()

    def material_relations(self, db, material_id: str) -> Dict[str, Any]:
        relations = self.snapshot(db).relations_for_material(material_id)
        if not relations:
            raise NotFoundError(code="material_not_found")
        return relations

    def group_relations(self, db, grupo_id: str) -> Dict[str, Any]:
        relations = self.snapshot(db).relations_for_group(grupo_id)
        if not relations:
            raise NotFoundError(code="grupo_not_found")
        return relations

    def listing(self, db) -> Dict[str, Any]:
        graph = self.snapshot(db)
        return {
            "fases": [fase.to_dict() for fase in graph.fases_sorted()],
            "servicos": [servico.to_dict() for servico in graph.servicos_sorted()],
            "grupos": [grupo.to_dict() for grupo in graph.grupos_sorted()],
            "materiais": [material.to_dict() for material in graph.materiais_sorted()],
        }

    # Writes ------------------------------------------------------------------

    def _publish(self, entity: str, entity_id: str, action: str) -> None:
        self.event_bus.publish(CatalogChanged(entity=entity, entity_id=entity_id, action=action))

    def _require(self, db, entity: str, entity_id: str) -> dict:
        row = self.repository.get(db, entity, entity_id)
        if row is None:
            raise NotFoundError(code=f"{entity}_not_found")
        return row

    def _require_all(self, db, entity: str, ids: Iterable[str]) -> None:
        for entity_id in ids:
            if not self.repository.exists(db, entity, entity_id):
                raise NotFoundError(code=f"{entity}_not_found", details=entity_id)

    @staticmethod
    def _resolve_id(payload: Dict[str, Any], entity_id: str | None) -> tuple[str, bool]:
        if entity_id:
            return entity_id, False
        supplied = str(payload.get("id") or "").strip()
        return supplied or str(uuid.uuid4()), True

    def _saved(self, db, entity: str, entity_id: str, created: bool) -> ServiceOutput:
        db.commit()
        self._publish(entity, entity_id, "create" if created else "update")
        return ServiceOutput(
            payload={
                entity: self.repository.get(db, entity, entity_id),
                "message": success_message("catalog_saved"),
            },
            status_code=201 if created else 200,
        )

    def save_fase(self, db, payload: Dict[str, Any], fase_id: str | None = None) -> ServiceOutput:
        existing = self.repository.get(db, "fase", fase_id) if fase_id else None
        if fase_id and existing is None:
            raise NotFoundError(code="fase_not_found")
        fase_id, created = self._resolve_id(payload, fase_id)
        existing = existing or self.repository.get(db, "fase", fase_id)
        created = created and existing is None

        nome = _clean_text(payload.get("nome", (existing or {}).get("nome")))
        if not nome:
            raise ValidationError(code="nome_required")
        raw_cronologia = payload.get("cronologia")
        if raw_cronologia is None or raw_cronologia == "":
            cronologia = int(existing["cronologia"]) if existing else self.repository.next_cronologia(db)
        else:
            cronologia = _as_int(raw_cronologia, "cronologia_invalid")
        holder = self.repository.fase_id_by_cronologia(db, cronologia)
        if holder is not None and holder != fase_id:
            raise ValidationError(code="cronologia_in_use", http_status=409, payload={"fase_id": holder})

        self.repository.upsert_fase(
            db,
            fase_id=fase_id,
            cronologia=cronologia,
            nome=nome,
            descricao=_optional_text(payload.get("descricao", (existing or {}).get("descricao"))),
        )
        return self._saved(db, "fase", fase_id, created)

    def save_servico(self, db, payload: Dict[str, Any], servico_id: str | None = None) -> ServiceOutput:
        existing = self.repository.get(db, "servico", servico_id) if servico_id else None
        if servico_id and existing is None:
            raise NotFoundError(code="servico_not_found")
        servico_id, created = self._resolve_id(payload, servico_id)
        existing = existing or self.repository.get(db, "servico", servico_id)
        created = created and existing is None

        nome = _clean_text(payload.get("nome", (existing or {}).get("nome")))
        if not nome:
            raise ValidationError(code="nome_required")
        raw_ordem = payload.get("ordem", (existing or {}).get("ordem", 0))
        ordem = _as_int(0 if raw_ordem in (None, "") else raw_ordem, "validation_error")
        fase_ids = _id_list(payload["fase_ids"]) if "fase_ids" in payload else None
        grupo_ids = _id_list(payload["grupo_ids"]) if "grupo_ids" in payload else None
        self._require_all(db, "fase", fase_ids or ())
        self._require_all(db, "grupo", grupo_ids or ())

        self.repository.upsert_servico(
            db,
            servico_id=servico_id,
            nome=nome,
            ordem=ordem,
            descricao=_optional_text(payload.get("descricao", (existing or {}).get("descricao"))),
        )
        if fase_ids is not None:
            self.repository.replace_links(db, "servico_fase", servico_id, fase_ids)
        if grupo_ids is not None:
            self.repository.replace_links(db, "servico_grupo", servico_id, grupo_ids)
        return self._saved(db, "servico", servico_id, created)

    def save_grupo(self, db, payload: Dict[str, Any], grupo_id: str | None = None) -> ServiceOutput:
        existing = self.repository.get(db, "grupo", grupo_id) if grupo_id else None
        if grupo_id and existing is None:
            raise NotFoundError(code="grupo_not_found")
        grupo_id, created = self._resolve_id(payload, grupo_id)
        existing = existing or self.repository.get(db, "grupo", grupo_id)
        created = created and existing is None

        nome = _clean_text(payload.get("nome", (existing or {}).get("nome")))
        if not nome:
            raise ValidationError(code="nome_required")
        self.repository.upsert_grupo(
            db,
            grupo_id=grupo_id,
            nome=nome,
            descricao=_optional_text(payload.get("descricao", (existing or {}).get("descricao"))),
        )
        return self._saved(db, "grupo", grupo_id, created)

    def save_material(self, db, payload: Dict[str, Any], material_id: str | None = None) -> ServiceOutput:
        existing = self.repository.get(db, "material", material_id) if material_id else None
        if material_id and existing is None:
            raise NotFoundError(code="material_not_found")
        material_id, created = self._resolve_id(payload, material_id)
        existing = existing or self.repository.get(db, "material", material_id)
        created = created and existing is None

        nome = _clean_text(payload.get("nome", (existing or {}).get("nome")))
        if not nome:
            raise ValidationError(code="nome_required")
        unidade = _clean_text(payload.get("unidade", (existing or {}).get("unidade")))
        if not unidade:
            raise ValidationError(code="unidade_required")
        grupo_ids = _id_list(payload["grupo_ids"]) if "grupo_ids" in payload else None
        self._require_all(db, "grupo", grupo_ids or ())

        self.repository.upsert_material(
            db,
            material_id=material_id,
            nome=nome,
            unidade=unidade,
            descricao=_optional_text(payload.get("descricao", (existing or {}).get("descricao"))),
        )
        if grupo_ids is not None:
            self.repository.replace_links(db, "material_grupo", material_id, grupo_ids)
        return self._saved(db, "material", material_id, created)

    def delete(self, db, entity: str, entity_id: str) -> ServiceOutput:
        self._require(db, entity, entity_id)
        result = self.repository.delete(db, entity, entity_id)
        db.commit()
        self._publish(entity, entity_id, "delete")
        logger.info(
            "catalog_entity_deleted",
            extra={"entity": entity, "entity_id": entity_id, "detached": result["detached"]},
        )
        return ServiceOutput(
            payload={
                "id": entity_id,
                "entity": entity,
                "detached": result["detached"],
                "message": success_message("catalog_deleted"),
            }
        )

    def reorder_fases(self, db, fase_ids: Any) -> ServiceOutput:
        ordered = _id_list(fase_ids)
        current = self.repository.all_fase_ids(db)
        if not ordered or sorted(ordered) != sorted(current):
            raise ValidationError(code="fase_ids_required", payload={"fase_ids": current})
        self.repository.reorder_fases(db, ordered)
        db.commit()
        self._publish("fase", "", "reorder")
        return ServiceOutput(
            payload={
                "fases": [{"id": fase_id, "cronologia": position} for position, fase_id in enumerate(ordered, 1)],
                "message": success_message("catalog_saved"),
            }
        )

    def link(self, db, kind: str, left_id: str, right_id: str) -> ServiceOutput:
        left, right = LINK_KINDS[kind]
        self._require(db, left, left_id)
        self._require(db, right, right_id)
        self.repository.link(db, kind, left_id, right_id)
        db.commit()
        self._publish(left, left_id, "link")
        return ServiceOutput(
            payload={
                f"{left}_id": left_id,
                f"{right}_id": right_id,
                "message": success_message("link_saved"),
            }
        )

    def unlink(self, db, kind: str, left_id: str, right_id: str) -> ServiceOutput:
        left, right = LINK_KINDS[kind]
        removed = self.repository.unlink(db, kind, left_id, right_id)
        db.commit()
        if removed:
            self._publish(left, left_id, "unlink")
        return ServiceOutput(
            payload={
                f"{left}_id": left_id,
                f"{right}_id": right_id,
                "removed": bool(removed),
                "message": success_message("link_removed"),
            }
        )
