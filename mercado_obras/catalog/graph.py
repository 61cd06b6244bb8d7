"""Immutable catalog snapshot: Fase -> Servico -> GrupoInsumo -> Material.

The store hands back flat, unordered rows. ``build_catalog_graph`` turns them
into adjacency indexes keyed by id, once per load, so that tree rendering and
cross lookups ("which phases use material X") are dictionary reads instead of
repeated scans.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from mercado_obras.domain.contracts import Fase, GrupoInsumo, Material, Servico


logger = logging.getLogger(__name__)


def _field(row: Any, name: str, default: Any = None) -> Any:
    if isinstance(row, Mapping):
        return row.get(name, default)
    return getattr(row, name, default)


def _as_id(value: Any) -> str:
    return str(value or "").strip()


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _ids(values: Any) -> Tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        values = [values]
    return tuple(_as_id(value) for value in values if _as_id(value))


def _fase_from_row(row: Any) -> Fase:
    if isinstance(row, Fase):
        return row
    return Fase(
        id=_as_id(_field(row, "id")),
        cronologia=_as_int(_field(row, "cronologia")),
        nome=str(_field(row, "nome") or ""),
        descricao=_field(row, "descricao"),
    )


def _servico_from_row(row: Any) -> Servico:
    if isinstance(row, Servico):
        return row
    return Servico(
        id=_as_id(_field(row, "id")),
        nome=str(_field(row, "nome") or ""),
        ordem=_as_int(_field(row, "ordem")),
        descricao=_field(row, "descricao"),
        fase_ids=_ids(_field(row, "fase_ids")),
        grupo_ids=_ids(_field(row, "grupo_ids")),
    )


def _grupo_from_row(row: Any) -> GrupoInsumo:
    if isinstance(row, GrupoInsumo):
        return row
    return GrupoInsumo(
        id=_as_id(_field(row, "id")),
        nome=str(_field(row, "nome") or ""),
        descricao=_field(row, "descricao"),
    )


def _material_from_row(row: Any) -> Material:
    if isinstance(row, Material):
        return row
    return Material(
        id=_as_id(_field(row, "id")),
        nome=str(_field(row, "nome") or ""),
        unidade=str(_field(row, "unidade") or ""),
        descricao=_field(row, "descricao"),
        grupo_ids=_ids(_field(row, "grupo_ids")),
    )


def _fase_key(fase: Fase) -> tuple:
    return (fase.cronologia, fase.id)


def _servico_key(servico: Servico) -> tuple:
    return (servico.ordem, servico.nome.casefold(), servico.id)


def _nome_key(item: Any) -> tuple:
    return (item.nome.casefold(), item.id)


class _LinkSet:
    """Ordered, de-duplicated many-to-many edges between two id spaces."""

    def __init__(self) -> None:
        self.forward: Dict[str, Dict[str, None]] = {}
        self.backward: Dict[str, Dict[str, None]] = {}

    def add(self, left: str, right: str) -> None:
        self.forward.setdefault(left, {})[right] = None
        self.backward.setdefault(right, {})[left] = None

    def right_of(self, left: str) -> List[str]:
        return list(self.forward.get(left, {}))

    def left_of(self, right: str) -> List[str]:
        return list(self.backward.get(right, {}))


def _collect_links(
    links: _LinkSet,
    rows: Iterable[Any],
    *,
    left_field: str,
    right_field: str,
    left_ids: Mapping[str, Any],
    right_ids: Mapping[str, Any],
) -> int:
    dropped = 0
    for row in rows or ():
        left = _as_id(_field(row, left_field))
        right = _as_id(_field(row, right_field))
        if left not in left_ids or right not in right_ids:
            dropped += 1
            continue
        links.add(left, right)
    return dropped


@dataclass(frozen=True)
class CatalogGraph:
    fases: Dict[str, Fase]
    servicos: Dict[str, Servico]
    grupos: Dict[str, GrupoInsumo]
    materiais: Dict[str, Material]

    services_by_phase: Dict[str, Tuple[Servico, ...]]
    phases_by_service: Dict[str, Tuple[Fase, ...]]
    groups_by_service: Dict[str, Tuple[GrupoInsumo, ...]]
    services_by_group: Dict[str, Tuple[Servico, ...]]
    materials_by_group: Dict[str, Tuple[Material, ...]]
    groups_by_material: Dict[str, Tuple[GrupoInsumo, ...]]

    phases_by_group: Dict[str, Tuple[Fase, ...]]
    services_by_material: Dict[str, Tuple[Servico, ...]]
    phases_by_material: Dict[str, Tuple[Fase, ...]]

    dropped_links: int = 0

    def fases_sorted(self) -> List[Fase]:
        return sorted(self.fases.values(), key=_fase_key)

    def grupos_sorted(self) -> List[GrupoInsumo]:
        return sorted(self.grupos.values(), key=_nome_key)

    def materiais_sorted(self) -> List[Material]:
        return sorted(self.materiais.values(), key=_nome_key)

    def servicos_sorted(self) -> List[Servico]:
        return sorted(self.servicos.values(), key=_servico_key)

    def is_empty(self) -> bool:
        return not self.fases

    def earliest_phase_for_material(self, material_id: str) -> Fase | None:
        phases = self.phases_by_material.get(material_id, ())
        return phases[0] if phases else None

    def relations_for_material(self, material_id: str) -> Dict[str, Any]:
        material = self.materiais.get(material_id)
        if material is None:
            return {}
        servicos = self.services_by_material.get(material_id, ())
        fases = self.phases_by_material.get(material_id, ())
        grupos = self.groups_by_material.get(material_id, ())
        earliest = fases[0] if fases else None
        return {
            "material": material.to_dict(),
            "grupos": [grupo.to_dict() for grupo in grupos],
            "servicos": [servico.to_dict() for servico in servicos],
            "fases": [fase.to_dict() for fase in fases],
            "fase_inicial": earliest.to_dict() if earliest else None,
            "counts": {"grupos": len(grupos), "servicos": len(servicos), "fases": len(fases)},
        }

    def relations_for_group(self, grupo_id: str) -> Dict[str, Any]:
        grupo = self.grupos.get(grupo_id)
        if grupo is None:
            return {}
        servicos = self.services_by_group.get(grupo_id, ())
        fases = self.phases_by_group.get(grupo_id, ())
        materiais = self.materials_by_group.get(grupo_id, ())
        return {
            "grupo": grupo.to_dict(),
            "servicos": [servico.to_dict() for servico in servicos],
            "fases": [fase.to_dict() for fase in fases],
            "materiais": [material.to_dict() for material in materiais],
            "counts": {"servicos": len(servicos), "fases": len(fases), "materiais": len(materiais)},
        }


def _unique_by_id(items: Iterable[Any]) -> List[Any]:
    seen: Dict[str, Any] = {}
    for item in items:
        seen.setdefault(item.id, item)
    return list(seen.values())


def build_catalog_graph(
    fases: Iterable[Any],
    servicos: Iterable[Any],
    grupos: Iterable[Any],
    materiais: Iterable[Any],
    servico_fase: Iterable[Any] = (),
    servico_grupo: Iterable[Any] = (),
    material_grupo: Iterable[Any] = (),
) -> CatalogGraph:
    fase_map = {fase.id: fase for fase in map(_fase_from_row, fases or ()) if fase.id}
    servico_rows = [servico for servico in map(_servico_from_row, servicos or ()) if servico.id]
    grupo_map = {grupo.id: grupo for grupo in map(_grupo_from_row, grupos or ()) if grupo.id}
    material_rows = [material for material in map(_material_from_row, materiais or ()) if material.id]
    servico_ids = {servico.id: None for servico in servico_rows}
    material_ids = {material.id: None for material in material_rows}

    servico_fase_links = _LinkSet()
    servico_grupo_links = _LinkSet()
    material_grupo_links = _LinkSet()

    # Ids embedded in the entity rows count as junction rows.
    embedded_servico_fase = [
        {"servico_id": servico.id, "fase_id": fase_id} for servico in servico_rows for fase_id in servico.fase_ids
    ]
    embedded_servico_grupo = [
        {"servico_id": servico.id, "grupo_id": grupo_id} for servico in servico_rows for grupo_id in servico.grupo_ids
    ]
    embedded_material_grupo = [
        {"material_id": material.id, "grupo_id": grupo_id}
        for material in material_rows
        for grupo_id in material.grupo_ids
    ]

    dropped = 0
    for rows in (embedded_servico_fase, servico_fase):
        dropped += _collect_links(
            servico_fase_links,
            rows,
            left_field="servico_id",
            right_field="fase_id",
            left_ids=servico_ids,
            right_ids=fase_map,
        )
    for rows in (embedded_servico_grupo, servico_grupo):
        dropped += _collect_links(
            servico_grupo_links,
            rows,
            left_field="servico_id",
            right_field="grupo_id",
            left_ids=servico_ids,
            right_ids=grupo_map,
        )
    for rows in (embedded_material_grupo, material_grupo):
        dropped += _collect_links(
            material_grupo_links,
            rows,
            left_field="material_id",
            right_field="grupo_id",
            left_ids=material_ids,
            right_ids=grupo_map,
        )
    if dropped:
        logger.debug("catalog_orphan_links_dropped", extra={"dropped_links": dropped})

    servico_map = {
        servico.id: replace(
            servico,
            fase_ids=tuple(servico_fase_links.right_of(servico.id)),
            grupo_ids=tuple(servico_grupo_links.right_of(servico.id)),
        )
        for servico in servico_rows
    }
    material_map = {
        material.id: replace(material, grupo_ids=tuple(material_grupo_links.right_of(material.id)))
        for material in material_rows
    }

    services_by_phase = {
        fase_id: tuple(
            sorted((servico_map[sid] for sid in servico_fase_links.left_of(fase_id)), key=_servico_key)
        )
        for fase_id in fase_map
    }
    phases_by_service = {
        sid: tuple(sorted((fase_map[fid] for fid in servico_fase_links.right_of(sid)), key=_fase_key))
        for sid in servico_map
    }
    groups_by_service = {
        sid: tuple(sorted((grupo_map[gid] for gid in servico_grupo_links.right_of(sid)), key=_nome_key))
        for sid in servico_map
    }
    services_by_group = {
        gid: tuple(sorted((servico_map[sid] for sid in servico_grupo_links.left_of(gid)), key=_servico_key))
        for gid in grupo_map
    }
    materials_by_group = {
        gid: tuple(sorted((material_map[mid] for mid in material_grupo_links.left_of(gid)), key=_nome_key))
        for gid in grupo_map
    }
    groups_by_material = {
        mid: tuple(sorted((grupo_map[gid] for gid in material_grupo_links.right_of(mid)), key=_nome_key))
        for mid in material_map
    }

    # One hop through the direct maps; every path is walked, duplicates collapse by id.
    phases_by_group = {
        gid: tuple(
            sorted(
                _unique_by_id(fase for servico in services_by_group[gid] for fase in phases_by_service[servico.id]),
                key=_fase_key,
            )
        )
        for gid in grupo_map
    }
    services_by_material = {
        mid: tuple(
            sorted(
                _unique_by_id(servico for grupo in groups_by_material[mid] for servico in services_by_group[grupo.id]),
                key=_servico_key,
            )
        )
        for mid in material_map
    }
    phases_by_material = {
        mid: tuple(
            sorted(
                _unique_by_id(
                    fase for servico in services_by_material[mid] for fase in phases_by_service[servico.id]
                ),
                key=_fase_key,
            )
        )
        for mid in material_map
    }

    return CatalogGraph(
        fases=fase_map,
        servicos=servico_map,
        grupos=grupo_map,
        materiais=material_map,
        services_by_phase=services_by_phase,
        phases_by_service=phases_by_service,
        groups_by_service=groups_by_service,
        services_by_group=services_by_group,
        materials_by_group=materials_by_group,
        groups_by_material=groups_by_material,
        phases_by_group=phases_by_group,
        services_by_material=services_by_material,
        phases_by_material=phases_by_material,
        dropped_links=dropped,
    )


def empty_catalog_graph() -> CatalogGraph:
    return build_catalog_graph((), (), (), ())
