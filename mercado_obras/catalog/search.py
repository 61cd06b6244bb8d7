from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Tuple

from mercado_obras.catalog.eligibility import eligible_fase_ids, normalize_name
from mercado_obras.catalog.graph import CatalogGraph
from mercado_obras.domain.contracts import Fase, GrupoInsumo, Material, Obra, Servico


@dataclass(frozen=True)
class GrupoNode:
    grupo: GrupoInsumo
    materiais: Tuple[Material, ...]

    def to_dict(self) -> Dict[str, Any]:
        payload = self.grupo.to_dict()
        payload["materiais"] = [material.to_dict() for material in self.materiais]
        payload["counts"] = {"materiais": len(self.materiais)}
        return payload


@dataclass(frozen=True)
class ServicoNode:
    servico: Servico
    grupos: Tuple[GrupoNode, ...]

    def material_ids(self) -> frozenset:
        return frozenset(material.id for grupo in self.grupos for material in grupo.materiais)

    def to_dict(self) -> Dict[str, Any]:
        payload = self.servico.to_dict()
        payload["grupos"] = [grupo.to_dict() for grupo in self.grupos]
        payload["counts"] = {"grupos": len(self.grupos), "materiais": len(self.material_ids())}
        return payload


@dataclass(frozen=True)
class FaseNode:
    fase: Fase
    servicos: Tuple[ServicoNode, ...]
    elegivel: bool | None = None

    def grupo_ids(self) -> frozenset:
        return frozenset(grupo.grupo.id for servico in self.servicos for grupo in servico.grupos)

    def material_ids(self) -> frozenset:
        ids = set()
        for servico in self.servicos:
            ids.update(servico.material_ids())
        return frozenset(ids)

    def to_dict(self) -> Dict[str, Any]:
        payload = self.fase.to_dict()
        payload["servicos"] = [servico.to_dict() for servico in self.servicos]
        payload["counts"] = {
            "servicos": len(self.servicos),
            "grupos": len(self.grupo_ids()),
            "materiais": len(self.material_ids()),
        }
        if self.elegivel is not None:
            payload["elegivel"] = self.elegivel
        return payload


@dataclass(frozen=True)
class CatalogTree:
    query: str
    fases: Tuple[FaseNode, ...]

    def ids(self) -> Dict[str, frozenset]:
        servicos, grupos, materiais = set(), set(), set()
        for fase in self.fases:
            for servico in fase.servicos:
                servicos.add(servico.servico.id)
                for grupo in servico.grupos:
                    grupos.add(grupo.grupo.id)
                    materiais.update(material.id for material in grupo.materiais)
        return {
            "fases": frozenset(fase.fase.id for fase in self.fases),
            "servicos": frozenset(servicos),
            "grupos": frozenset(grupos),
            "materiais": frozenset(materiais),
        }

    def to_dict(self) -> Dict[str, Any]:
        ids = self.ids()
        return {
            "query": self.query,
            "fases": [fase.to_dict() for fase in self.fases],
            "counts": {key: len(value) for key, value in ids.items()},
        }


@dataclass(frozen=True)
class MaterialPhaseCheck:
    ok: bool
    material_id: str
    fase_inicial: Fase | None = None
    obra_etapa: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "material_id": self.material_id,
            "fase_inicial": self.fase_inicial.to_dict() if self.fase_inicial else None,
            "obra_etapa": self.obra_etapa,
            "warning": None if self.ok else "material_outside_phase",
        }


def _contains(text: Any, needle: str) -> bool:
    return needle in str(text or "").casefold()


def _material_matches(material: Material, needle: str, graph: CatalogGraph) -> bool:
    if _contains(material.nome, needle) or _contains(material.unidade, needle):
        return True
    return any(_contains(grupo.nome, needle) for grupo in graph.groups_by_material.get(material.id, ()))


def filter_catalog(
    query: str | None,
    graph: CatalogGraph,
    *,
    fase_ids: Iterable[str] | None = None,
    eligible: Iterable[str] | None = None,
) -> CatalogTree:
    """Search the hierarchy, keeping every ancestor of a match.

    Matching runs bottom-up (material, group, service, phase). A node whose own
    name matches carries its whole subtree; otherwise only the matching branches
    below it survive. ``fase_ids`` restricts the phases considered at all.
    """
    needle = str(query or "").strip().casefold()
    allowed = None if fase_ids is None else frozenset(fase_ids)
    eligible_set = None if eligible is None else frozenset(eligible)
    matching_materials = (
        {mid for mid, material in graph.materiais.items() if _material_matches(material, needle, graph)}
        if needle
        else set(graph.materiais)
    )

    def grupo_node(grupo: GrupoInsumo, inherited: bool) -> GrupoNode | None:
        whole = inherited or _contains(grupo.nome, needle)
        materiais = tuple(
            material
            for material in graph.materials_by_group.get(grupo.id, ())
            if whole or material.id in matching_materials
        )
        if whole or materiais:
            return GrupoNode(grupo=grupo, materiais=materiais)
        return None

    def servico_node(servico: Servico, inherited: bool) -> ServicoNode | None:
        whole = inherited or _contains(servico.nome, needle)
        grupos = tuple(
            node
            for node in (grupo_node(grupo, whole) for grupo in graph.groups_by_service.get(servico.id, ()))
            if node is not None
        )
        if whole or grupos:
            return ServicoNode(servico=servico, grupos=grupos)
        return None

    nodes: List[FaseNode] = []
    for fase in graph.fases_sorted():
        if allowed is not None and fase.id not in allowed:
            continue
        whole = not needle or _contains(fase.nome, needle)
        servicos = tuple(
            node
            for node in (servico_node(servico, whole) for servico in graph.services_by_phase.get(fase.id, ()))
            if node is not None
        )
        if whole or servicos:
            nodes.append(
                FaseNode(
                    fase=fase,
                    servicos=servicos,
                    elegivel=None if eligible_set is None else fase.id in eligible_set,
                )
            )
    return CatalogTree(query=needle, fases=tuple(nodes))


def quotation_tree(query: str | None, graph: CatalogGraph, obra: Obra, today: date | None = None) -> CatalogTree:
    """Phases open for quotes in ``obra`` intersected with the search."""
    eligible = eligible_fase_ids(graph.fases.values(), obra, today)
    return filter_catalog(query, graph, fase_ids=eligible, eligible=eligible)


def validate_material_fase(material: Material | str, obra: Obra, graph: CatalogGraph) -> MaterialPhaseCheck:
    material_id = material if isinstance(material, str) else material.id
    earliest = graph.earliest_phase_for_material(material_id)
    etapa = (obra.etapa or "").strip() or None
    if earliest is None or etapa is None:
        return MaterialPhaseCheck(ok=True, material_id=material_id, fase_inicial=earliest, obra_etapa=etapa)
    return MaterialPhaseCheck(
        ok=normalize_name(earliest.nome) == normalize_name(etapa),
        material_id=material_id,
        fase_inicial=earliest,
        obra_etapa=etapa,
    )
