from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List

from mercado_obras.application.catalog_service import CatalogService
from mercado_obras.application.obra_service import ObraService
from mercado_obras.catalog.eligibility import normalize_name
from mercado_obras.catalog.graph import CatalogGraph
from mercado_obras.catalog.search import validate_material_fase
from mercado_obras.core import CotacaoEnviada, EventBus, get_event_bus
from mercado_obras.critical_actions import confirmation_required_error
from mercado_obras.domain.contracts import AuthUser, CartItem, CotacaoSubmitInput, Obra, ServiceOutput
from mercado_obras.errors import NotFoundError, ValidationError
from mercado_obras.infrastructure.repositories import CotacaoRepository, FornecedorRepository, ObraRepository
from mercado_obras.observability import observe_cotacao_submitted
from mercado_obras.policies import inbox_fornecedor_id, require_obra_access, sees_every_owner
from mercado_obras.ui_strings import get_ui_text, success_message


logger = logging.getLogger(__name__)


def _as_quantity(value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(code="quantity_invalid")
    try:
        quantity = float(str(value).replace(",", ".")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        raise ValidationError(code="quantity_invalid", payload={"value": str(value)}) from None
    if not quantity > 0 or quantity == float("inf"):
        raise ValidationError(code="quantity_invalid", payload={"value": str(value)})
    return quantity


def parse_cart_items(raw_items: Any) -> List[CartItem]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError(code="items_required")
    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ValidationError(code="validation_error", details="item invalido")
        items.append(
            CartItem(
                nome=" ".join(str(raw.get("nome") or "").split()),
                quantidade=_as_quantity(raw.get("quantidade")),
                unidade=" ".join(str(raw.get("unidade") or "").split()),
                material_id=str(raw.get("material_id") or "").strip() or None,
                grupo=" ".join(str(raw.get("grupo") or "").split()) or None,
                fase_id=str(raw.get("fase_id") or "").strip() or None,
                servico_id=str(raw.get("servico_id") or "").strip() or None,
                observacao=str(raw.get("observacao") or "").strip() or None,
            )
        )
    return items


class QuotationService:
    def __init__(
        self,
        catalog_service: CatalogService,
        obra_service: ObraService,
        event_bus: EventBus | None = None,
    ) -> None:
        self.catalog_service = catalog_service
        self.obra_service = obra_service
        self.event_bus = event_bus or get_event_bus()

    @staticmethod
    def _repository_for(user: AuthUser) -> CotacaoRepository:
        return CotacaoRepository(user_id=user.user_id, unrestricted=sees_every_owner(user))

    # Cart --------------------------------------------------------------------

    def _resolve_item(self, item: CartItem, graph: CatalogGraph) -> Dict[str, Any]:
        """Fill blanks from the catalog material; free-text items pass as typed."""
        row = {
            "id": str(uuid.uuid4()),
            "material_id": item.material_id,
            "nome": item.nome,
            "quantidade": item.quantidade,
            "unidade": item.unidade,
            "grupo": item.grupo,
            "fase_id": item.fase_id,
            "servico_id": item.servico_id,
            "observacao": item.observacao,
        }
        if item.material_id:
            material = graph.materiais.get(item.material_id)
            if material is None:
                raise NotFoundError(code="material_not_found", details=item.material_id)
            row["nome"] = row["nome"] or material.nome
            row["unidade"] = row["unidade"] or material.unidade
            grupos = graph.groups_by_material.get(material.id, ())
            if not row["grupo"] and grupos:
                row["grupo"] = grupos[0].nome
        if not row["nome"]:
            raise ValidationError(code="nome_required")
        if not row["unidade"]:
            raise ValidationError(code="unidade_required")
        return row

    @staticmethod
    def phase_warnings(items: List[CartItem], obra: Obra, graph: CatalogGraph) -> List[Dict[str, Any]]:
        warnings = []
        seen = set()
        for item in items:
            if not item.material_id or item.material_id in seen or item.material_id not in graph.materiais:
                continue
            seen.add(item.material_id)
            check = validate_material_fase(item.material_id, obra, graph)
            if not check.ok:
                warning = check.to_dict()
                warning["nome"] = graph.materiais[item.material_id].nome
                warning["message"] = get_ui_text("warning.material_outside_phase")
                warnings.append(warning)
        return warnings

    def submit_cart(self, db, user: AuthUser, submit: CotacaoSubmitInput) -> ServiceOutput:
        require_obra_access(role=user.role)
        obra, _etapas = self.obra_service.load(db, user, submit.obra_id)
        repository = self._repository_for(user)

        if submit.cotacao_id:
            existing = repository.get_by_id(db, submit.cotacao_id)
            if existing is not None:
                observe_cotacao_submitted("duplicate")
                return ServiceOutput(payload=self._with_items(db, repository, [existing], message_key="cotacao_already_sent"))
            if repository.exists_any_owner(db, submit.cotacao_id):
                raise ValidationError(code="validation_error", http_status=409, details="cotacao id em uso")

        graph = self.catalog_service.snapshot(db)
        rows = [self._resolve_item(item, graph) for item in submit.items]
        warnings = self.phase_warnings(submit.items, obra, graph)
        if warnings and not submit.confirmed:
            observe_cotacao_submitted("confirmation_required")
            raise confirmation_required_error("submit_out_of_phase", warnings=warnings)

        cotacao_id = submit.cotacao_id or str(uuid.uuid4())
        inserted = repository.insert_with_items(
            db,
            cotacao_id=cotacao_id,
            user_id=obra.user_id if sees_every_owner(user) else user.user_id,
            obra_id=obra.id,
            items=rows,
        )
        db.commit()
        stored = repository.get_by_id(db, cotacao_id)
        if not inserted:
            # Lost a race with a retry of the same submission.
            observe_cotacao_submitted("duplicate")
            return ServiceOutput(payload=self._with_items(db, repository, [stored], message_key="cotacao_already_sent"))

        observe_cotacao_submitted("created")
        self.event_bus.publish(CotacaoEnviada(cotacao_id=cotacao_id, obra_id=obra.id, item_count=len(rows)))
        logger.info(
            "cotacao_submitted",
            extra={"cotacao_id": cotacao_id, "obra_id": obra.id, "items": len(rows), "warnings": len(warnings)},
        )
        payload = self._with_items(db, repository, [stored], message_key="cotacao_sent")
        payload["warnings"] = warnings
        return ServiceOutput(payload=payload, status_code=201)

    @staticmethod
    def _attach_items(db, repository: CotacaoRepository, cotacoes: List[dict]) -> List[dict]:
        items_by_cotacao: Dict[str, List[dict]] = {}
        for item in repository.list_items(db, [str(row["id"]) for row in cotacoes]):
            items_by_cotacao.setdefault(str(item["cotacao_id"]), []).append(item)
        return [dict(row, itens=items_by_cotacao.get(str(row["id"]), [])) for row in cotacoes]

    def _with_items(self, db, repository: CotacaoRepository, cotacoes: List[dict], *, message_key: str) -> Dict[str, Any]:
        cotacao = self._attach_items(db, repository, cotacoes)[0]
        return {"cotacao": cotacao, "message": success_message(message_key)}

    def list_cotacoes(self, db, user: AuthUser, obra_id: str | None = None) -> Dict[str, Any]:
        repository = self._repository_for(user)
        return {"cotacoes": self._attach_items(db, repository, repository.list_all(db, obra_id=obra_id))}

    # Supplier inbox ----------------------------------------------------------

    def supplier_inbox(self, db, user: AuthUser, fornecedor_id: str | None = None) -> Dict[str, Any]:
        """Sent cotacoes touching the supplier's material groups.

        Suspended suppliers and suppliers without any group see an empty inbox.
        """
        fornecedor_id = inbox_fornecedor_id(user, fornecedor_id)

        empty = {"data": [], "fornecedor_id": fornecedor_id, "grupos": []}
        if not fornecedor_id:
            return dict(empty, fornecedor_status="not_found")
        fornecedores = FornecedorRepository()
        fornecedor = fornecedores.get_by_id(db, fornecedor_id)
        if fornecedor is None:
            return dict(empty, fornecedor_status="not_found")
        status = str(fornecedor.get("status") or "ativo")
        if status == "suspenso":
            return dict(empty, fornecedor_status=status)

        grupos = fornecedores.grupos_of(db, fornecedor_id)
        if not grupos:
            return dict(empty, fornecedor_status=status)

        repository = CotacaoRepository(unrestricted=True)
        grupo_ids = [str(grupo["id"]) for grupo in grupos]
        grupo_nomes = [str(grupo["nome"]) for grupo in grupos]
        candidates = self._attach_items(db, repository, repository.list_sent_candidates(db, grupo_ids))

        graph = self.catalog_service.snapshot(db)
        grupo_id_set = set(grupo_ids)
        nome_set = {normalize_name(nome) for nome in grupo_nomes}
        obras = ObraRepository(unrestricted=True)
        cotacoes = []
        for cotacao in candidates:
            for item in cotacao["itens"]:
                material_grupos = {grupo.id for grupo in graph.groups_by_material.get(str(item.get("material_id")), ())}
                item["relevante"] = bool(material_grupos & grupo_id_set) or normalize_name(item.get("grupo")) in nome_set
            if not any(item["relevante"] for item in cotacao["itens"]):
                continue
            cotacoes.append(cotacao)
            obra = obras.get_by_id(db, str(cotacao["obra_id"]))
            cotacao["obra"] = (
                {key: obra.get(key) for key in ("id", "nome", "cidade", "estado", "bairro", "etapa")} if obra else None
            )
        return {
            "data": cotacoes,
            "fornecedor_id": fornecedor_id,
            "fornecedor_status": status,
            "grupos": grupos,
        }
