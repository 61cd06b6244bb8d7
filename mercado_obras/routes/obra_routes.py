from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from mercado_obras.application.obra_service import ObraService
from mercado_obras.application.quotation_service import QuotationService, parse_cart_items
from mercado_obras.auth import current_user
from mercado_obras.critical_actions import resolve_confirmation
from mercado_obras.db import get_db
from mercado_obras.domain.contracts import CotacaoSubmitInput
from mercado_obras.errors import ValidationError
from mercado_obras.policies import require_inbox_access, require_obra_access


obra_bp = Blueprint("obras", __name__)


def _obra_service() -> ObraService:
    return current_app.extensions["mercado_obras"]["obras"]


def _quotation_service() -> QuotationService:
    return current_app.extensions["mercado_obras"]["cotacoes"]


def _json_payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


@obra_bp.get("/api/obras")
def list_obras():
    require_obra_access()
    return jsonify(_obra_service().list_obras(get_db(), current_user())), 200


@obra_bp.post("/api/obras")
def create_obra():
    require_obra_access()
    result = _obra_service().create_obra(get_db(), current_user(), _json_payload())
    return jsonify(result.payload), result.status_code


@obra_bp.get("/api/obras/<obra_id>")
def get_obra(obra_id: str):
    require_obra_access()
    return jsonify(_obra_service().get_obra(get_db(), current_user(), obra_id)), 200


@obra_bp.patch("/api/obras/<obra_id>")
def update_obra(obra_id: str):
    require_obra_access()
    result = _obra_service().update_obra(get_db(), current_user(), obra_id, _json_payload())
    return jsonify(result.payload), result.status_code


@obra_bp.put("/api/obras/<obra_id>/etapas")
def replace_etapas(obra_id: str):
    require_obra_access()
    payload = request.get_json(silent=True)
    etapas = payload.get("etapas") if isinstance(payload, dict) else payload
    result = _obra_service().replace_etapas(get_db(), current_user(), obra_id, etapas)
    return jsonify(result.payload), result.status_code


@obra_bp.post("/api/obras/<obra_id>/etapas/<etapa_id>/concluir")
def complete_etapa(obra_id: str, etapa_id: str):
    require_obra_access()
    result = _obra_service().complete_etapa(get_db(), current_user(), obra_id, etapa_id)
    return jsonify(result.payload), result.status_code


@obra_bp.get("/api/obras/<obra_id>/fases-elegiveis")
def eligible_phases(obra_id: str):
    require_obra_access()
    return jsonify(_obra_service().eligible_phases(get_db(), current_user(), obra_id)), 200


@obra_bp.get("/api/obras/<obra_id>/catalogo")
def quotation_catalog(obra_id: str):
    require_obra_access()
    payload = _obra_service().quotation_catalog(get_db(), current_user(), obra_id, request.args.get("q"))
    return jsonify(payload), 200


@obra_bp.post("/api/obras/<obra_id>/validar-material")
def validate_material(obra_id: str):
    require_obra_access()
    material_id = str(_json_payload().get("material_id") or "").strip()
    if not material_id:
        raise ValidationError(code="validation_error", details="material_id obrigatorio")
    return jsonify(_obra_service().validate_material(get_db(), current_user(), obra_id, material_id)), 200


@obra_bp.post("/api/obras/<obra_id>/cotacoes")
def submit_cotacao(obra_id: str):
    require_obra_access()
    payload = _json_payload()
    confirmed, _mode = resolve_confirmation(request, payload)
    submit = CotacaoSubmitInput(
        obra_id=obra_id,
        user_id=current_user().user_id,
        items=parse_cart_items(payload.get("itens", payload.get("items"))),
        cotacao_id=str(payload.get("cotacao_id") or "").strip() or None,
        confirmed=confirmed,
    )
    result = _quotation_service().submit_cart(get_db(), current_user(), submit)
    return jsonify(result.payload), result.status_code


@obra_bp.get("/api/cotacoes")
def list_cotacoes():
    require_obra_access()
    obra_id = str(request.args.get("obra_id") or "").strip() or None
    return jsonify(_quotation_service().list_cotacoes(get_db(), current_user(), obra_id)), 200


@obra_bp.get("/api/fornecedor/cotacoes")
def supplier_inbox():
    require_inbox_access()
    fornecedor_id = str(request.args.get("fornecedor_id") or "").strip() or None
    return jsonify(_quotation_service().supplier_inbox(get_db(), current_user(), fornecedor_id)), 200
