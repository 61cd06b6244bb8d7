from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from mercado_obras.application.catalog_service import CatalogService
from mercado_obras.application.fornecedor_service import FornecedorService, parse_fornecedor_input
from mercado_obras.critical_actions import confirmation_required_error, resolve_confirmation
from mercado_obras.db import get_db, get_read_db
from mercado_obras.errors import NotFoundError
from mercado_obras.policies import require_catalog_admin


catalog_bp = Blueprint("catalog", __name__)


# URL segment -> catalog entity
_ENTITY_SEGMENTS = {
    "fases": "fase",
    "servicos": "servico",
    "grupos": "grupo",
    "materiais": "material",
}


def _catalog_service() -> CatalogService:
    return current_app.extensions["mercado_obras"]["catalog"]


def _fornecedor_service() -> FornecedorService:
    return current_app.extensions["mercado_obras"]["fornecedores"]


def _entity_for(segment: str) -> str:
    entity = _ENTITY_SEGMENTS.get(segment)
    if entity is None:
        raise NotFoundError()
    return entity


def _json_payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _save(entity: str, payload: dict, entity_id: str | None = None):
    service = _catalog_service()
    savers = {
        "fase": service.save_fase,
        "servico": service.save_servico,
        "grupo": service.save_grupo,
        "material": service.save_material,
    }
    result = savers[entity](get_db(), payload, entity_id)
    return jsonify(result.payload), result.status_code


# Reads -----------------------------------------------------------------------


@catalog_bp.get("/api/catalogo/arvore")
def catalog_tree():
    return jsonify(_catalog_service().tree(get_read_db(), request.args.get("q"))), 200


@catalog_bp.get("/api/catalogo/materiais/<material_id>/relacoes")
def material_relations(material_id: str):
    return jsonify(_catalog_service().material_relations(get_read_db(), material_id)), 200


@catalog_bp.get("/api/catalogo/grupos/<grupo_id>/relacoes")
def group_relations(grupo_id: str):
    return jsonify(_catalog_service().group_relations(get_read_db(), grupo_id)), 200


# Maintenance -----------------------------------------------------------------


@catalog_bp.get("/api/admin/catalogo")
def admin_catalog_listing():
    require_catalog_admin()
    return jsonify(_catalog_service().listing(get_db())), 200


@catalog_bp.post("/api/admin/fases/reordenar")
def reorder_fases():
    require_catalog_admin()
    result = _catalog_service().reorder_fases(get_db(), _json_payload().get("fase_ids"))
    return jsonify(result.payload), result.status_code


@catalog_bp.post("/api/admin/<segment>")
def create_entity(segment: str):
    require_catalog_admin()
    return _save(_entity_for(segment), _json_payload())


@catalog_bp.put("/api/admin/<segment>/<entity_id>")
def update_entity(segment: str, entity_id: str):
    require_catalog_admin()
    return _save(_entity_for(segment), _json_payload(), entity_id)


@catalog_bp.delete("/api/admin/<segment>/<entity_id>")
def delete_entity(segment: str, entity_id: str):
    require_catalog_admin()
    entity = _entity_for(segment)
    confirmed, mode = resolve_confirmation(request, _json_payload())
    if not confirmed:
        raise confirmation_required_error(f"delete_{entity}", action=f"delete_{entity}")
    current_app.logger.info(
        "critical_action_confirmed",
        extra={"action_key": f"delete_{entity}", "entity_id": entity_id, "confirmation_mode": mode},
    )
    result = _catalog_service().delete(get_db(), entity, entity_id)
    return jsonify(result.payload), result.status_code


@catalog_bp.route("/api/admin/servicos/<servico_id>/fases/<fase_id>", methods=["PUT", "DELETE"])
def servico_fase_link(servico_id: str, fase_id: str):
    require_catalog_admin()
    service = _catalog_service()
    action = service.link if request.method == "PUT" else service.unlink
    result = action(get_db(), "servico_fase", servico_id, fase_id)
    return jsonify(result.payload), result.status_code


@catalog_bp.route("/api/admin/servicos/<servico_id>/grupos/<grupo_id>", methods=["PUT", "DELETE"])
def servico_grupo_link(servico_id: str, grupo_id: str):
    require_catalog_admin()
    service = _catalog_service()
    action = service.link if request.method == "PUT" else service.unlink
    result = action(get_db(), "servico_grupo", servico_id, grupo_id)
    return jsonify(result.payload), result.status_code


@catalog_bp.route("/api/admin/materiais/<material_id>/grupos/<grupo_id>", methods=["PUT", "DELETE"])
def material_grupo_link(material_id: str, grupo_id: str):
    require_catalog_admin()
    service = _catalog_service()
    action = service.link if request.method == "PUT" else service.unlink
    result = action(get_db(), "material_grupo", material_id, grupo_id)
    return jsonify(result.payload), result.status_code


# Suppliers -------------------------------------------------------------------


@catalog_bp.get("/api/admin/fornecedores")
def list_fornecedores():
    require_catalog_admin()
    return jsonify(_fornecedor_service().list_fornecedores(get_db())), 200


@catalog_bp.post("/api/admin/fornecedores")
def save_fornecedor():
    require_catalog_admin()
    result = _fornecedor_service().save(get_db(), parse_fornecedor_input(_json_payload()))
    return jsonify(result.payload), result.status_code


@catalog_bp.route("/api/admin/fornecedores/<fornecedor_id>/grupos/<grupo_id>", methods=["PUT", "DELETE"])
def fornecedor_grupo_link(fornecedor_id: str, grupo_id: str):
    require_catalog_admin()
    service = _fornecedor_service()
    action = service.link_grupo if request.method == "PUT" else service.unlink_grupo
    result = action(get_db(), fornecedor_id, grupo_id)
    return jsonify(result.payload), result.status_code
