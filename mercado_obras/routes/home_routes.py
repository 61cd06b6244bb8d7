from flask import Blueprint, jsonify

from mercado_obras.critical_actions import critical_actions_bundle
from mercado_obras.ui_strings import FRIENDLY_TERMS, frontend_bundle


home_bp = Blueprint("home", __name__)


@home_bp.route("/")
def home():
    return jsonify(
        {
            "app": FRIENDLY_TERMS["app_name"],
            "endpoints": {
                "catalogo": "/api/catalogo/arvore",
                "obras": "/api/obras",
                "cotacoes": "/api/cotacoes",
                "fornecedor": "/api/fornecedor/cotacoes",
                "sessao": "/api/session",
            },
        }
    )


@home_bp.route("/api/ui")
def ui_bundle():
    bundle = dict(frontend_bundle())
    bundle["critical_actions"] = critical_actions_bundle()
    return jsonify(bundle)
