from __future__ import annotations

from typing import Dict, Tuple

from mercado_obras.errors import ValidationError
from mercado_obras.ui_strings import confirm_message, get_ui_text


CRITICAL_ACTIONS: Dict[str, Dict[str, str]] = {
    "delete_fase": {
        "action_key": "delete_fase",
        "confirm_message_key": "delete_fase",
        "impact_text_key": "impact.delete_fase",
    },
    "delete_servico": {
        "action_key": "delete_servico",
        "confirm_message_key": "delete_servico",
        "impact_text_key": "impact.delete_servico",
    },
    "delete_grupo": {
        "action_key": "delete_grupo",
        "confirm_message_key": "delete_grupo",
        "impact_text_key": "impact.delete_grupo",
    },
    "delete_material": {
        "action_key": "delete_material",
        "confirm_message_key": "delete_material",
        "impact_text_key": "impact.delete_material",
    },
    "submit_out_of_phase": {
        "action_key": "submit_out_of_phase",
        "confirm_message_key": "submit_out_of_phase",
        "impact_text_key": "impact.submit_out_of_phase",
    },
}


_TRUE_TEXT_VALUES = {"1", "true", "yes", "on", "sim"}


def get_critical_action(action_key: str | None) -> Dict[str, str] | None:
    if not action_key:
        return None
    return CRITICAL_ACTIONS.get(str(action_key).strip())


def is_critical_action(action_key: str | None) -> bool:
    return get_critical_action(action_key) is not None


def _is_explicit_true(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return int(value) == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_TEXT_VALUES
    return False


def resolve_confirmation(request_obj, payload: dict | None = None) -> Tuple[bool, str]:
    payload_dict = payload if isinstance(payload, dict) else {}

    confirm_token = (
        payload_dict.get("confirm_token")
        or request_obj.args.get("confirm_token")
        or request_obj.headers.get("X-Confirm-Token")
    )
    if isinstance(confirm_token, str) and confirm_token.strip():
        return True, "confirm_token"

    confirm_value = payload_dict.get("confirm")
    if confirm_value is None:
        confirm_value = request_obj.args.get("confirm")
    if confirm_value is None:
        confirm_value = request_obj.headers.get("X-Confirm")

    if _is_explicit_true(confirm_value):
        return True, "confirm_flag"

    return False, "missing_confirmation"


def confirmation_payload(action_key: str) -> Dict[str, str]:
    meta = CRITICAL_ACTIONS[action_key]
    return {
        "action_key": action_key,
        "confirm_message": confirm_message(meta["confirm_message_key"]),
        "impact": get_ui_text(meta["impact_text_key"]),
    }


def confirmation_required_error(action_key: str, **extra) -> ValidationError:
    payload = {"confirmation": confirmation_payload(action_key)}
    payload.update(extra)
    return ValidationError(
        code="confirmation_required",
        message_key="confirmation_required",
        http_status=400,
        critical=False,
        payload=payload,
    )


def critical_actions_bundle() -> Dict[str, Dict[str, str]]:
    return {action_key: confirmation_payload(action_key) for action_key in CRITICAL_ACTIONS}
