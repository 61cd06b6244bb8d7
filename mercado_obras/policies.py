"""Marketplace access rules.

Clients own obras and send cotacoes from them. Suppliers only read the inbox
of their own registration. Admins curate the catalog and may act on any obra
or supplier inbox.
"""

from __future__ import annotations

from typing import Set

from flask import session

from mercado_obras.domain.contracts import AuthUser
from mercado_obras.errors import PermissionError as AppPermissionError


ROLE_CLIENTE = "cliente"
ROLE_FORNECEDOR = "fornecedor"
ROLE_ADMIN = "admin"

VALID_ROLES: Set[str] = {ROLE_CLIENTE, ROLE_FORNECEDOR, ROLE_ADMIN}


def normalize_role(role: str | None, default: str = ROLE_CLIENTE) -> str:
    normalized = str(role or "").strip().lower()
    if normalized in VALID_ROLES:
        return normalized
    return default if default in VALID_ROLES else ""


def require_roles(*allowed_roles: str, role: str | None = None) -> str:
    """Return the caller's role, or raise ``permission_denied`` when it is not allowed."""
    normalized = normalize_role(role if role is not None else session.get("user_role"))
    if normalized not in allowed_roles:
        raise AppPermissionError()
    return normalized


def require_catalog_admin(role: str | None = None) -> str:
    return require_roles(ROLE_ADMIN, role=role)


def require_obra_access(role: str | None = None) -> str:
    return require_roles(ROLE_CLIENTE, ROLE_ADMIN, role=role)


def require_inbox_access(role: str | None = None) -> str:
    return require_roles(ROLE_FORNECEDOR, ROLE_ADMIN, role=role)


def sees_every_owner(user: AuthUser) -> bool:
    """Admins read obras and cotacoes of every client."""
    return user.role == ROLE_ADMIN


def inbox_fornecedor_id(user: AuthUser, requested: str | None = None) -> str | None:
    """Supplier whose inbox ``user`` reads.

    Suppliers are pinned to their own registration whatever they request;
    admins pick any supplier and fall back to their own link.
    """
    require_inbox_access(role=user.role)
    if user.role == ROLE_FORNECEDOR:
        return user.fornecedor_id
    return requested or user.fornecedor_id
