from __future__ import annotations

import uuid
from typing import Any, Dict

from mercado_obras.domain.contracts import FornecedorInput, ServiceOutput
from mercado_obras.errors import NotFoundError, ValidationError
from mercado_obras.infrastructure.repositories import CatalogRepository, FornecedorRepository
from mercado_obras.ui_strings import status_keys_for_group, success_message


def parse_fornecedor_input(payload: Dict[str, Any]) -> FornecedorInput:
    grupo_ids = payload.get("grupo_ids") or []
    if not isinstance(grupo_ids, list):
        raise ValidationError(code="validation_error", details="grupo_ids deve ser uma lista")
    return FornecedorInput(
        id=str(payload.get("id") or "").strip() or None,
        razao_social=" ".join(str(payload.get("razao_social") or "").split()),
        cnpj=str(payload.get("cnpj") or "").strip() or None,
        email=str(payload.get("email") or "").strip().lower() or None,
        status=str(payload.get("status") or "pendente").strip().lower(),
        grupo_ids=[str(item).strip() for item in grupo_ids if str(item or "").strip()],
    )


class FornecedorService:
    """Supplier registry and the material groups each supplier serves."""

    def __init__(
        self,
        repository: FornecedorRepository | None = None,
        catalog_repository: CatalogRepository | None = None,
    ) -> None:
        self.repository = repository or FornecedorRepository()
        self.catalog_repository = catalog_repository or CatalogRepository()

    def list_fornecedores(self, db) -> Dict[str, Any]:
        grupos = self.repository.grupo_ids_by_fornecedor(db)
        return {
            "fornecedores": [
                dict(row, grupo_ids=sorted(grupos.get(str(row["id"]), []))) for row in self.repository.list_all(db)
            ]
        }

    def save(self, db, data: FornecedorInput) -> ServiceOutput:
        if not data.razao_social:
            raise ValidationError(code="nome_required")
        if data.status not in status_keys_for_group("fornecedor"):
            raise ValidationError(code="status_invalid", payload={"allowed": status_keys_for_group("fornecedor")})
        for grupo_id in data.grupo_ids:
            if not self.catalog_repository.exists(db, "grupo", grupo_id):
                raise NotFoundError(code="grupo_not_found", details=grupo_id)

        fornecedor_id = data.id or str(uuid.uuid4())
        created = self.repository.get_by_id(db, fornecedor_id) is None
        self.repository.upsert(
            db,
            fornecedor_id=fornecedor_id,
            razao_social=data.razao_social,
            cnpj=data.cnpj,
            email=data.email,
            status=data.status,
        )
        self.catalog_repository.replace_links(db, "fornecedor_grupo", fornecedor_id, data.grupo_ids)
        db.commit()
        fornecedor = self.repository.get_by_id(db, fornecedor_id)
        fornecedor["grupo_ids"] = sorted(self.catalog_repository.linked_ids(db, "fornecedor_grupo", fornecedor_id))
        return ServiceOutput(
            payload={"fornecedor": fornecedor, "message": success_message("catalog_saved")},
            status_code=201 if created else 200,
        )

    def link_grupo(self, db, fornecedor_id: str, grupo_id: str) -> ServiceOutput:
        if self.repository.get_by_id(db, fornecedor_id) is None:
            raise NotFoundError(code="fornecedor_not_found")
        if not self.catalog_repository.exists(db, "grupo", grupo_id):
            raise NotFoundError(code="grupo_not_found")
        self.catalog_repository.link(db, "fornecedor_grupo", fornecedor_id, grupo_id)
        db.commit()
        return ServiceOutput(
            payload={"fornecedor_id": fornecedor_id, "grupo_id": grupo_id, "message": success_message("link_saved")}
        )

    def unlink_grupo(self, db, fornecedor_id: str, grupo_id: str) -> ServiceOutput:
        removed = self.catalog_repository.unlink(db, "fornecedor_grupo", fornecedor_id, grupo_id)
        db.commit()
        return ServiceOutput(
            payload={
                "fornecedor_id": fornecedor_id,
                "grupo_id": grupo_id,
                "removed": bool(removed),
                "message": success_message("link_removed"),
            }
        )
