from mercado_obras.infrastructure.repositories.base import (
    BaseRepository,
    OwnerScopeRequiredError,
    OwnerScopedRepository,
)
from mercado_obras.infrastructure.repositories.catalog_repository import CatalogRepository
from mercado_obras.infrastructure.repositories.cotacao_repository import CotacaoRepository
from mercado_obras.infrastructure.repositories.fornecedor_repository import FornecedorRepository
from mercado_obras.infrastructure.repositories.obra_repository import ObraRepository

__all__ = [
    "BaseRepository",
    "OwnerScopedRepository",
    "OwnerScopeRequiredError",
    "CatalogRepository",
    "CotacaoRepository",
    "FornecedorRepository",
    "ObraRepository",
]
