from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class ServiceOutput:
    payload: Dict[str, Any]
    status_code: int = 200


# Catalog ---------------------------------------------------------------------


@dataclass(frozen=True)
class Fase:
    id: str
    cronologia: int
    nome: str
    descricao: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "cronologia": self.cronologia, "nome": self.nome, "descricao": self.descricao}


@dataclass(frozen=True)
class Servico:
    id: str
    nome: str
    ordem: int = 0
    descricao: str | None = None
    fase_ids: Tuple[str, ...] = ()
    grupo_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "nome": self.nome,
            "ordem": self.ordem,
            "descricao": self.descricao,
            "fase_ids": list(self.fase_ids),
            "grupo_ids": list(self.grupo_ids),
        }


@dataclass(frozen=True)
class GrupoInsumo:
    id: str
    nome: str
    descricao: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "nome": self.nome, "descricao": self.descricao}


@dataclass(frozen=True)
class Material:
    id: str
    nome: str
    unidade: str
    descricao: str | None = None
    grupo_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "nome": self.nome,
            "unidade": self.unidade,
            "descricao": self.descricao,
            "grupo_ids": list(self.grupo_ids),
        }


# Obras -----------------------------------------------------------------------


@dataclass(frozen=True)
class ObraStage:
    """Phase instance as seen by the eligibility rule (name keyed)."""

    name: str
    predicted_date: Any = None
    quotation_advance_days: Any = None
    is_completed: bool = False
    fase_id: str | None = None


@dataclass(frozen=True)
class ObraEtapa:
    id: str
    obra_id: str
    nome: str
    fase_id: str | None = None
    data_prevista: Any = None
    dias_antecedencia_cotacao: Any = None
    is_completed: bool = False
    data_conclusao: Any = None

    def as_stage(self) -> ObraStage:
        return ObraStage(
            name=self.nome,
            predicted_date=self.data_prevista,
            quotation_advance_days=self.dias_antecedencia_cotacao,
            is_completed=bool(self.is_completed),
            fase_id=self.fase_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "obra_id": self.obra_id,
            "fase_id": self.fase_id,
            "nome": self.nome,
            "data_prevista": _iso(self.data_prevista),
            "dias_antecedencia_cotacao": self.dias_antecedencia_cotacao,
            "is_completed": bool(self.is_completed),
            "data_conclusao": _iso(self.data_conclusao),
        }


@dataclass(frozen=True)
class Obra:
    id: str
    user_id: str
    nome: str
    etapa: str | None = None
    inicio_recebimento_oferta: Any = None
    status: str = "ativa"
    cep: str | None = None
    logradouro: str | None = None
    numero: str | None = None
    complemento: str | None = None
    bairro: str | None = None
    cidade: str | None = None
    estado: str | None = None
    stages: Tuple[ObraStage, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "nome": self.nome,
            "etapa": self.etapa,
            "inicio_recebimento_oferta": _iso(self.inicio_recebimento_oferta),
            "status": self.status,
            "cep": self.cep,
            "logradouro": self.logradouro,
            "numero": self.numero,
            "complemento": self.complemento,
            "bairro": self.bairro,
            "cidade": self.cidade,
            "estado": self.estado,
        }


# Quotation -------------------------------------------------------------------


@dataclass(frozen=True)
class CartItem:
    nome: str
    quantidade: float
    unidade: str
    material_id: str | None = None
    grupo: str | None = None
    fase_id: str | None = None
    servico_id: str | None = None
    observacao: str | None = None


@dataclass(frozen=True)
class CotacaoSubmitInput:
    obra_id: str
    user_id: str
    items: List[CartItem]
    cotacao_id: str | None = None
    confirmed: bool = False


@dataclass(frozen=True)
class FornecedorInput:
    razao_social: str
    cnpj: str | None = None
    email: str | None = None
    status: str = "ativo"
    grupo_ids: List[str] = field(default_factory=list)
    id: str | None = None


@dataclass(frozen=True)
class AuthUser:
    user_id: str
    email: str
    display_name: str
    role: str
    fornecedor_id: str | None = None


def _iso(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value
