from __future__ import annotations

from typing import Dict, List


FRIENDLY_TERMS: Dict[str, str] = {
    "app_name": "Mercado Obras",
    "fase": "Fase",
    "servico": "Servico",
    "grupo": "Grupo de insumo",
    "material": "Material",
    "obra": "Obra",
    "etapa": "Etapa",
    "cotacao": "Cotacao",
    "fornecedor": "Fornecedor",
    "cliente": "Cliente",
}


STATUS_GROUPS: Dict[str, List[Dict[str, str]]] = {
    "obra": [
        {
            "key": "ativa",
            "label": "Ativa",
            "description": "Obra em andamento, recebendo cotacoes conforme as etapas.",
        },
        {
            "key": "pausada",
            "label": "Pausada",
            "description": "Obra temporariamente parada.",
        },
        {
            "key": "concluida",
            "label": "Concluida",
            "description": "Obra encerrada com todas as etapas finalizadas.",
        },
        {
            "key": "cancelada",
            "label": "Cancelada",
            "description": "Obra encerrada sem continuidade.",
        },
    ],
    "cotacao": [
        {
            "key": "enviada",
            "label": "Enviada",
            "description": "Cotacao disponivel para os fornecedores do grupo.",
        },
        {
            "key": "fechada",
            "label": "Fechada",
            "description": "Cotacao encerrada para novas propostas.",
        },
        {
            "key": "cancelada",
            "label": "Cancelada",
            "description": "Cotacao cancelada pelo cliente.",
        },
    ],
    "fornecedor": [
        {
            "key": "ativo",
            "label": "Ativo",
            "description": "Fornecedor habilitado a receber cotacoes.",
        },
        {
            "key": "pendente",
            "label": "Pendente",
            "description": "Cadastro aguardando verificacao.",
        },
        {
            "key": "suspenso",
            "label": "Suspenso",
            "description": "Fornecedor bloqueado para novas cotacoes.",
        },
    ],
}


UI_TEXTS: Dict[str, str] = {
    "label.cancel_action": "Cancelar",
    "label.confirm_action": "Confirmar acao",
    "title.critical_confirmation": "Confirmar acao critica",
    "eligibility.open": "Recebendo cotacoes",
    "eligibility.closed": "Fora da janela de cotacao",
    "eligibility.completed": "Etapa concluida",
    "warning.material_outside_phase": "Este material pertence a uma fase diferente da etapa atual da obra.",
    "impact.delete_fase": "A fase sera removida e desvinculada de todos os servicos.",
    "impact.delete_servico": "O servico sera removido e desvinculado das fases e grupos.",
    "impact.delete_grupo": "O grupo sera removido e desvinculado de servicos, materiais e fornecedores.",
    "impact.delete_material": "O material sera removido e desvinculado dos grupos.",
    "impact.submit_out_of_phase": "A cotacao sera enviada com materiais fora da etapa atual da obra.",
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "success": {
        "catalog_saved": "Catalogo atualizado com sucesso.",
        "catalog_deleted": "Item removido do catalogo.",
        "link_saved": "Vinculo registrado.",
        "link_removed": "Vinculo removido.",
        "obra_saved": "Obra salva com sucesso.",
        "etapas_saved": "Etapas da obra atualizadas.",
        "etapa_completed": "Etapa concluida.",
        "cotacao_sent": "Cotacao enviada aos fornecedores.",
        "cotacao_already_sent": "Cotacao ja enviada anteriormente.",
        "logged_out": "Sessao encerrada.",
    },
    "error": {
        "action_invalid": "Acao invalida para esta operacao.",
        "auth_required": "Autenticacao necessaria.",
        "auth_invalid_credentials": "Credenciais invalidas. Tente novamente.",
        "auth_missing_credentials": "Informe email e senha.",
        "catalog_unavailable": "Nao foi possivel carregar o catalogo agora. Tente novamente.",
        "confirmation_required": "Confirme explicitamente esta acao para continuar.",
        "cronologia_invalid": "Cronologia deve ser um numero inteiro.",
        "cronologia_in_use": "Ja existe uma fase com esta cronologia.",
        "date_invalid": "Data informada e invalida.",
        "days_invalid": "Dias de antecedencia devem ser um numero inteiro.",
        "fase_ids_required": "Informe a lista completa de fases.",
        "fase_not_found": "Fase nao encontrada.",
        "servico_not_found": "Servico nao encontrado.",
        "grupo_not_found": "Grupo de insumo nao encontrado.",
        "material_not_found": "Material nao encontrado.",
        "fornecedor_not_found": "Fornecedor nao encontrado.",
        "obra_not_found": "Obra nao encontrada.",
        "etapa_not_found": "Etapa nao encontrada.",
        "items_required": "Adicione ao menos um material a cotacao.",
        "nome_required": "Informe o nome.",
        "not_found": "Registro nao encontrado.",
        "permission_denied": "Voce nao possui permissao para executar esta acao.",
        "quantity_invalid": "Quantidade invalida.",
        "rate_limit_exceeded": "Muitas requisicoes. Tente novamente em instantes.",
        "status_invalid": "Status informado e invalido.",
        "unidade_required": "Informe a unidade do material.",
        "unexpected_error": "Nao foi possivel concluir a operacao. Tente novamente em instantes.",
        "validation_error": "Dados invalidos.",
    },
    "confirm": {
        "delete_fase": "Confirma a exclusao da fase?",
        "delete_servico": "Confirma a exclusao do servico?",
        "delete_grupo": "Confirma a exclusao do grupo de insumo?",
        "delete_material": "Confirma a exclusao do material?",
        "submit_out_of_phase": "Alguns materiais nao pertencem a etapa atual da obra. Deseja enviar mesmo assim?",
    },
}


def status_keys_for_group(group: str) -> List[str]:
    return [item["key"] for item in STATUS_GROUPS.get(group, [])]


def status_label(group: str, key: str | None) -> str:
    for item in STATUS_GROUPS.get(group, []):
        if item["key"] == key:
            return item["label"]
    return str(key or "")


def get_ui_text(key: str, default: str | None = None) -> str:
    if key in UI_TEXTS:
        return UI_TEXTS[key]
    if default is not None:
        return default
    return key


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def success_message(key: str, default: str | None = None) -> str:
    return get_message("success", key, default)


def confirm_message(key: str, default: str | None = None) -> str:
    return get_message("confirm", key, default)


def frontend_bundle() -> Dict[str, object]:
    return {
        "terms": FRIENDLY_TERMS,
        "status_groups": STATUS_GROUPS,
        "texts": UI_TEXTS,
        "messages": MESSAGES,
    }
