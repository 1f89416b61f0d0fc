# fazenda/usecases/atividades.py
"""
UC: Registro de atividades (trilha de auditoria).

- registrar_atividade(): grava um documento em `activities` descrevendo uma
  ação ("<entidade>-<ação>", ex.: "product-create", "harvest-complete").
- registrar_movimento_estoque(), registrar_mudanca_status(): atalhos.
- listar_recentes(), listar_por_entidade(), listar_por_usuario().

Obs.:
- É "melhor esforço": chamado DEPOIS da transação principal; qualquer
  falha aqui vai só para o log do sistema e nunca sobe para quem chamou.
- As descrições vêm de tabelas fixas por entidade/ação.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from fazenda.config import DB_PATH
from fazenda.domain.policies import para_data, quantidade
from fazenda.infra.repositories import AtividadeRepo
from fazenda.infra.logger import log_system_event, log_database_operation


USUARIO_SISTEMA: Dict[str, Any] = {"uid": "sistema", "displayName": "Sistema", "email": ""}

CAMPOS_SENSIVEIS = ("password", "token", "secret", "apiKey")

DESCRICOES_ACOES: Dict[str, str] = {
    # Produtos
    "product-create": "Criou um produto",
    "product-update": "Atualizou um produto",
    "product-delete": "Excluiu um produto",
    "product-stock-adjust": "Ajustou o estoque de um produto",
    "product-stock-increase": "Aumentou o estoque de um produto",
    "product-stock-decrease": "Reduziu o estoque de um produto",
    # Transferências
    "transfer-create": "Criou uma transferência",
    "transfer-update": "Atualizou uma transferência",
    "transfer-delete": "Excluiu uma transferência",
    "transfer-approve": "Aprovou uma transferência",
    "transfer-reject": "Rejeitou uma transferência",
    "transfer-ship": "Enviou uma transferência",
    "transfer-complete": "Concluiu uma transferência",
    "transfer-cancel": "Cancelou uma transferência",
    # Fumigações
    "fumigation-create": "Criou uma fumigação",
    "fumigation-update": "Atualizou uma fumigação",
    "fumigation-delete": "Excluiu uma fumigação",
    "fumigation-complete": "Concluiu uma fumigação",
    "fumigation-cancel": "Cancelou uma fumigação",
    # Colheitas
    "harvest-create": "Criou uma colheita",
    "harvest-update": "Atualizou uma colheita",
    "harvest-delete": "Excluiu uma colheita",
    "harvest-complete": "Concluiu uma colheita",
    "harvest-cancel": "Cancelou uma colheita",
    # Compras
    "purchase-create": "Criou uma compra",
    "purchase-update": "Atualizou uma compra",
    "purchase-delete": "Excluiu uma compra",
    "purchase-complete": "Concluiu uma compra",
    "purchase-cancel": "Cancelou uma compra",
    "purchase-delivery-add": "Adicionou entrega a uma compra",
    "purchase-delivery-complete": "Recebeu entrega de uma compra",
    "purchase-delivery-cancel": "Cancelou entrega de uma compra",
    # Despesas
    "expense-create": "Registrou uma despesa",
    "expense-update": "Atualizou uma despesa",
    "expense-delete": "Excluiu uma despesa",
    # Campos
    "field-create": "Criou um campo",
    "field-update": "Atualizou um campo",
    "field-delete": "Excluiu um campo",
    "field-lot-add": "Adicionou lote a um campo",
    "field-lot-remove": "Removeu lote de um campo",
    # Depósitos
    "warehouse-create": "Criou um depósito",
    "warehouse-update": "Atualizou um depósito",
    "warehouse-delete": "Excluiu um depósito",
    "warehouse-activate": "Ativou um depósito",
    "warehouse-deactivate": "Desativou um depósito",
    # Usuários
    "user-create": "Criou um usuário",
    "user-update": "Atualizou um usuário",
    "user-delete": "Excluiu um usuário",
    "user-permissions-update": "Atualizou permissões de usuário",
    # Sistema
    "system-backup": "Realizou backup do sistema",
    "system-restore": "Restaurou backup do sistema",
    "system-maintenance": "Realizou manutenção do sistema",
}


# -------------------------
# Helpers
# -------------------------

def _formatar_data(valor: Any) -> Optional[str]:
    data = para_data(valor)
    return data.strftime("%d/%m/%Y") if data else None


def _formatar_numero(valor: Any) -> str:
    return f"{quantidade(valor):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def id_entidade(dados: Dict[str, Any]) -> str:
    for chave in ("id", "uid", "transferNumber", "orderNumber", "expenseNumber", "purchaseNumber"):
        if dados.get(chave):
            return str(dados[chave])
    return ""


def nome_entidade(dados: Dict[str, Any]) -> str:
    for chave in (
        "name", "transferNumber", "orderNumber", "expenseNumber", "purchaseNumber",
        "username", "displayName", "title", "description",
    ):
        if dados.get(chave):
            return str(dados[chave])
    ident = id_entidade(dados)
    return f"Elemento {ident[:8]}" if ident else "Entidade sem nome"


def limpar_metadados(metadados: Dict[str, Any]) -> Dict[str, Any]:
    """Remove valores None (também em dicionários aninhados; vazios somem)."""
    limpo: Dict[str, Any] = {}
    for chave, valor in metadados.items():
        if valor is None:
            continue
        if isinstance(valor, dict):
            aninhado = limpar_metadados(valor)
            if aninhado:
                limpo[chave] = aninhado
        else:
            limpo[chave] = valor
    return limpo


def sanitizar(dados: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in dados.items() if k not in CAMPOS_SENSIVEIS}


# -------------------------
# Metadados padrão por entidade
# -------------------------

def _meta_produto(p: Dict[str, Any]) -> Dict[str, Any]:
    return {k: p.get(k) for k in ("category", "stock", "minStock", "unit", "warehouseId", "fieldId", "cost")}


def _meta_transferencia(t: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "transferNumber": t.get("transferNumber"),
        "sourceWarehouse": (t.get("sourceWarehouse") or {}).get("name"),
        "targetWarehouse": (t.get("targetWarehouse") or {}).get("name"),
        "sourceWarehouseId": t.get("sourceWarehouseId"),
        "targetWarehouseId": t.get("targetWarehouseId"),
        "status": t.get("status"),
        "transferDate": _formatar_data(t.get("transferDate")),
        "productCount": len(t.get("products") or []),
    }


def _meta_fumigacao(f: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "orderNumber": f.get("orderNumber"),
        "crop": f.get("crop"),
        "fieldId": f.get("fieldId"),
        "fieldName": (f.get("field") or {}).get("name"),
        "status": f.get("status"),
        "applicationDate": _formatar_data(f.get("applicationDate")),
        "productCount": len(f.get("selectedProducts") or []),
    }


def _meta_colheita(c: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "harvestNumber": c.get("harvestNumber"),
        "crop": c.get("crop"),
        "fieldId": c.get("fieldId"),
        "fieldName": (c.get("field") or {}).get("name"),
        "status": c.get("status"),
        "harvestDate": _formatar_data(c.get("harvestDate")),
        "estimatedYield": c.get("estimatedYield"),
        "yieldUnit": c.get("yieldUnit"),
    }


def _meta_compra(c: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "purchaseNumber": c.get("purchaseNumber"),
        "supplier": c.get("supplier"),
        "status": c.get("status"),
        "purchaseDate": _formatar_data(c.get("purchaseDate")),
        "createdBy": c.get("createdBy"),
        "deliveriesCount": len(c.get("deliveries") or []),
    }


def _meta_despesa(d: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "expenseNumber": d.get("expenseNumber"),
        "type": d.get("type"),
        "amount": d.get("amount") or d.get("totalAmount"),
        "category": d.get("category") or d.get("productCategory"),
        "productName": d.get("productName"),
        "quantitySold": d.get("quantitySold"),
        "supplier": d.get("supplier"),
        "date": _formatar_data(d.get("date")),
    }


def _meta_campo(c: Dict[str, Any]) -> Dict[str, Any]:
    meta = {k: c.get(k) for k in ("location", "area", "areaUnit", "owner", "status", "soilType")}
    meta["lotsCount"] = len(c.get("lots") or [])
    return meta


def _meta_deposito(d: Dict[str, Any]) -> Dict[str, Any]:
    return {
        k: d.get(k)
        for k in ("type", "location", "capacity", "capacityUnit", "fieldId", "status", "storageCondition", "supervisor")
    }


def _meta_usuario(u: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "username": u.get("username"),
        "email": u.get("email"),
        "role": u.get("role"),
        "permissions": sorted((u.get("permissions") or {}).keys()),
        "displayName": u.get("displayName"),
    }


_METADADOS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "product": _meta_produto,
    "transfer": _meta_transferencia,
    "fumigation": _meta_fumigacao,
    "harvest": _meta_colheita,
    "purchase": _meta_compra,
    "expense": _meta_despesa,
    "field": _meta_campo,
    "warehouse": _meta_deposito,
    "user": _meta_usuario,
}


# -------------------------
# Descrições
# -------------------------

def _padrao(acao: str, tipo: str, rotulo: str) -> str:
    return f"{DESCRICOES_ACOES.get(acao, tipo)}: {rotulo}"


def _desc_produto(acao, tipo, p, m):
    nome = p.get("name") or "produto"
    if tipo == "create":
        return f'Criou produto "{nome}" em {m.get("category") or "categoria geral"}'
    if tipo == "stock-adjust":
        verbo = "Aumentou" if m.get("movementType") == "stock-increase" else "Reduziu"
        return f'{verbo} estoque de "{nome}" em {m.get("difference") or 0} {m.get("unit") or "unidades"}'
    if tipo == "update":
        return f'Atualizou produto "{nome}"'
    return _padrao(acao, tipo, f'"{nome}"')


def _desc_transferencia(acao, tipo, t, m):
    numero = t.get("transferNumber") or "transferência"
    if tipo == "create":
        return (
            f"Criou {numero} de {m.get('sourceWarehouse') or 'origem'} "
            f"para {m.get('targetWarehouse') or 'destino'}"
        )
    if tipo == "complete":
        return f"Concluiu {numero}"
    if tipo == "cancel":
        return f"Cancelou {numero}"
    return _padrao(acao, tipo, numero)


def _desc_fumigacao(acao, tipo, f, m):
    numero = f.get("orderNumber") or "fumigação"
    if tipo == "create":
        return f"Criou {numero} para {m.get('crop') or 'cultura'} em {m.get('fieldName') or 'campo'}"
    if tipo == "complete":
        return f"Concluiu fumigação {numero}"
    return _padrao(acao, tipo, numero)


def _desc_colheita(acao, tipo, c, m):
    numero = c.get("harvestNumber") or "colheita"
    if tipo == "create":
        return f"Criou {numero} de {m.get('crop') or 'cultura'} em {m.get('fieldName') or 'campo'}"
    if tipo == "complete":
        return f"Concluiu colheita {numero}"
    return _padrao(acao, tipo, numero)


def _desc_compra(acao, tipo, c, m):
    numero = c.get("purchaseNumber") or "compra"
    if tipo == "create":
        return f"Criou {numero} com {m.get('supplier') or 'fornecedor'}"
    if tipo == "delivery-add":
        return f"Adicionou entrega a {numero}"
    return _padrao(acao, tipo, numero)


def _desc_despesa(acao, tipo, d, m):
    numero = d.get("expenseNumber") or "despesa"
    if tipo == "create":
        rotulo = "venda" if m.get("type") == "product" else "despesa"
        return f"Registrou {rotulo} {numero} de {_formatar_numero(m.get('amount'))}"
    return _padrao(acao, tipo, numero)


def _desc_campo(acao, tipo, c, m):
    nome = c.get("name") or "campo"
    if tipo == "create":
        return f'Criou campo "{nome}" ({m.get("area") or 0} {m.get("areaUnit") or "ha"})'
    if tipo == "lot-add":
        return f'Adicionou lote ao campo "{nome}"'
    return _padrao(acao, tipo, f'"{nome}"')


def _desc_deposito(acao, tipo, d, m):
    nome = d.get("name") or "depósito"
    if tipo == "create":
        return f'Criou {m.get("type") or "depósito"} "{nome}"'
    if tipo == "activate":
        return f'Ativou depósito "{nome}"'
    if tipo == "deactivate":
        return f'Desativou depósito "{nome}"'
    return _padrao(acao, tipo, f'"{nome}"')


def _desc_usuario(acao, tipo, u, m):
    nome = u.get("displayName") or u.get("username") or u.get("email") or "usuário"
    if tipo == "create":
        return f'Criou usuário "{nome}" com papel {m.get("role") or "usuário"}'
    return _padrao(acao, tipo, f'"{nome}"')


_DESCRICOES: Dict[str, Callable[[str, str, Dict[str, Any], Dict[str, Any]], str]] = {
    "product": _desc_produto,
    "transfer": _desc_transferencia,
    "fumigation": _desc_fumigacao,
    "harvest": _desc_colheita,
    "purchase": _desc_compra,
    "expense": _desc_despesa,
    "field": _desc_campo,
    "warehouse": _desc_deposito,
    "user": _desc_usuario,
}


def gerar_descricao(acao: str, dados: Dict[str, Any], metadados: Dict[str, Any]) -> str:
    """Texto legível para a ação, ex.: 'Concluiu fumigação FUM-202501-003'."""
    tipo_entidade, _, tipo = acao.partition("-")
    if tipo_entidade == "system":
        return f"Sistema - {tipo}"
    gerador = _DESCRICOES.get(tipo_entidade)
    if gerador is None:
        return f'{tipo} {tipo_entidade} "{nome_entidade(dados)}"'
    return gerador(acao, tipo, dados, metadados)


# -------------------------
# Registro
# -------------------------

def registrar_atividade(
    acao: str,
    entidade: Dict[str, Any],
    extra: Optional[Dict[str, Any]] = None,
    usuario: Optional[Dict[str, Any]] = None,
    db_path: str = DB_PATH,
) -> Optional[str]:
    """Grava a atividade e devolve o id do documento (None se falhou)."""
    try:
        tipo_entidade, _, tipo = acao.partition("-")
        if not tipo_entidade or not tipo:
            log_system_event("atividade_acao_invalida", {"acao": acao}, level="warning")
            return None

        entidade = entidade or {}
        usuario = usuario or USUARIO_SISTEMA
        padrao = _METADADOS.get(tipo_entidade, lambda _d: {})(entidade)
        metadados = limpar_metadados({
            **padrao,
            **(extra or {}),
            "originalData": sanitizar(entidade),
        })
        email = usuario.get("email") or ""

        doc = {
            "type": tipo,
            "action": acao,
            "entity": tipo_entidade,
            "entityId": id_entidade(entidade),
            "entityName": nome_entidade(entidade),
            "description": gerar_descricao(acao, entidade, metadados),
            "metadata": metadados,
            "userId": usuario.get("uid") or "",
            "userName": usuario.get("displayName") or (email.split("@")[0] if email else "Usuário"),
            "userEmail": email,
        }
        doc_id = AtividadeRepo(db_path).adicionar(doc)
        log_database_operation("activities", "INSERT", 1, acao=acao, entity_id=doc["entityId"])
        return doc_id
    except Exception as e:
        log_system_event("atividade_erro", {"acao": acao, "error": str(e)}, level="error")
        return None


def registrar_movimento_estoque(
    produto: Dict[str, Any],
    estoque_anterior: float,
    estoque_novo: float,
    motivo: str = "",
    usuario: Optional[Dict[str, Any]] = None,
    db_path: str = DB_PATH,
) -> Optional[str]:
    diferenca = quantidade(estoque_novo) - quantidade(estoque_anterior)
    return registrar_atividade(
        "product-stock-adjust",
        produto,
        {
            "oldStock": estoque_anterior,
            "newStock": estoque_novo,
            "difference": abs(diferenca),
            "reason": motivo,
            "movementType": "stock-increase" if diferenca > 0 else "stock-decrease",
        },
        usuario,
        db_path,
    )


def registrar_mudanca_status(
    entidade: Dict[str, Any],
    tipo_entidade: str,
    status_anterior: Optional[str],
    status_novo: str,
    motivo: str = "",
    usuario: Optional[Dict[str, Any]] = None,
    db_path: str = DB_PATH,
) -> Optional[str]:
    return registrar_atividade(
        f"{tipo_entidade}-update",
        entidade,
        {
            "oldStatus": status_anterior,
            "newStatus": status_novo,
            "statusChange": True,
            "reason": motivo,
            "changeType": "status",
        },
        usuario,
        db_path,
    )


# -------------------------
# Consultas
# -------------------------

def listar_recentes(limite: int = 50, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return AtividadeRepo(db_path).recentes(limite)


def listar_por_entidade(tipo_entidade: str, entidade_id: str, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    docs = AtividadeRepo(db_path).listar({"entidade": tipo_entidade, "entidade_id": entidade_id})
    return docs[:100]


def listar_por_usuario(usuario_id: str, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return AtividadeRepo(db_path).listar({"usuario_id": usuario_id})[:100]
