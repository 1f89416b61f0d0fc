# fazenda/usecases/despesas.py
"""
UC: Despesas e vendas.
- criar_despesa(): número "GAST-AAAA-NNNN". Quando `type == "product"` com
  productId e quantitySold > 0 (venda de produto), o estoque é descontado
  na mesma transação; estoque insuficiente aborta tudo.
- atualizar_despesa(), remover_despesa(), listar_despesas()
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from fazenda.config import DB_PATH
from fazenda.domain.erros import DocumentoNaoEncontrado, EstoqueInsuficiente
from fazenda.domain.policies import para_iso, pode_descontar, proximo_numero, quantidade
from fazenda.infra.documentos import BancoDocumentos, Transacao
from fazenda.infra.repositories import DespesaRepo
from fazenda.infra.logger import (
    log_transaction, log_movimento_estoque, log_database_operation, log_system_event
)
from .atividades import registrar_atividade
from .comum import como_patch, uid_de


def gerar_numero_despesa(db_path: str = DB_PATH, hoje: Optional[date] = None) -> str:
    hoje = hoje or date.today()
    existentes = (d.get("expenseNumber") for d in DespesaRepo(db_path).get_all())
    return proximo_numero(existentes, f"GAST-{hoje:%Y}-", 4)


def criar_despesa(
    dados: Dict[str, Any],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Insere a despesa; vendas de produto descontam o estoque (tudo ou nada)."""
    numero = dados.get("expenseNumber") or gerar_numero_despesa(db_path)
    vendido = quantidade(dados.get("quantitySold"))
    produto_id = dados.get("productId")
    desconta = dados.get("type") == "product" and bool(produto_id) and vendido > 0

    def _tx(tx: Transacao) -> Dict[str, Any]:
        movimento = None
        if desconta:
            produto = tx.obter("products", produto_id)
            if produto is None:
                raise DocumentoNaoEncontrado("products", produto_id)
            disponivel = quantidade(produto.get("stock"))
            if not pode_descontar(disponivel, vendido):
                raise EstoqueInsuficiente(produto_id, disponivel, vendido, produto.get("name"))
            tx.atualizar("products", produto_id, {"stock": disponivel - vendido})
            movimento = {"anterior": disponivel, "novo": disponivel - vendido}

        doc = {k: para_iso(v) for k, v in dados.items() if k != "id"}
        doc["expenseNumber"] = numero
        doc["createdBy"] = uid_de(usuario)
        despesa_id = tx.criar("expenses", doc)
        return {"despesa": tx.obter("expenses", despesa_id), "movimento": movimento}

    try:
        resultado = BancoDocumentos(db_path).transacao(_tx)
    except Exception as e:
        log_transaction("criar_despesa", {"expenseNumber": numero}, error=str(e))
        log_system_event("criar_despesa_error", {"error": str(e)}, level="error")
        raise

    despesa = resultado["despesa"]
    if resultado["movimento"]:
        log_movimento_estoque("desconto", produto_id, resultado["movimento"]["anterior"],
                              resultado["movimento"]["novo"], origem=f"despesa:{numero}")
    log_database_operation("expenses", "TRANSACTION", 2 if desconta else 1, despesa_id=despesa["id"])

    registrar_atividade("expense-create", despesa, usuario=usuario, db_path=db_path)
    log_transaction("criar_despesa", {"expenseNumber": numero}, result=despesa["id"])
    return despesa


def atualizar_despesa(
    despesa_id: str,
    patch: Dict[str, Any],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Atualiza campos da despesa (não mexe em estoque)."""
    campos = {k: para_iso(v) for k, v in como_patch(patch).items()}
    atualizada = DespesaRepo(db_path).atualizar(despesa_id, campos)
    log_database_operation("expenses", "UPDATE", 1, despesa_id=despesa_id)
    registrar_atividade("expense-update", atualizada, usuario=usuario, db_path=db_path)
    return atualizada


def remover_despesa(
    despesa_id: str,
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> bool:
    repo = DespesaRepo(db_path)
    despesa = repo.obter(despesa_id)
    if despesa is None:
        raise DocumentoNaoEncontrado("expenses", despesa_id)
    repo.remover(despesa_id)
    log_database_operation("expenses", "DELETE", 1, despesa_id=despesa_id)
    registrar_atividade("expense-delete", despesa, usuario=usuario, db_path=db_path)
    return True


def listar_despesas(filtros: Optional[Dict[str, Any]] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return DespesaRepo(db_path).listar(filtros)
