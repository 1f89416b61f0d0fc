# fazenda/usecases/transferencias.py
"""
UC: Transferências entre depósitos.

Fluxo: pending -> approved | rejected -> shipped -> completed
- criar_transferencia(): número "TR-<ms>-<aleatório>", custo por unidade.
- aprovar_transferencia(), rejeitar_transferencia()
- enviar_transferencia(): desconta o estoque da origem (transação; estoque
  insuficiente aborta tudo; produto inexistente é ignorado).
- receber_transferencia(): soma o recebido ao produto e move o produto
  para o depósito de destino (transação).
- atualizar_transferencia(), remover_transferencia(), listar_transferencias()
"""

from __future__ import annotations

import random
import time
from typing import Any, Dict, List, Optional

from fazenda.config import DB_PATH
from fazenda.domain.erros import DocumentoNaoEncontrado, EstoqueInsuficiente
from fazenda.domain.policies import (
    STATUS_TRANSFERENCIA, custo_por_unidade, pode_descontar, quantidade, quantidade_nao_negativa,
    valida_status
)
from fazenda.infra.documentos import BancoDocumentos, Transacao, agora_servidor
from fazenda.infra.repositories import TransferenciaRepo
from fazenda.infra.logger import (
    log_transaction, log_movimento_estoque, log_database_operation, log_system_event
)
from .atividades import registrar_atividade
from .comum import como_patch, nome_de


def gerar_numero_transferencia() -> str:
    return f"TR-{int(time.time() * 1000)}-{random.randint(0, 999):03d}"


def criar_transferencia(
    dados: Dict[str, Any],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    try:
        if dados.get("sourceWarehouseId") and dados.get("sourceWarehouseId") == dados.get("targetWarehouseId"):
            raise ValueError("Depósito de origem e destino são iguais")
        for p in dados.get("products") or []:
            if quantidade(p.get("quantity")) <= 0:
                raise ValueError(f"Quantidade inválida para {p.get('productName') or p.get('productId')}")

        doc = {k: v for k, v in dados.items() if k != "id"}
        doc.update({
            "transferNumber": dados.get("transferNumber") or gerar_numero_transferencia(),
            "costPerUnit": custo_por_unidade(dados.get("transferCost"), dados.get("products")),
            "status": "pending",
            "requestedBy": nome_de(usuario),
            "requestDate": agora_servidor(),
        })
        repo = TransferenciaRepo(db_path)
        doc_id = repo.adicionar(doc)
        log_database_operation("transfers", "INSERT", 1, transferencia_id=doc_id)
        criada = repo.obter(doc_id)

        registrar_atividade("transfer-create", criada, usuario=usuario, db_path=db_path)
        log_transaction("criar_transferencia", {"transferNumber": doc["transferNumber"]}, result=doc_id)
        return criada
    except Exception as e:
        log_transaction("criar_transferencia", {"transferNumber": dados.get("transferNumber")}, error=str(e))
        log_system_event("criar_transferencia_error", {"error": str(e)}, level="error")
        raise


def atualizar_transferencia(
    transferencia_id: str,
    patch: Dict[str, Any],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Atualiza campos; recalcula costPerUnit se produtos ou custo mudarem."""
    campos = como_patch(patch)
    valida_status(campos.get("status"), STATUS_TRANSFERENCIA, "transferência")
    for p in campos.get("products") or []:
        quantidade_nao_negativa(p.get("quantity"), p.get("productName") or p.get("productId"))
    if "products" in campos or "transferCost" in campos:
        campos["costPerUnit"] = custo_por_unidade(campos.get("transferCost"), campos.get("products"))
    atualizada = TransferenciaRepo(db_path).atualizar(transferencia_id, campos)
    log_database_operation("transfers", "UPDATE", 1, transferencia_id=transferencia_id)
    registrar_atividade("transfer-update", atualizada, usuario=usuario, db_path=db_path)
    return atualizada


def remover_transferencia(
    transferencia_id: str,
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> bool:
    repo = TransferenciaRepo(db_path)
    transferencia = repo.obter(transferencia_id)
    if transferencia is None:
        raise DocumentoNaoEncontrado("transfers", transferencia_id)
    repo.remover(transferencia_id)
    log_database_operation("transfers", "DELETE", 1, transferencia_id=transferencia_id)
    registrar_atividade("transfer-delete", transferencia, usuario=usuario, db_path=db_path)
    return True


def listar_transferencias(filtros: Optional[Dict[str, Any]] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return TransferenciaRepo(db_path).listar(filtros)


def aprovar_transferencia(
    transferencia_id: str,
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    aprovada = TransferenciaRepo(db_path).atualizar(transferencia_id, {
        "status": "approved",
        "approvedBy": nome_de(usuario),
        "approvedDate": agora_servidor(),
    })
    registrar_atividade("transfer-approve", aprovada, usuario=usuario, db_path=db_path)
    return aprovada


def rejeitar_transferencia(
    transferencia_id: str,
    motivo: str,
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    rejeitada = TransferenciaRepo(db_path).atualizar(transferencia_id, {
        "status": "rejected",
        "rejectionReason": motivo,
        "rejectedBy": nome_de(usuario),
        "rejectedDate": agora_servidor(),
    })
    registrar_atividade("transfer-reject", rejeitada, {"reason": motivo}, usuario, db_path)
    return rejeitada


def enviar_transferencia(
    transferencia_id: str,
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Desconta da origem cada linha da transferência e marca como 'shipped'."""
    enviado_por = nome_de(usuario)

    def _tx(tx: Transacao) -> Dict[str, Any]:
        transferencia = tx.obter("transfers", transferencia_id)
        if transferencia is None:
            raise DocumentoNaoEncontrado("transfers", transferencia_id)

        movimentos: List[Dict[str, Any]] = []
        for linha in transferencia.get("products") or []:
            produto = tx.obter("products", linha.get("productId") or "")
            if produto is None:
                continue
            disponivel = quantidade(produto.get("stock"))
            requerido = quantidade_nao_negativa(linha.get("quantity"), linha.get("productName") or produto["id"])
            if not pode_descontar(disponivel, requerido):
                raise EstoqueInsuficiente(produto["id"], disponivel, requerido, linha.get("productName"))
            novo = disponivel - requerido
            tx.atualizar("products", produto["id"], {"stock": novo})
            movimentos.append({"productId": produto["id"], "anterior": disponivel, "novo": novo})

        atualizada = tx.atualizar("transfers", transferencia_id, {
            "status": "shipped",
            "shippedBy": enviado_por,
            "shippedDate": agora_servidor(),
        })
        return {"transferencia": atualizada, "movimentos": movimentos}

    try:
        resultado = BancoDocumentos(db_path).transacao(_tx)
    except Exception as e:
        log_transaction("enviar_transferencia", {"transferencia_id": transferencia_id}, error=str(e))
        log_system_event("enviar_transferencia_error", {"transferencia_id": transferencia_id, "error": str(e)}, level="error")
        raise

    for m in resultado["movimentos"]:
        log_movimento_estoque("desconto", m["productId"], m["anterior"], m["novo"],
                              origem=f"transferencia:{transferencia_id}")
    registrar_atividade("transfer-ship", resultado["transferencia"], usuario=usuario, db_path=db_path)
    log_transaction("enviar_transferencia", {"transferencia_id": transferencia_id},
                    result={"produtos": len(resultado["movimentos"])})
    return resultado["transferencia"]


def receber_transferencia(
    transferencia_id: str,
    produtos_recebidos: Optional[List[Dict[str, Any]]] = None,
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Soma ao estoque o recebido (quantityReceived, senão quantity) e move o
    produto para o depósito de destino; marca a transferência como 'completed'.
    """
    recebido_por = nome_de(usuario)

    def _tx(tx: Transacao) -> Dict[str, Any]:
        transferencia = tx.obter("transfers", transferencia_id)
        if transferencia is None:
            raise DocumentoNaoEncontrado("transfers", transferencia_id)

        destino = transferencia.get("targetWarehouseId")
        movimentos: List[Dict[str, Any]] = []
        for linha in produtos_recebidos or transferencia.get("products") or []:
            produto = tx.obter("products", linha.get("productId") or "")
            if produto is None:
                continue
            anterior = quantidade(produto.get("stock"))
            recebido = quantidade_nao_negativa(
                linha.get("quantityReceived") or linha.get("quantity"), linha.get("productName") or produto["id"]
            )
            novo = anterior + recebido
            tx.atualizar("products", produto["id"], {"stock": novo, "warehouseId": destino})
            movimentos.append({"productId": produto["id"], "anterior": anterior, "novo": novo})

        patch = {
            "status": "completed",
            "receivedBy": recebido_por,
            "receivedDate": agora_servidor(),
        }
        if produtos_recebidos is not None:
            patch["receivedProducts"] = produtos_recebidos
        atualizada = tx.atualizar("transfers", transferencia_id, patch)
        return {"transferencia": atualizada, "movimentos": movimentos}

    try:
        resultado = BancoDocumentos(db_path).transacao(_tx)
    except Exception as e:
        log_transaction("receber_transferencia", {"transferencia_id": transferencia_id}, error=str(e))
        log_system_event("receber_transferencia_error", {"transferencia_id": transferencia_id, "error": str(e)}, level="error")
        raise

    for m in resultado["movimentos"]:
        log_movimento_estoque("entrada", m["productId"], m["anterior"], m["novo"],
                              origem=f"transferencia:{transferencia_id}")
    registrar_atividade("transfer-complete", resultado["transferencia"], usuario=usuario, db_path=db_path)
    log_transaction("receber_transferencia", {"transferencia_id": transferencia_id},
                    result={"produtos": len(resultado["movimentos"])})
    return resultado["transferencia"]
