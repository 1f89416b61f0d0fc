# fazenda/usecases/compras.py
"""
UC: Compras e entregas.
- criar_compra(): número "COMP-AAAAMM-NNNN"; deliveries vazias.
- criar_entrega(): acrescenta entrega "ENT-<compra>-<n>" (status pending).
- concluir_entrega(): marca a entrega como recebida, soma ao estoque o
  recebido e recalcula totalDelivered/totalPending/status (transação).
- cancelar_entrega(): marca como cancelada e recalcula os totais.
- atualizar_compra(), remover_compra(), listar_compras()
"""

from __future__ import annotations

import time
from datetime import date
from typing import Any, Dict, List, Optional

from fazenda.config import DB_PATH
from fazenda.domain.erros import DocumentoNaoEncontrado
from fazenda.domain.policies import (
    STATUS_COMPRA, para_iso, proximo_numero, quantidade, status_compra, total_entregue, valida_status
)
from fazenda.infra.documentos import BancoDocumentos, Transacao, agora_servidor
from fazenda.infra.repositories import CompraRepo
from fazenda.infra.logger import (
    log_transaction, log_movimento_estoque, log_database_operation, log_system_event
)
from .atividades import registrar_atividade
from .comum import como_patch, uid_de


def gerar_numero_compra(db_path: str = DB_PATH, hoje: Optional[date] = None) -> str:
    hoje = hoje or date.today()
    existentes = (c.get("purchaseNumber") for c in CompraRepo(db_path).get_all())
    return proximo_numero(existentes, f"COMP-{hoje:%Y%m}-", 4)


def _total_comprado(compra: Dict[str, Any]) -> float:
    if compra.get("totalProducts") is not None:
        return quantidade(compra.get("totalProducts"))
    return sum(quantidade(p.get("quantity")) for p in compra.get("products") or [])


def criar_compra(
    dados: Dict[str, Any],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    try:
        valida_status(dados.get("status"), STATUS_COMPRA, "compra")
        doc = {k: para_iso(v) for k, v in dados.items() if k != "id"}
        doc["purchaseNumber"] = dados.get("purchaseNumber") or gerar_numero_compra(db_path)
        doc["status"] = dados.get("status") or "pending"
        doc["freight"] = dados.get("freight") or 0
        doc["taxes"] = dados.get("taxes") or 0
        doc["totalProducts"] = _total_comprado(dados)
        doc["deliveries"] = []
        doc["totalDelivered"] = 0
        doc["totalPending"] = doc["totalProducts"]
        doc["createdBy"] = uid_de(usuario)

        repo = CompraRepo(db_path)
        doc_id = repo.adicionar(doc)
        log_database_operation("purchases", "INSERT", 1, compra_id=doc_id)
        criada = repo.obter(doc_id)

        registrar_atividade("purchase-create", criada, usuario=usuario, db_path=db_path)
        log_transaction("criar_compra", {"purchaseNumber": doc["purchaseNumber"]}, result=doc_id)
        return criada
    except Exception as e:
        log_transaction("criar_compra", {"purchaseNumber": dados.get("purchaseNumber")}, error=str(e))
        log_system_event("criar_compra_error", {"error": str(e)}, level="error")
        raise


def atualizar_compra(
    compra_id: str,
    patch: Dict[str, Any],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    campos = {k: para_iso(v) for k, v in como_patch(patch).items()}
    valida_status(campos.get("status"), STATUS_COMPRA, "compra")
    atualizada = CompraRepo(db_path).atualizar(compra_id, campos)
    log_database_operation("purchases", "UPDATE", 1, compra_id=compra_id)
    registrar_atividade("purchase-update", atualizada, usuario=usuario, db_path=db_path)
    return atualizada


def remover_compra(
    compra_id: str,
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> bool:
    repo = CompraRepo(db_path)
    compra = repo.obter(compra_id)
    if compra is None:
        raise DocumentoNaoEncontrado("purchases", compra_id)
    repo.remover(compra_id)
    log_database_operation("purchases", "DELETE", 1, compra_id=compra_id)
    registrar_atividade("purchase-delete", compra, usuario=usuario, db_path=db_path)
    return True


def listar_compras(filtros: Optional[Dict[str, Any]] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return CompraRepo(db_path).listar(filtros)


# -------------------------
# Entregas
# -------------------------

def _obter_compra(tx: Transacao, compra_id: str) -> Dict[str, Any]:
    compra = tx.obter("purchases", compra_id)
    if compra is None:
        raise DocumentoNaoEncontrado("purchases", compra_id)
    return compra


def _totais(compra: Dict[str, Any], entregas: List[Dict[str, Any]]) -> Dict[str, Any]:
    """totalDelivered / totalPending / status a partir das entregas."""
    comprado = _total_comprado(compra)
    entregue = total_entregue(entregas, "completed")
    em_transito = total_entregue(entregas, "in_transit")
    return {
        "deliveries": entregas,
        "totalDelivered": entregue,
        "totalPending": comprado - entregue - em_transito,
        "status": status_compra(entregue, comprado),
    }


def criar_entrega(
    compra_id: str,
    dados: Dict[str, Any],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Acrescenta uma entrega pendente à compra e devolve a entrega criada."""
    def _tx(tx: Transacao) -> Dict[str, Any]:
        compra = _obter_compra(tx, compra_id)
        entregas = list(compra.get("deliveries") or [])
        agora = agora_servidor()
        entrega = {
            "id": f"delivery-{int(time.time() * 1000)}-{len(entregas) + 1}",
            "deliveryNumber": f"ENT-{compra.get('purchaseNumber')}-{len(entregas) + 1}",
            "expectedDate": para_iso(dados.get("expectedDate")),
            "products": dados.get("products") or [],
            "status": "pending",
            "transportCompany": dados.get("transportCompany") or "",
            "trackingNumber": dados.get("trackingNumber") or "",
            "notes": dados.get("notes") or "",
            "createdAt": agora,
            "updatedAt": agora,
        }
        atualizada = tx.atualizar("purchases", compra_id, {"deliveries": entregas + [entrega]})
        return {"compra": atualizada, "entrega": entrega}

    try:
        resultado = BancoDocumentos(db_path).transacao(_tx)
    except Exception as e:
        log_transaction("criar_entrega", {"compra_id": compra_id}, error=str(e))
        log_system_event("criar_entrega_error", {"compra_id": compra_id, "error": str(e)}, level="error")
        raise

    registrar_atividade(
        "purchase-delivery-add",
        resultado["compra"],
        {"deliveryNumber": resultado["entrega"]["deliveryNumber"]},
        usuario,
        db_path,
    )
    return resultado["entrega"]


def concluir_entrega(
    compra_id: str,
    entrega_id: str,
    produtos_recebidos: Optional[List[Dict[str, Any]]] = None,
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Recebe a entrega: soma `quantityReceived` ao estoque de cada produto
    (movendo para `warehouseId` quando informado) e recalcula a compra.
    """
    def _tx(tx: Transacao) -> Dict[str, Any]:
        compra = _obter_compra(tx, compra_id)
        entregas = list(compra.get("deliveries") or [])
        if not any(d.get("id") == entrega_id for d in entregas):
            raise DocumentoNaoEncontrado(f"purchases/{compra_id}/deliveries", entrega_id)

        entregas = [
            {
                **d,
                "status": "completed",
                "deliveredDate": agora_servidor(),
                "receivedBy": uid_de(usuario),
                "products": produtos_recebidos or d.get("products") or [],
            } if d.get("id") == entrega_id else d
            for d in entregas
        ]

        movimentos: List[Dict[str, Any]] = []
        for item in produtos_recebidos or []:
            recebido = quantidade(item.get("quantityReceived"))
            if recebido <= 0:
                continue
            produto = tx.obter("products", item.get("productId") or "")
            if produto is None:
                continue
            anterior = quantidade(produto.get("stock"))
            novo = anterior + recebido
            tx.atualizar("products", produto["id"], {
                "stock": novo,
                "warehouseId": item.get("warehouseId") or produto.get("warehouseId"),
            })
            movimentos.append({"productId": produto["id"], "anterior": anterior, "novo": novo})

        atualizada = tx.atualizar("purchases", compra_id, _totais(compra, entregas))
        return {"compra": atualizada, "movimentos": movimentos}

    try:
        resultado = BancoDocumentos(db_path).transacao(_tx)
    except Exception as e:
        log_transaction("concluir_entrega", {"compra_id": compra_id, "entrega_id": entrega_id}, error=str(e))
        log_system_event("concluir_entrega_error", {"compra_id": compra_id, "error": str(e)}, level="error")
        raise

    for m in resultado["movimentos"]:
        log_movimento_estoque("entrada", m["productId"], m["anterior"], m["novo"],
                              origem=f"compra:{compra_id}/{entrega_id}")
    registrar_atividade("purchase-delivery-complete", resultado["compra"],
                        {"deliveryId": entrega_id}, usuario, db_path)
    log_transaction("concluir_entrega", {"compra_id": compra_id, "entrega_id": entrega_id},
                    result={"status": resultado["compra"]["status"]})
    return resultado["compra"]


def cancelar_entrega(
    compra_id: str,
    entrega_id: str,
    motivo: str = "",
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    def _tx(tx: Transacao) -> Dict[str, Any]:
        compra = _obter_compra(tx, compra_id)
        entregas = [
            {**d, "status": "cancelled", "cancelledAt": agora_servidor(), "cancellationReason": motivo}
            if d.get("id") == entrega_id else d
            for d in compra.get("deliveries") or []
        ]
        return tx.atualizar("purchases", compra_id, _totais(compra, entregas))

    try:
        compra = BancoDocumentos(db_path).transacao(_tx)
    except Exception as e:
        log_transaction("cancelar_entrega", {"compra_id": compra_id, "entrega_id": entrega_id}, error=str(e))
        log_system_event("cancelar_entrega_error", {"compra_id": compra_id, "error": str(e)}, level="error")
        raise

    registrar_atividade("purchase-delivery-cancel", compra,
                        {"deliveryId": entrega_id, "reason": motivo}, usuario, db_path)
    return compra
