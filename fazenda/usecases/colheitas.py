# fazenda/usecases/colheitas.py
"""
UC: Colheitas.
- criar_colheita(): desconta os insumos (selectedProducts) e insere a
  colheita, tudo ou nada. Estoque insuficiente ABORTA a operação.
- concluir_colheita(): marca a colheita como concluída e cria um produto
  NOVO no estoque para cada item de harvestedProducts.
- atualizar_colheita(), remover_colheita(), listar_colheitas(), cancelar_colheita()

Obs.:
- A conclusão não é idempotente: concluir duas vezes cria os produtos
  colhidos duas vezes.
"""

from __future__ import annotations

import time
from datetime import date
from typing import Any, Dict, List, Optional, Union

from fazenda.config import DB_PATH, DEFAULTS
from fazenda.domain.erros import DocumentoNaoEncontrado, EstoqueInsuficiente
from fazenda.domain.models import ConclusaoColheita, ProdutoColhido
from fazenda.domain.policies import (
    STATUS_COLHEITA, numero_lote_colheita, para_iso, pode_descontar, quantidade,
    quantidade_nao_negativa, valida_status
)
from fazenda.infra.documentos import BancoDocumentos, Transacao
from fazenda.infra.repositories import ColheitaRepo
from fazenda.infra.logger import (
    log_transaction, log_movimento_estoque, log_database_operation,
    log_system_event, print_system
)
from .atividades import registrar_atividade, registrar_mudanca_status
from .comum import como_patch, uid_de


# -------------------------
# Criação
# -------------------------

def criar_colheita(
    dados: Dict[str, Any],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Cria a colheita consumindo os insumos selecionados.

    Erros:
        DocumentoNaoEncontrado: algum insumo não existe.
        EstoqueInsuficiente: algum insumo tem stock < quantity.
    Em ambos os casos nenhum estoque muda e nenhuma colheita é criada.
    """
    valida_status(dados.get("status"), STATUS_COLHEITA, "colheita")
    selecionados = list(dados.get("selectedProducts") or [])
    for item in selecionados:
        quantidade_nao_negativa(item.get("quantity"), item.get("productName") or item.get("productId"))
    log_system_event("criar_colheita_start", {"insumos": len(selecionados)})

    def _tx(tx: Transacao) -> Dict[str, Any]:
        movimentos: List[Dict[str, Any]] = []
        for item in selecionados:
            produto_id = item.get("productId")
            produto = tx.obter("products", produto_id) if produto_id else None
            if produto is None:
                raise DocumentoNaoEncontrado("products", str(produto_id))

            disponivel = quantidade(produto.get("stock"))
            requerido = quantidade(item.get("quantity"))
            if not pode_descontar(disponivel, requerido):
                raise EstoqueInsuficiente(produto_id, disponivel, requerido, produto.get("name"))

            novo = disponivel - requerido
            tx.atualizar("products", produto_id, {"stock": novo})
            movimentos.append({"productId": produto_id, "anterior": disponivel, "novo": novo, "quantidade": requerido})

        doc = {k: para_iso(v) for k, v in dados.items() if k != "id"}
        doc.update({
            "status": dados.get("status") or "pending",
            "areaUnit": dados.get("areaUnit") or "ha",
            "yieldUnit": dados.get("yieldUnit") or "kg/ha",
            "totalHarvestedUnit": dados.get("totalHarvestedUnit") or "kg",
            "machinery": dados.get("machinery") or [],
            "selectedProducts": selecionados,
            "harvestedProducts": dados.get("harvestedProducts") or [],
            "createdBy": uid_de(usuario),
        })
        colheita_id = tx.criar("harvests", doc)
        return {"colheita": tx.obter("harvests", colheita_id), "movimentos": movimentos}

    try:
        resultado = BancoDocumentos(db_path).transacao(_tx)
    except Exception as e:
        log_transaction("criar_colheita", {"crop": dados.get("crop")}, error=str(e))
        log_system_event("criar_colheita_error", {"error": str(e)}, level="error")
        raise

    colheita = resultado["colheita"]
    for m in resultado["movimentos"]:
        log_movimento_estoque("desconto", m["productId"], m["anterior"], m["novo"],
                              origem=f"colheita:{colheita['id']}", quantidade=m["quantidade"])
    log_database_operation("harvests", "TRANSACTION", 1 + len(resultado["movimentos"]), colheita_id=colheita["id"])
    print_system(f">> Colheita {colheita['id']} criada ({len(resultado['movimentos'])} insumos descontados)")

    registrar_atividade("harvest-create", colheita, usuario=usuario, db_path=db_path)
    log_transaction("criar_colheita", {"crop": dados.get("crop")}, result=colheita["id"])
    return colheita


# -------------------------
# Conclusão
# -------------------------

def _patch_conclusao(conclusao: Union[ConclusaoColheita, Dict[str, Any], None]) -> Dict[str, Any]:
    if conclusao is None:
        return {}
    if isinstance(conclusao, ConclusaoColheita):
        return conclusao.para_patch()
    patch: Dict[str, Any] = {}
    for chave in ("actualYield", "totalHarvested", "harvestDate", "qualityNotes", "weatherConditions"):
        if conclusao.get(chave):
            patch[chave] = para_iso(conclusao[chave])
    produtos = conclusao.get("harvestedProducts")
    if produtos:
        patch["harvestedProducts"] = [
            p.para_doc() if isinstance(p, ProdutoColhido) else dict(p) for p in produtos
        ]
    for item in patch.get("harvestedProducts") or []:
        quantidade_nao_negativa(item.get("quantity"), item.get("name"))
    return patch


def produto_da_colheita(
    item: Dict[str, Any],
    colheita_id: str,
    colheita: Dict[str, Any],
    instante_ms: int,
    hoje: Optional[date] = None,
) -> Dict[str, Any]:
    """Documento do produto novo gerado por um item colhido."""
    prefixo = DEFAULTS.prefixo_lote_colheita
    cultura = colheita.get("crop") or "cultura"
    hoje = hoje or date.today()
    return {
        "name": item.get("name"),
        "code": f"{prefixo}-{colheita_id[:8]}",
        "category": item.get("category") or DEFAULTS.categoria_colheita,
        "storageType": "dry",
        "unit": item.get("unit") or DEFAULTS.unidade_padrao,
        "stock": quantidade_nao_negativa(item.get("quantity"), item.get("name")),
        "minStock": 0,
        "storageConditions": "Ambiente",
        "warehouseId": item.get("warehouseId") or colheita.get("targetWarehouse") or "",
        "storageLevel": item.get("storageLevel") or "warehouse",
        "lotNumber": numero_lote_colheita(colheita_id, instante_ms, prefixo),
        "tags": [prefixo.lower(), cultura],
        "notes": f"Produto obtido da colheita de {cultura} em {hoje:%d/%m/%Y}",
    }


def concluir_colheita(
    colheita_id: str,
    conclusao: Union[ConclusaoColheita, Dict[str, Any], None] = None,
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Conclui a colheita e insere os produtos colhidos no estoque.

    Retorna {"colheita": <doc atualizado>, "produtos": [<docs criados>]}.
    """
    patch_conclusao = _patch_conclusao(conclusao)
    log_system_event("concluir_colheita_start", {"colheita_id": colheita_id})

    def _tx(tx: Transacao) -> Dict[str, Any]:
        colheita = tx.obter("harvests", colheita_id)
        if colheita is None:
            raise DocumentoNaoEncontrado("harvests", colheita_id)

        patch = dict(patch_conclusao)
        patch["status"] = "completed"
        patch["actualYield"] = patch_conclusao.get("actualYield") or colheita.get("actualYield") or 0
        patch["totalHarvested"] = patch_conclusao.get("totalHarvested") or colheita.get("totalHarvested") or 0

        instante_ms = int(time.time() * 1000)
        criados: List[Dict[str, Any]] = []
        for item in patch_conclusao.get("harvestedProducts") or []:
            doc = produto_da_colheita(item, colheita_id, colheita, instante_ms)
            produto_id = tx.criar("products", doc)
            criados.append(tx.obter("products", produto_id))

        atualizada = tx.atualizar("harvests", colheita_id, patch)
        return {"colheita": atualizada, "produtos": criados}

    try:
        resultado = BancoDocumentos(db_path).transacao(_tx)
    except Exception as e:
        log_transaction("concluir_colheita", {"colheita_id": colheita_id}, error=str(e))
        log_system_event("concluir_colheita_error", {"colheita_id": colheita_id, "error": str(e)}, level="error")
        raise

    for p in resultado["produtos"]:
        log_movimento_estoque("entrada", p["id"], 0, p["stock"], origem=f"colheita:{colheita_id}",
                              lote=p["lotNumber"])
    log_database_operation("harvests", "TRANSACTION", 1 + len(resultado["produtos"]), colheita_id=colheita_id)

    registrar_atividade(
        "harvest-complete",
        resultado["colheita"],
        {"productsCreated": len(resultado["produtos"])},
        usuario,
        db_path,
    )
    log_transaction("concluir_colheita", {"colheita_id": colheita_id},
                    result={"produtos_criados": len(resultado["produtos"])})
    return resultado


# -------------------------
# CRUD simples
# -------------------------

def atualizar_colheita(
    colheita_id: str,
    patch: Dict[str, Any],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    campos = {k: para_iso(v) for k, v in como_patch(patch).items()}
    valida_status(campos.get("status"), STATUS_COLHEITA, "colheita")
    atualizada = ColheitaRepo(db_path).atualizar(colheita_id, campos)
    log_database_operation("harvests", "UPDATE", 1, colheita_id=colheita_id)
    registrar_atividade("harvest-update", atualizada, usuario=usuario, db_path=db_path)
    return atualizada


def remover_colheita(
    colheita_id: str,
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> bool:
    repo = ColheitaRepo(db_path)
    colheita = repo.obter(colheita_id)
    if colheita is None:
        raise DocumentoNaoEncontrado("harvests", colheita_id)
    repo.remover(colheita_id)
    log_database_operation("harvests", "DELETE", 1, colheita_id=colheita_id)
    registrar_atividade("harvest-delete", colheita, usuario=usuario, db_path=db_path)
    return True


def cancelar_colheita(
    colheita_id: str,
    motivo: str = "",
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    repo = ColheitaRepo(db_path)
    atual = repo.obter(colheita_id)
    if atual is None:
        raise DocumentoNaoEncontrado("harvests", colheita_id)
    cancelada = repo.atualizar(colheita_id, {"status": "cancelled", "cancellationReason": motivo})
    registrar_mudanca_status(cancelada, "harvest", atual.get("status"), "cancelled", motivo, usuario, db_path)
    return cancelada


def listar_colheitas(filtros: Optional[Dict[str, Any]] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return ColheitaRepo(db_path).listar(filtros)
