# fazenda/usecases/fumigacoes.py
"""
UC: Fumigações (aplicações de defensivos).
- criar_fumigacao(), atualizar_fumigacao(), remover_fumigacao(), listar_fumigacoes()
- gerar_numero_ordem(): "FUM-AAAAMM-NNN", sequencial dentro do mês.
- concluir_fumigacao(): marca como concluída e desconta o estoque dos
  produtos aplicados, numa única transação.
- cancelar_fumigacao()

Política de estoque na conclusão:
- Padrão (não estrito): produto com estoque insuficiente NÃO é descontado,
  gera um aviso no log e a conclusão segue normalmente; produto inexistente
  também é ignorado com aviso.
- Estrito (`estrito=True` ou DEFAULTS.fumigacao_estrita): estoque
  insuficiente lança EstoqueInsuficiente e nada é gravado.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Union

from fazenda.config import DB_PATH, DEFAULTS
from fazenda.domain.erros import DocumentoNaoEncontrado, EstoqueInsuficiente
from fazenda.domain.models import ConclusaoFumigacao
from fazenda.domain.policies import (
    STATUS_FUMIGACAO, para_iso, pode_descontar, proximo_numero, quantidade, valida_status
)
from fazenda.infra.documentos import BancoDocumentos, Transacao
from fazenda.infra.repositories import FumigacaoRepo
from fazenda.infra.logger import (
    log_transaction, log_movimento_estoque, log_database_operation,
    log_system_event, print_system
)
from .atividades import registrar_atividade, registrar_mudanca_status
from .comum import como_patch, uid_de


def gerar_numero_ordem(db_path: str = DB_PATH, hoje: Optional[date] = None) -> str:
    hoje = hoje or date.today()
    prefixo = f"FUM-{hoje:%Y%m}-"
    existentes = (f.get("orderNumber") for f in FumigacaoRepo(db_path).get_all())
    return proximo_numero(existentes, prefixo, 3)


def criar_fumigacao(
    dados: Dict[str, Any],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Insere a ordem de fumigação (status 'pending' se não informado)."""
    try:
        valida_status(dados.get("status"), STATUS_FUMIGACAO, "fumigação")
        doc = {k: v for k, v in dados.items() if k != "id"}
        doc["orderNumber"] = doc.get("orderNumber") or gerar_numero_ordem(db_path)
        doc["status"] = doc.get("status") or "pending"
        doc["surfaceUnit"] = doc.get("surfaceUnit") or "ha"
        doc["flowRate"] = doc.get("flowRate") or DEFAULTS.vazao_fumigacao
        doc["selectedProducts"] = doc.get("selectedProducts") or []
        doc["createdBy"] = uid_de(usuario)

        repo = FumigacaoRepo(db_path)
        doc_id = repo.adicionar(doc)
        log_database_operation("fumigations", "INSERT", 1, fumigacao_id=doc_id)
        criada = repo.obter(doc_id)

        registrar_atividade("fumigation-create", criada, usuario=usuario, db_path=db_path)
        log_transaction("criar_fumigacao", {"orderNumber": doc["orderNumber"]}, result=doc_id)
        return criada
    except Exception as e:
        log_transaction("criar_fumigacao", {"orderNumber": dados.get("orderNumber")}, error=str(e))
        log_system_event("criar_fumigacao_error", {"error": str(e)}, level="error")
        raise


def atualizar_fumigacao(
    fumigacao_id: str,
    patch: Dict[str, Any],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    campos = como_patch(patch)
    valida_status(campos.get("status"), STATUS_FUMIGACAO, "fumigação")
    atualizada = FumigacaoRepo(db_path).atualizar(fumigacao_id, campos)
    log_database_operation("fumigations", "UPDATE", 1, fumigacao_id=fumigacao_id)
    registrar_atividade("fumigation-update", atualizada, usuario=usuario, db_path=db_path)
    return atualizada


def remover_fumigacao(
    fumigacao_id: str,
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> bool:
    repo = FumigacaoRepo(db_path)
    fumigacao = repo.obter(fumigacao_id)
    if fumigacao is None:
        raise DocumentoNaoEncontrado("fumigations", fumigacao_id)
    repo.remover(fumigacao_id)
    log_database_operation("fumigations", "DELETE", 1, fumigacao_id=fumigacao_id)
    registrar_atividade("fumigation-delete", fumigacao, usuario=usuario, db_path=db_path)
    return True


def listar_fumigacoes(filtros: Optional[Dict[str, Any]] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return FumigacaoRepo(db_path).listar(filtros)


def cancelar_fumigacao(
    fumigacao_id: str,
    motivo: str = "",
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    repo = FumigacaoRepo(db_path)
    atual = repo.obter(fumigacao_id)
    if atual is None:
        raise DocumentoNaoEncontrado("fumigations", fumigacao_id)
    cancelada = repo.atualizar(fumigacao_id, {"status": "cancelled", "cancellationReason": motivo})
    registrar_mudanca_status(cancelada, "fumigation", atual.get("status"), "cancelled", motivo, usuario, db_path)
    return cancelada


# -------------------------
# Conclusão
# -------------------------

def _patch_conclusao(conclusao: Union[ConclusaoFumigacao, Dict[str, Any], None]) -> Dict[str, Any]:
    """Campos de conclusão gravados só quando algum dado foi informado."""
    if conclusao is None:
        return {}
    if isinstance(conclusao, ConclusaoFumigacao):
        return conclusao.para_patch()
    if not conclusao:
        return {}
    patch: Dict[str, Any] = {
        "weatherConditions": conclusao.get("weatherConditions") or {},
        "completionNotes": conclusao.get("completionNotes") or "",
    }
    for chave in ("startDateTime", "endDateTime"):
        if conclusao.get(chave) is not None:
            patch[chave] = para_iso(conclusao[chave])
    return patch


def concluir_fumigacao(
    fumigacao_id: str,
    conclusao: Union[ConclusaoFumigacao, Dict[str, Any], None] = None,
    db_path: str = DB_PATH,
    estrito: Optional[bool] = None,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Conclui a fumigação descontando o estoque dos produtos selecionados.

    Retorna:
        {"fumigacao": <doc atualizado>,
         "descontados": [{productId, productName, anterior, novo, quantidade}],
         "sem_estoque": [{productId, productName, disponivel, requerido, motivo}]}
    """
    estrito = DEFAULTS.fumigacao_estrita if estrito is None else estrito
    patch_conclusao = _patch_conclusao(conclusao)
    log_system_event("concluir_fumigacao_start", {"fumigacao_id": fumigacao_id, "estrito": estrito})

    def _tx(tx: Transacao) -> Dict[str, Any]:
        fumigacao = tx.obter("fumigations", fumigacao_id)
        if fumigacao is None:
            raise DocumentoNaoEncontrado("fumigations", fumigacao_id)

        descontados: List[Dict[str, Any]] = []
        sem_estoque: List[Dict[str, Any]] = []
        for item in fumigacao.get("selectedProducts") or []:
            produto_id = item.get("productId")
            requerido = quantidade(item.get("totalQuantity"))
            if not produto_id or requerido <= 0:
                continue

            produto = tx.obter("products", produto_id)
            if produto is None:
                sem_estoque.append({
                    "productId": produto_id,
                    "productName": item.get("productName"),
                    "disponivel": None,
                    "requerido": requerido,
                    "motivo": "inexistente",
                })
                continue

            disponivel = quantidade(produto.get("stock"))
            if not pode_descontar(disponivel, requerido):
                if estrito:
                    raise EstoqueInsuficiente(produto_id, disponivel, requerido, item.get("productName"))
                sem_estoque.append({
                    "productId": produto_id,
                    "productName": item.get("productName") or produto.get("name"),
                    "disponivel": disponivel,
                    "requerido": requerido,
                    "motivo": "insuficiente",
                })
                continue

            novo = disponivel - requerido
            tx.atualizar("products", produto_id, {"stock": novo})
            descontados.append({
                "productId": produto_id,
                "productName": item.get("productName") or produto.get("name"),
                "anterior": disponivel,
                "novo": novo,
                "quantidade": requerido,
            })

        atualizada = tx.atualizar("fumigations", fumigacao_id, {"status": "completed", **patch_conclusao})
        return {"fumigacao": atualizada, "descontados": descontados, "sem_estoque": sem_estoque}

    try:
        resultado = BancoDocumentos(db_path).transacao(_tx)
    except Exception as e:
        log_transaction("concluir_fumigacao", {"fumigacao_id": fumigacao_id}, error=str(e))
        log_system_event("concluir_fumigacao_error", {"fumigacao_id": fumigacao_id, "error": str(e)}, level="error")
        raise

    # Logs e atividades só depois do commit
    for d in resultado["descontados"]:
        log_movimento_estoque("desconto", d["productId"], d["anterior"], d["novo"],
                              origem=f"fumigacao:{fumigacao_id}", quantidade=d["quantidade"])
    for s in resultado["sem_estoque"]:
        log_movimento_estoque("ignorado", s["productId"], s["disponivel"], None,
                              origem=f"fumigacao:{fumigacao_id}", requerido=s["requerido"], motivo=s["motivo"])
        print_system(f"!! Estoque não descontado para {s['productName'] or s['productId']} ({s['motivo']})")
    log_database_operation("fumigations", "TRANSACTION", 1 + len(resultado["descontados"]),
                           fumigacao_id=fumigacao_id)

    registrar_atividade(
        "fumigation-complete",
        resultado["fumigacao"],
        {"deductedProducts": len(resultado["descontados"]), "skippedProducts": len(resultado["sem_estoque"])},
        usuario,
        db_path,
    )
    log_transaction("concluir_fumigacao", {"fumigacao_id": fumigacao_id},
                    result={"descontados": len(resultado["descontados"]),
                            "sem_estoque": len(resultado["sem_estoque"])})
    return resultado
