# fazenda/usecases/produtos.py
"""
UC: Produtos do estoque.
- criar_produto(), atualizar_produto(), remover_produto(), listar_produtos()
- ajustar_estoque(): ajuste manual do estoque, numa transação.

Obs.:
- O estoque nunca é gravado negativo por estes casos de uso.
- As atividades são registradas depois da gravação (melhor esforço).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from fazenda.config import DB_PATH, DEFAULTS
from fazenda.domain.erros import DocumentoNaoEncontrado
from fazenda.domain.models import AtualizacaoProduto
from fazenda.domain.policies import quantidade
from fazenda.infra.documentos import BancoDocumentos, Transacao
from fazenda.infra.repositories import ProdutoRepo
from fazenda.infra.logger import (
    log_transaction, log_movimento_estoque, log_database_operation,
    log_system_event, print_system
)
from .atividades import registrar_atividade, registrar_movimento_estoque
from .comum import como_patch, uid_de


def _valida_quantidades(dados: Dict[str, Any]) -> None:
    for chave in ("stock", "minStock"):
        if chave in dados and quantidade(dados[chave]) < 0:
            raise ValueError(f"{chave} não pode ser negativo: {dados[chave]}")


def criar_produto(
    dados: Dict[str, Any],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Insere um produto e devolve o documento gravado."""
    log_system_event("criar_produto_start", {"nome": dados.get("name")})
    try:
        if not (dados.get("name") or "").strip():
            raise ValueError("Produto sem nome")
        _valida_quantidades(dados)
        doc = {
            "unit": DEFAULTS.unidade_padrao,
            "stock": 0,
            "minStock": 0,
            **{k: v for k, v in dados.items() if k != "id"},
            "createdBy": uid_de(usuario),
        }
        repo = ProdutoRepo(db_path)
        doc_id = repo.adicionar(doc)
        log_database_operation("products", "INSERT", 1, produto_id=doc_id)
        criado = repo.obter(doc_id)

        registrar_atividade("product-create", criado, usuario=usuario, db_path=db_path)
        log_transaction("criar_produto", {"name": doc["name"]}, result=doc_id)
        return criado
    except Exception as e:
        log_transaction("criar_produto", {"name": dados.get("name")}, error=str(e))
        log_system_event("criar_produto_error", {"error": str(e)}, level="error")
        raise


def atualizar_produto(
    produto_id: str,
    patch: Union[AtualizacaoProduto, Dict[str, Any]],
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Aplica o patch (só os campos informados) e devolve o produto atualizado."""
    try:
        campos = como_patch(patch)
        _valida_quantidades(campos)
        if not campos:
            raise ValueError("Nenhum campo para atualizar")
        atualizado = ProdutoRepo(db_path).atualizar(produto_id, campos)
        log_database_operation("products", "UPDATE", 1, produto_id=produto_id, campos=sorted(campos))

        registrar_atividade("product-update", atualizado, {"changedFields": sorted(campos)}, usuario, db_path)
        return atualizado
    except Exception as e:
        log_transaction("atualizar_produto", {"produto_id": produto_id}, error=str(e))
        log_system_event("atualizar_produto_error", {"produto_id": produto_id, "error": str(e)}, level="error")
        raise


def remover_produto(
    produto_id: str,
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> bool:
    repo = ProdutoRepo(db_path)
    produto = repo.obter(produto_id)
    if produto is None:
        raise DocumentoNaoEncontrado("products", produto_id)
    repo.remover(produto_id)
    log_database_operation("products", "DELETE", 1, produto_id=produto_id)
    registrar_atividade("product-delete", produto, usuario=usuario, db_path=db_path)
    return True


def listar_produtos(filtros: Optional[Dict[str, Any]] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    """Produtos ordenados por nome; filtros: categoria, status, estoque_baixo, busca..."""
    return ProdutoRepo(db_path).listar(filtros)


def ajustar_estoque(
    produto_id: str,
    novo_estoque: float,
    motivo: str = "",
    db_path: str = DB_PATH,
    usuario: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Define o estoque do produto para `novo_estoque` (>= 0), de forma atômica.

    Retorna o produto atualizado.
    """
    log_system_event("ajustar_estoque_start", {"produto_id": produto_id, "novo_estoque": novo_estoque})
    try:
        novo = quantidade(novo_estoque)
        if novo < 0:
            raise ValueError(f"Estoque não pode ser negativo: {novo_estoque}")

        anterior: Dict[str, float] = {}

        def _tx(tx: Transacao) -> Dict[str, Any]:
            produto = tx.obter("products", produto_id)
            if produto is None:
                raise DocumentoNaoEncontrado("products", produto_id)
            anterior["stock"] = quantidade(produto.get("stock"))
            return tx.atualizar("products", produto_id, {"stock": novo})

        produto = BancoDocumentos(db_path).transacao(_tx)
        log_movimento_estoque("ajuste", produto_id, anterior["stock"], novo, motivo=motivo)
        print_system(f">> Estoque de {produto.get('name')} ajustado: {anterior['stock']} -> {novo}")

        registrar_movimento_estoque(produto, anterior["stock"], novo, motivo, usuario, db_path)
        log_transaction("ajustar_estoque", {"produto_id": produto_id}, result={"stock": novo})
        return produto
    except Exception as e:
        log_transaction("ajustar_estoque", {"produto_id": produto_id}, error=str(e))
        log_system_event("ajustar_estoque_error", {"produto_id": produto_id, "error": str(e)}, level="error")
        raise
