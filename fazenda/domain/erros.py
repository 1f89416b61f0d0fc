"""
Exceções do domínio.

As camadas de caso de uso lançam estas exceções e a CLI as converte em
mensagens para o usuário.
"""

from __future__ import annotations

from typing import Optional


class ErroFazenda(Exception):
    """Base de todos os erros de negócio do sistema."""


class DocumentoNaoEncontrado(ErroFazenda):
    def __init__(self, colecao: str, doc_id: str):
        self.colecao = colecao
        self.doc_id = doc_id
        super().__init__(f"Documento '{doc_id}' não existe em '{colecao}'")


class EstoqueInsuficiente(ErroFazenda):
    def __init__(
        self,
        produto_id: str,
        disponivel: float,
        requerido: float,
        nome: Optional[str] = None,
    ):
        self.produto_id = produto_id
        self.disponivel = disponivel
        self.requerido = requerido
        self.nome = nome
        super().__init__(
            f"Estoque insuficiente do produto {nome or produto_id}. "
            f"Disponível: {disponivel}, requerido: {requerido}"
        )
