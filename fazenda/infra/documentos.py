"""
Banco de documentos sobre SQLite.

Cada documento é um JSON guardado na tabela `documento`, identificado por
(coleção, id). Este módulo oferece:

- BancoDocumentos: CRUD de documentos e listagem de coleções inteiras;
- Transacao: leitura/escrita de vários documentos de forma atômica,
  usada pelos casos de uso que mexem em estoque.

Obs.:
- `createdAt`/`updatedAt` são carimbados aqui ("timestamp do servidor"),
  em ISO-8601 UTC.
- Dentro de uma transação, leituras enxergam as escritas já feitas pela
  própria transação.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar

from fazenda.domain.erros import DocumentoNaoEncontrado
from .db import connect, run_in_transaction
from .migrations import apply_migrations

T = TypeVar("T")


def agora_servidor() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def novo_id() -> str:
    """ID aleatório de 20 caracteres."""
    return uuid.uuid4().hex[:20]


# -------------------------
# Helpers de SQL
# -------------------------

def _json_default(valor: Any) -> Any:
    if isinstance(valor, datetime):
        return valor.isoformat()
    if hasattr(valor, "isoformat"):
        return valor.isoformat()
    raise TypeError(f"Valor não serializável em documento: {valor!r}")


def _chave_ordenacao(valor: Any) -> tuple:
    """Números antes de textos; tipos mistos no campo não quebram a ordenação."""
    if isinstance(valor, (int, float)) and not isinstance(valor, bool):
        return (0, valor, "")
    return (1, 0, str(valor))


def _row_to_doc(row) -> Dict[str, Any]:
    doc = json.loads(row["dados"])
    doc["id"] = row["id"]
    return doc


def _ler(conn: sqlite3.Connection, colecao: str, doc_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        "SELECT id, dados FROM documento WHERE colecao = ? AND id = ?",
        (colecao, doc_id),
    ).fetchone()
    return _row_to_doc(row) if row else None


def _gravar(conn: sqlite3.Connection, colecao: str, doc_id: str, dados: Dict[str, Any]) -> None:
    corpo = {k: v for k, v in dados.items() if k != "id"}
    conn.execute(
        """
        INSERT INTO documento (colecao, id, dados, criado_em, atualizado_em)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(colecao, id) DO UPDATE SET
            dados=excluded.dados,
            atualizado_em=excluded.atualizado_em
        """,
        (
            colecao,
            doc_id,
            json.dumps(corpo, ensure_ascii=False, default=_json_default),
            corpo.get("createdAt"),
            corpo.get("updatedAt"),
        ),
    )


def _carimbar_criacao(dados: Dict[str, Any]) -> Dict[str, Any]:
    agora = agora_servidor()
    out = dict(dados)
    out.setdefault("createdAt", agora)
    out["updatedAt"] = agora
    return out


def _mesclar(atual: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(atual)
    out.update({k: v for k, v in patch.items() if k != "id"})
    out["updatedAt"] = agora_servidor()
    return out


# -------------------------
# Transação
# -------------------------

class Transacao:
    """Operações de documento sobre a conexão de uma transação aberta."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self.escritas = 0

    def obter(self, colecao: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return _ler(self._conn, colecao, doc_id)

    def definir(self, colecao: str, doc_id: str, dados: Dict[str, Any]) -> Dict[str, Any]:
        doc = _carimbar_criacao(dados)
        _gravar(self._conn, colecao, doc_id, doc)
        self.escritas += 1
        doc["id"] = doc_id
        return doc

    def criar(self, colecao: str, dados: Dict[str, Any]) -> str:
        doc_id = novo_id()
        self.definir(colecao, doc_id, dados)
        return doc_id

    def atualizar(self, colecao: str, doc_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        atual = _ler(self._conn, colecao, doc_id)
        if atual is None:
            raise DocumentoNaoEncontrado(colecao, doc_id)
        doc = _mesclar(atual, patch)
        _gravar(self._conn, colecao, doc_id, doc)
        self.escritas += 1
        return doc


# -------------------------
# Banco
# -------------------------

class BancoDocumentos:
    def __init__(self, db_path: str):
        self.db_path = db_path
        apply_migrations(db_path)

    def obter(self, colecao: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with connect(self.db_path) as c:
            return _ler(c, colecao, doc_id)

    def listar(
        self,
        colecao: str,
        ordenar_por: Optional[str] = None,
        desc: bool = False,
    ) -> List[Dict[str, Any]]:
        """Carrega a coleção inteira; documentos sem o campo de ordenação vão para o fim."""
        with connect(self.db_path) as c:
            cur = c.execute(
                "SELECT id, dados FROM documento WHERE colecao = ? ORDER BY criado_em, id",
                (colecao,),
            )
            docs = [_row_to_doc(r) for r in cur.fetchall()]
        if not ordenar_por:
            return docs
        com_valor = [d for d in docs if d.get(ordenar_por) is not None]
        sem_valor = [d for d in docs if d.get(ordenar_por) is None]
        com_valor.sort(key=lambda d: _chave_ordenacao(d[ordenar_por]), reverse=desc)
        return com_valor + sem_valor

    def adicionar(self, colecao: str, dados: Dict[str, Any]) -> str:
        doc_id = novo_id()
        self.definir(colecao, doc_id, dados)
        return doc_id

    def definir(self, colecao: str, doc_id: str, dados: Dict[str, Any]) -> Dict[str, Any]:
        doc = _carimbar_criacao(dados)
        with connect(self.db_path) as c:
            _gravar(c, colecao, doc_id, doc)
        doc["id"] = doc_id
        return doc

    def atualizar(self, colecao: str, doc_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        return self.transacao(lambda tx: tx.atualizar(colecao, doc_id, patch))

    def remover(self, colecao: str, doc_id: str) -> bool:
        with connect(self.db_path) as c:
            cur = c.execute(
                "DELETE FROM documento WHERE colecao = ? AND id = ?",
                (colecao, doc_id),
            )
            return cur.rowcount > 0

    def transacao(self, fn: Callable[[Transacao], T]) -> T:
        """Executa ``fn(tx)`` atomicamente: tudo é gravado ou nada é."""
        return run_in_transaction(self.db_path, lambda conn: fn(Transacao(conn)))


def executar_transacao(db_path: str, fn: Callable[[Transacao], T]) -> T:
    """Atalho para ``BancoDocumentos(db_path).transacao(fn)``."""
    return BancoDocumentos(db_path).transacao(fn)
