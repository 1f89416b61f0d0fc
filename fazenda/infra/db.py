"""
Utilidades de conexão SQLite.
"""

from __future__ import annotations

import sqlite3
import time
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from fazenda.config import DEFAULTS

T = TypeVar("T")


@contextmanager
def connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Context manager para abrir conexão SQLite com:
    - foreign_keys ON
    - row_factory = sqlite3.Row
    - commit ao sair (rollback em caso de exceção)
    """
    conn = sqlite3.connect(db_path)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def write_transaction(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Abre uma transação de escrita exclusiva (BEGIN IMMEDIATE).

    O lock de escrita é obtido já no início, então tudo o que for lido
    dentro do bloco continua válido até o commit (isolamento serializável
    para os documentos lidos e escritos).
    """
    conn = sqlite3.connect(db_path, isolation_level=None, timeout=0.5)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("BEGIN IMMEDIATE;")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK;")
            raise
        conn.execute("COMMIT;")
    finally:
        conn.close()


def _banco_bloqueado(exc: sqlite3.OperationalError) -> bool:
    msg = str(exc).lower()
    return "locked" in msg or "busy" in msg


def run_in_transaction(
    db_path: str,
    fn: Callable[[sqlite3.Connection], T],
    tentativas: int = DEFAULTS.tentativas_transacao,
) -> T:
    """
    Executa ``fn(conn)`` numa transação de escrita, repetindo quando o
    banco está bloqueado por outro escritor.

    Qualquer outra exceção lançada por ``fn`` desfaz a transação inteira
    e é propagada sem nova tentativa.
    """
    ultima: sqlite3.OperationalError | None = None
    for tentativa in range(1, max(1, tentativas) + 1):
        try:
            with write_transaction(db_path) as conn:
                return fn(conn)
        except sqlite3.OperationalError as e:
            if not _banco_bloqueado(e):
                raise
            ultima = e
            time.sleep(DEFAULTS.espera_transacao_s * tentativa)
    assert ultima is not None
    raise ultima
