# fazenda/infra/migrations.py
"""
Migrações de schema usando PRAGMA user_version.

V1: tabela de documentos (coleção, id, JSON) + índice por coleção
V2: índice por data de atualização (consultas de relatórios/atividades)
"""

from __future__ import annotations

from typing import List
from .db import connect


SCHEMA_V1: List[str] = [
    # Documentos de todas as coleções (products, fumigations, harvests, ...)
    """
    CREATE TABLE IF NOT EXISTS documento (
        colecao TEXT NOT NULL,
        id TEXT NOT NULL,
        dados TEXT NOT NULL,          -- JSON do documento (sem o id)
        criado_em TEXT,
        atualizado_em TEXT,
        PRIMARY KEY (colecao, id)
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_documento_colecao ON documento (colecao);
    """,
]

SCHEMA_V2: List[str] = [
    """
    CREATE INDEX IF NOT EXISTS ix_documento_atualizado
        ON documento (colecao, atualizado_em);
    """,
]


def _apply(conn, scripts: List[str]) -> None:
    for sql in scripts:
        conn.executescript(sql)


def apply_migrations(db_path: str) -> None:
    """Aplica migrações incrementais de acordo com PRAGMA user_version."""
    with connect(db_path) as conn:
        ver = conn.execute("PRAGMA user_version;").fetchone()[0] or 0

        if ver < 1:
            _apply(conn, SCHEMA_V1)
            conn.execute("PRAGMA user_version = 1;")
            ver = 1

        if ver < 2:
            _apply(conn, SCHEMA_V2)
            conn.execute("PRAGMA user_version = 2;")
            ver = 2
