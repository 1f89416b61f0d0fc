from pathlib import Path

import pytest

from fazenda.infra.migrations import apply_migrations
from fazenda.usecases.produtos import criar_produto


@pytest.fixture
def db(tmp_path: Path) -> str:
    db_path = str(tmp_path / "fazenda_test.sqlite")
    apply_migrations(db_path)
    return db_path


@pytest.fixture
def produto(db):
    """Fábrica de produtos: produto(nome, estoque, **extra) -> doc."""
    def _criar(nome: str = "Glifosato", estoque: float = 100, **extra):
        return criar_produto({"name": nome, "stock": estoque, **extra}, db_path=db)
    return _criar
