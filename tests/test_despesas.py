from datetime import date

import pytest

from fazenda.domain.erros import EstoqueInsuficiente
from fazenda.infra.repositories import DespesaRepo, ProdutoRepo
from fazenda.usecases.despesas import criar_despesa, listar_despesas, remover_despesa


def test_venda_de_produto_desconta_estoque(db, produto):
    p = produto("Soja", 100)
    d = criar_despesa(
        {"type": "product", "productId": p["id"], "productName": "Soja",
         "quantitySold": 30, "totalAmount": 4500, "productCategory": "Grãos"},
        db_path=db,
    )
    assert ProdutoRepo(db).obter(p["id"])["stock"] == 70
    assert d["expenseNumber"] == f"GAST-{date.today():%Y}-0001"


def test_venda_sem_estoque_nao_grava(db, produto):
    p = produto("Soja", 10)
    with pytest.raises(EstoqueInsuficiente):
        criar_despesa({"type": "product", "productId": p["id"], "quantitySold": 30}, db_path=db)
    assert ProdutoRepo(db).obter(p["id"])["stock"] == 10
    assert DespesaRepo(db).get_all() == []


def test_despesa_comum_nao_mexe_em_estoque(db, produto):
    p = produto("Soja", 10)
    d1 = criar_despesa({"type": "other", "amount": 250, "category": "Manutenção", "date": date(2025, 1, 5)}, db_path=db)
    d2 = criar_despesa({"type": "other", "amount": 90, "category": "Energia"}, db_path=db)

    assert ProdutoRepo(db).obter(p["id"])["stock"] == 10
    assert d1["date"] == "2025-01-05"
    assert d2["expenseNumber"].endswith("-0002")
    assert [d["id"] for d in listar_despesas({"categoria": "Energia"}, db_path=db)] == [d2["id"]]


def test_remover_despesa(db):
    d = criar_despesa({"type": "other", "amount": 1}, db_path=db)
    assert remover_despesa(d["id"], db_path=db) is True
    assert listar_despesas(db_path=db) == []
