import io
from datetime import date

import openpyxl
import pandas as pd
import pytest

from fazenda.usecases.cadastros import criar_campo, criar_deposito
from fazenda.usecases.colheitas import criar_colheita
from fazenda.usecases.fumigacoes import concluir_fumigacao, criar_fumigacao
from fazenda.usecases.relatorios import (
    exportar,
    relatorio_atividades,
    relatorio_estoque_baixo,
    relatorio_inventario,
    relatorio_produtos,
    resumo_dashboard,
)
from fazenda.usecases.transferencias import criar_transferencia


def _seed(db, produto):
    baixo = produto("Ureia", 5, minStock=10, expiryDate="2025-03-10")
    produto("Atrazina", 0, expiryDate="2025-03-20")
    produto("Calcário", 100, minStock=10, expiryDate="2025-06-01")
    criar_deposito({"name": "Galpão"}, db_path=db)
    criar_transferencia(
        {"sourceWarehouseId": "a", "targetWarehouseId": "b",
         "products": [{"productId": baixo["id"], "quantity": 1}]},
        db_path=db,
    )
    criar_fumigacao({"crop": "Soja", "applicationDate": "2025-01-15"}, db_path=db)
    criar_colheita({"crop": "Milho", "plannedDate": "2025-04-01"}, db_path=db)
    return baixo


def test_resumo_dashboard(db, produto):
    baixo = _seed(db, produto)
    resumo = resumo_dashboard(db_path=db, hoje=date(2025, 3, 1))

    assert resumo["totalProducts"] == 3
    assert resumo["lowStockCount"] == 1
    assert [p["id"] for p in resumo["lowStockProducts"]] == [baixo["id"]]
    assert resumo["expiringCount"] == 2
    assert [p["name"] for p in resumo["expiringProducts"]] == ["Ureia", "Atrazina"]
    assert resumo["warehouseCount"] == 1
    assert resumo["pendingTransfersCount"] == 1
    assert resumo["pendingFumigationsCount"] == 1
    assert resumo["upcomingHarvestsCount"] == 1


def test_resumo_dashboard_limita_listas(db, produto):
    for i in range(7):
        produto(f"P{i}", 0, minStock=1)
    resumo = resumo_dashboard(db_path=db, hoje=date(2025, 3, 1), limite=5)
    assert resumo["lowStockCount"] == 7
    assert len(resumo["lowStockProducts"]) == 5


def test_estoque_baixo_e_inventario(db, produto):
    _seed(db, produto)
    criar_campo({"name": "Norte"}, db_path=db)
    assert [p["name"] for p in relatorio_estoque_baixo(db_path=db)] == ["Ureia"]

    inventario = relatorio_inventario(db_path=db)
    assert [c["name"] for c in inventario["fields"]] == ["Norte"]
    assert [d["name"] for d in inventario["warehouses"]] == ["Galpão"]


def test_relatorio_produtos_filtros(db, produto):
    _seed(db, produto)
    assert len(relatorio_produtos({"startDate": date(2000, 1, 1)}, db_path=db)) == 3
    assert relatorio_produtos({"endDate": date(2000, 1, 2)}, db_path=db) == []
    produto("Semente", 1, category="Sementes")
    assert [p["name"] for p in relatorio_produtos({"category": "Sementes"}, db_path=db)] == ["Semente"]


def test_relatorio_atividades_consolidado(db, produto):
    _seed(db, produto)
    linhas = relatorio_atividades(db_path=db)

    assert {l["type"] for l in linhas} == {"transfer", "fumigation", "harvest"}
    assert linhas[-1]["type"] == "fumigation"
    assert linhas[-1]["description"].endswith("- Soja")

    fumigacao = linhas[-1]
    concluir_fumigacao(fumigacao["id"], db_path=db)
    pendentes = relatorio_atividades({"status": "pending"}, db_path=db)
    assert fumigacao["id"] not in {l["id"] for l in pendentes}


def test_exportar_csv():
    linhas = [{"name": "Ureia", "stock": 5}, {"name": "Atrazina", "stock": 0}]
    conteudo = exportar(linhas, [("name", "Nome"), "stock"], "Produtos", formato="csv")

    df = pd.read_csv(io.BytesIO(conteudo))
    assert list(df.columns) == ["Nome", "stock"]
    assert df["Nome"].tolist() == ["Ureia", "Atrazina"]


def test_exportar_xlsx_com_titulo():
    linhas = [{"name": "Ureia", "stock": 5}]
    conteudo = exportar(linhas, [("name", "Nome"), ("stock", "Estoque")], "Estoque: Baixo")

    wb = openpyxl.load_workbook(io.BytesIO(conteudo))
    assert wb.sheetnames == ["Estoque  Baixo"]
    ws = wb.active
    assert ws["A1"].value == "Estoque: Baixo"
    assert ws["A3"].value == "Nome"
    assert ws["B3"].value == "Estoque"
    assert ws["A4"].value == "Ureia"
    assert ws["B4"].value == 5


def test_exportar_formato_invalido():
    with pytest.raises(ValueError):
        exportar([], ["name"], "X", formato="pdf")
