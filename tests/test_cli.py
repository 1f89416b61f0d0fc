import json
from pathlib import Path

import pandas as pd
from typer.testing import CliRunner

from fazenda.adapters.cli import app
from fazenda.infra.repositories import ColheitaRepo, FumigacaoRepo, ProdutoRepo
from fazenda.usecases.produtos import listar_produtos

runner = CliRunner()


def _db(tmp_path: Path) -> str:
    db_path = str(tmp_path / "fazenda_cli.sqlite")
    result = runner.invoke(app, ["migrate", "--db", db_path])
    assert result.exit_code == 0, result.output
    return db_path


def test_cli_produtos_criar_ajustar_listar(tmp_path: Path):
    db = _db(tmp_path)
    result = runner.invoke(app, [
        "produtos", "criar", "--nome", "Ureia", "--estoque", "10,5", "--minimo", "20",
        "--validade", "31/12/2025", "--db", db,
    ])
    assert result.exit_code == 0, result.output

    [p] = listar_produtos(db_path=db)
    assert p["stock"] == 10.5
    assert p["expiryDate"] == "2025-12-31"

    result = runner.invoke(app, ["produtos", "ajustar", p["id"], "4", "--motivo", "perda", "--db", db])
    assert result.exit_code == 0, result.output
    assert ProdutoRepo(db).obter(p["id"])["stock"] == 4

    result = runner.invoke(app, ["produtos", "listar", "--baixo", "--db", db])
    assert result.exit_code == 0, result.output


def test_cli_erro_de_dominio_sai_com_codigo_1(tmp_path: Path):
    db = _db(tmp_path)
    result = runner.invoke(app, ["produtos", "ajustar", "nao-existe", "4", "--db", db])
    assert result.exit_code == 1
    assert "Erro" in result.output

    result = runner.invoke(app, ["produtos", "ajustar", "x", "abc", "--db", db])
    assert result.exit_code == 1


def test_cli_fumigacao_estrita(tmp_path: Path):
    db = _db(tmp_path)
    runner.invoke(app, ["produtos", "criar", "--nome", "Atrazina", "--estoque", "2", "--db", db])
    [p] = listar_produtos(db_path=db)

    result = runner.invoke(app, [
        "fumigacoes", "criar", "--cultura", "Soja", "--data", "2025-01-15",
        "--itens", f"{p['id']}:5", "--db", db,
    ])
    assert result.exit_code == 0, result.output
    [f] = FumigacaoRepo(db).get_all()
    assert f["selectedProducts"] == [{"productId": p["id"], "totalQuantity": 5.0}]

    result = runner.invoke(app, ["fumigacoes", "concluir", f["id"], "--estrito", "--db", db])
    assert result.exit_code == 1
    assert FumigacaoRepo(db).obter(f["id"])["status"] == "pending"

    result = runner.invoke(app, ["fumigacoes", "concluir", f["id"], "--db", db])
    assert result.exit_code == 0, result.output
    assert FumigacaoRepo(db).obter(f["id"])["status"] == "completed"
    assert ProdutoRepo(db).obter(p["id"])["stock"] == 2


def test_cli_colheita_com_json(tmp_path: Path):
    db = _db(tmp_path)
    result = runner.invoke(app, ["colheitas", "criar", json.dumps({"crop": "Milho"}), "--db", db])
    assert result.exit_code == 0, result.output
    [c] = ColheitaRepo(db).get_all()

    conclusao = tmp_path / "conclusao.json"
    conclusao.write_text(json.dumps({"harvestedProducts": [{"name": "Milho em grão", "quantity": 300}]}))
    result = runner.invoke(app, ["colheitas", "concluir", c["id"], f"@{conclusao}", "--db", db])
    assert result.exit_code == 0, result.output

    [novo] = listar_produtos(db_path=db)
    assert novo["stock"] == 300

    result = runner.invoke(app, ["colheitas", "criar", "{quebrado", "--db", db])
    assert result.exit_code == 1


def test_cli_rel_exporta_csv(tmp_path: Path):
    db = _db(tmp_path)
    runner.invoke(app, ["produtos", "criar", "--nome", "Ureia", "--estoque", "1", "--minimo", "5", "--db", db])
    saida = tmp_path / "baixo.csv"

    result = runner.invoke(app, ["rel", "estoque-baixo", "--saida", str(saida), "--db", db])
    assert result.exit_code == 0, result.output
    df = pd.read_csv(saida)
    assert df["name"].tolist() == ["Ureia"]

    result = runner.invoke(app, ["rel", "dashboard", "--db", db])
    assert result.exit_code == 0, result.output
