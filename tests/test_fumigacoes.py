from datetime import date, datetime

import pytest

from fazenda.domain.erros import DocumentoNaoEncontrado, EstoqueInsuficiente
from fazenda.domain.models import ConclusaoFumigacao
from fazenda.infra.repositories import AtividadeRepo, FumigacaoRepo, ProdutoRepo
from fazenda.usecases.fumigacoes import (
    cancelar_fumigacao,
    concluir_fumigacao,
    criar_fumigacao,
    gerar_numero_ordem,
    listar_fumigacoes,
)


def _fumigacao(db, *itens, **extra):
    dados = {
        "crop": "Soja",
        "applicationDate": "2025-01-15",
        "field": {"name": "Talhão 3"},
        "selectedProducts": [
            {"productId": pid, "productName": nome, "totalQuantity": qtd} for pid, nome, qtd in itens
        ],
        **extra,
    }
    return criar_fumigacao(dados, db_path=db)


def test_criar_fumigacao_aplica_padroes(db):
    f = _fumigacao(db)
    assert f["status"] == "pending"
    assert f["surfaceUnit"] == "ha"
    assert f["flowRate"] == 80.0
    assert f["selectedProducts"] == []
    assert f["createdBy"] == ""
    assert f["orderNumber"].startswith(f"FUM-{date.today():%Y%m}-")


def test_criar_fumigacao_status_invalido(db):
    with pytest.raises(ValueError):
        _fumigacao(db, status="feito")


def test_gerar_numero_ordem_sequencial_no_mes(db):
    _fumigacao(db, orderNumber="FUM-202501-007")
    _fumigacao(db, orderNumber="FUM-202412-031")
    assert gerar_numero_ordem(db, date(2025, 1, 20)) == "FUM-202501-008"
    assert gerar_numero_ordem(db, date(2025, 2, 1)) == "FUM-202502-001"


def test_concluir_desconta_estoque_suficiente(db, produto):
    p1 = produto("Glifosato", 100)
    p2 = produto("Atrazina", 10)
    f = _fumigacao(db, (p1["id"], "Glifosato", 40), (p2["id"], "Atrazina", 10))

    res = concluir_fumigacao(f["id"], db_path=db)

    repo = ProdutoRepo(db)
    assert repo.obter(p1["id"])["stock"] == 60
    assert repo.obter(p2["id"])["stock"] == 0
    assert res["fumigacao"]["status"] == "completed"
    assert len(res["descontados"]) == 2
    assert res["sem_estoque"] == []


def test_concluir_ignora_estoque_insuficiente_e_conclui(db, produto):
    p1 = produto("Glifosato", 100)
    p2 = produto("Atrazina", 5)
    f = _fumigacao(db, (p1["id"], "Glifosato", 40), (p2["id"], "Atrazina", 10))

    res = concluir_fumigacao(f["id"], db_path=db)

    repo = ProdutoRepo(db)
    assert repo.obter(p1["id"])["stock"] == 60
    assert repo.obter(p2["id"])["stock"] == 5
    assert FumigacaoRepo(db).obter(f["id"])["status"] == "completed"
    assert res["sem_estoque"] == [{
        "productId": p2["id"],
        "productName": "Atrazina",
        "disponivel": 5.0,
        "requerido": 10.0,
        "motivo": "insuficiente",
    }]


def test_concluir_estrito_aborta_sem_gravar(db, produto):
    p1 = produto("Glifosato", 100)
    p2 = produto("Atrazina", 5)
    f = _fumigacao(db, (p1["id"], "Glifosato", 40), (p2["id"], "Atrazina", 10))

    with pytest.raises(EstoqueInsuficiente) as exc:
        concluir_fumigacao(f["id"], db_path=db, estrito=True)

    assert exc.value.produto_id == p2["id"]
    assert ProdutoRepo(db).obter(p1["id"])["stock"] == 100
    assert FumigacaoRepo(db).obter(f["id"])["status"] == "pending"


def test_concluir_estrito_pela_configuracao(db, produto, monkeypatch):
    from fazenda.config import DEFAULTS

    monkeypatch.setattr(DEFAULTS, "fumigacao_estrita", True)
    p = produto("Atrazina", 1)
    f = _fumigacao(db, (p["id"], "Atrazina", 10))
    with pytest.raises(EstoqueInsuficiente):
        concluir_fumigacao(f["id"], db_path=db)


def test_concluir_produto_inexistente_e_quantidade_zero(db, produto):
    p = produto("Glifosato", 10)
    f = _fumigacao(db, ("sumiu", "Fantasma", 5), (p["id"], "Glifosato", 0))

    res = concluir_fumigacao(f["id"], db_path=db)

    assert ProdutoRepo(db).obter(p["id"])["stock"] == 10
    assert res["descontados"] == []
    assert [s["motivo"] for s in res["sem_estoque"]] == ["inexistente"]


def test_concluir_produto_repetido_desconta_ate_acabar(db, produto):
    p = produto("Glifosato", 10)
    f = _fumigacao(db, (p["id"], "Glifosato", 4), (p["id"], "Glifosato", 7))

    res = concluir_fumigacao(f["id"], db_path=db)

    assert ProdutoRepo(db).obter(p["id"])["stock"] == 6
    assert len(res["descontados"]) == 1
    assert res["sem_estoque"] == [{
        "productId": p["id"],
        "productName": "Glifosato",
        "disponivel": 6.0,
        "requerido": 7.0,
        "motivo": "insuficiente",
    }]


def test_concluir_fumigacao_inexistente(db):
    with pytest.raises(DocumentoNaoEncontrado):
        concluir_fumigacao("nao-existe", db_path=db)


def test_concluir_grava_dados_de_conclusao(db):
    f = _fumigacao(db)
    conclusao = ConclusaoFumigacao(
        inicio=datetime(2025, 1, 15, 8, 0),
        fim=datetime(2025, 1, 15, 11, 30),
        notas="Sem vento",
    )
    res = concluir_fumigacao(f["id"], conclusao, db_path=db)
    doc = res["fumigacao"]
    assert doc["completionNotes"] == "Sem vento"
    assert doc["weatherConditions"] == {}
    assert doc["startDateTime"] == "2025-01-15T08:00:00"
    assert doc["endDateTime"] == "2025-01-15T11:30:00"


def test_concluir_registra_atividade(db, produto):
    p = produto("Glifosato", 10)
    f = _fumigacao(db, (p["id"], "Glifosato", 4))
    concluir_fumigacao(f["id"], db_path=db)

    atividades = AtividadeRepo(db).listar({"entidade_id": f["id"], "tipo": "complete"})
    assert len(atividades) == 1
    assert atividades[0]["description"] == f"Concluiu fumigação {f['orderNumber']}"
    assert atividades[0]["metadata"]["deductedProducts"] == 1


def test_cancelar_e_listar(db):
    f1 = _fumigacao(db, crop="Soja", applicationDate="2025-01-10")
    f2 = _fumigacao(db, crop="Milho", applicationDate="2025-02-10")
    cancelar_fumigacao(f1["id"], "chuva", db_path=db)

    assert [f["id"] for f in listar_fumigacoes(db_path=db)] == [f2["id"], f1["id"]]
    assert [f["id"] for f in listar_fumigacoes({"status": "cancelled"}, db_path=db)] == [f1["id"]]
    assert [f["id"] for f in listar_fumigacoes({"cultura": "mil"}, db_path=db)] == [f2["id"]]
