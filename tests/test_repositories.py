import pytest

from fazenda.infra.repositories import ColheitaRepo, DespesaRepo, FumigacaoRepo


def test_filtro_contem_em_campo_aninhado(db):
    repo = FumigacaoRepo(db)
    a = repo.adicionar({"crop": "Soja", "field": {"name": "Talhão Norte"}, "applicationDate": "2025-01-10"})
    repo.adicionar({"crop": "Milho", "field": {"name": "Talhão Sul"}, "applicationDate": "2025-02-10"})

    assert [d["id"] for d in repo.listar({"campo": "norte"})] == [a]


def test_filtro_periodo(db):
    repo = ColheitaRepo(db)
    repo.adicionar({"crop": "Soja", "plannedDate": "2025-01-10"})
    b = repo.adicionar({"crop": "Milho", "plannedDate": "2025-02-10"})
    repo.adicionar({"crop": "Trigo"})

    assert [d["id"] for d in repo.listar({"periodo": ("2025-02-01", None)})] == [b]
    assert len(repo.listar({"periodo": (None, None)})) == 2


def test_filtros_vazios_sao_ignorados(db):
    repo = DespesaRepo(db)
    repo.adicionar({"type": "other"})
    repo.adicionar({"type": "product", "productCategory": "Grãos"})

    assert len(repo.listar({"tipo": None, "categoria": ""})) == 2
    assert len(repo.listar({"categoria": "Grãos"})) == 1


def test_filtro_desconhecido(db):
    with pytest.raises(ValueError):
        ColheitaRepo(db).listar({"fornecedor": "x"})
