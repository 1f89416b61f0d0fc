from datetime import date

import pytest

from fazenda.domain.policies import (
    STATUS_FUMIGACAO,
    custo_por_unidade,
    estoque_baixo,
    numero_lote_colheita,
    para_iso,
    pode_descontar,
    proximo_numero,
    quantidade,
    quantidade_nao_negativa,
    status_compra,
    total_entregue,
    valida_status,
    vence_em_breve,
)


def test_proximo_numero_considera_so_o_prefixo():
    existentes = ["FUM-202501-007", "FUM-202412-099", None, "lixo"]
    assert proximo_numero(existentes, "FUM-202501-", 3) == "FUM-202501-008"
    assert proximo_numero(existentes, "FUM-202502-", 3) == "FUM-202502-001"
    assert proximo_numero([], "GAST-2025-", 4) == "GAST-2025-0001"


@pytest.mark.parametrize(
    "produto,esperado",
    [
        ({"stock": 5, "minStock": 10}, True),
        ({"stock": 10, "minStock": 10}, True),
        ({"stock": 11, "minStock": 10}, False),
        ({"stock": 0, "minStock": 0}, False),
        ({"stock": 0}, False),
    ],
)
def test_estoque_baixo(produto, esperado):
    assert estoque_baixo(produto) is esperado


def test_pode_descontar_e_quantidade():
    assert pode_descontar(10, 10)
    assert not pode_descontar(9.5, 10)
    assert quantidade(None) == 0.0
    assert quantidade("") == 0.0
    assert quantidade("2.5") == 2.5
    with pytest.raises(ValueError):
        quantidade("abc")


def test_quantidade_nao_negativa_e_para_iso():
    assert quantidade_nao_negativa("3") == 3.0
    assert quantidade_nao_negativa(None) == 0.0
    with pytest.raises(ValueError):
        quantidade_nao_negativa(-0.5, "Ureia")
    assert para_iso(date(2025, 1, 2)) == "2025-01-02"
    assert para_iso("2025-01-02") == "2025-01-02"


def test_valida_status():
    valida_status(None, STATUS_FUMIGACAO, "fumigação")
    valida_status("completed", STATUS_FUMIGACAO, "fumigação")
    with pytest.raises(ValueError):
        valida_status("feito", STATUS_FUMIGACAO, "fumigação")


def test_vence_em_breve():
    hoje = date(2025, 3, 1)
    assert vence_em_breve({"expiryDate": "2025-03-20"}, hoje, 30)
    assert vence_em_breve({"expirationDate": "2025-03-01T10:00:00+00:00"}, hoje, 30)
    assert not vence_em_breve({"expiryDate": "2025-05-01"}, hoje, 30)
    assert not vence_em_breve({"expiryDate": "2025-02-01"}, hoje, 30)
    assert not vence_em_breve({}, hoje, 30)


def test_custo_por_unidade():
    assert custo_por_unidade(100, [{"quantity": 10}, {"quantity": 15}]) == 4.0
    assert custo_por_unidade(50, []) == 50.0
    assert custo_por_unidade(None, [{"quantity": 5}]) == 0.0


def test_status_compra_e_total_entregue():
    entregas = [
        {"status": "completed", "products": [{"quantityReceived": 30}, {"quantity": 10}]},
        {"status": "in_transit", "products": [{"quantity": 20}]},
        {"status": "cancelled", "products": [{"quantity": 99}]},
    ]
    assert total_entregue(entregas) == 40
    assert total_entregue(entregas, "in_transit") == 20
    assert status_compra(100, 100) == "completed"
    assert status_compra(40, 100) == "partial_delivered"
    assert status_compra(0, 100) == "approved"


def test_numero_lote_colheita():
    assert numero_lote_colheita("abcdefghijkl", 1700000000000, "COLHEITA") == "COLHEITA-abcdefgh-1700000000000"
