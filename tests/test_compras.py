from datetime import date

import pytest

from fazenda.domain.erros import DocumentoNaoEncontrado
from fazenda.infra.repositories import ProdutoRepo
from fazenda.usecases.compras import (
    cancelar_entrega,
    concluir_entrega,
    criar_compra,
    criar_entrega,
    gerar_numero_compra,
    listar_compras,
)


def _compra(db, produto_id, quantidade=100, **extra):
    return criar_compra(
        {
            "supplier": "AgroSul",
            "products": [{"productId": produto_id, "quantity": quantidade}],
            **extra,
        },
        db_path=db,
    )


def test_criar_compra(db, produto):
    p = produto("Semente", 0)
    c = _compra(db, p["id"])
    assert c["status"] == "pending"
    assert c["totalProducts"] == 100
    assert c["totalPending"] == 100
    assert c["totalDelivered"] == 0
    assert c["deliveries"] == []
    assert c["purchaseNumber"] == f"COMP-{date.today():%Y%m}-0001"


def test_gerar_numero_compra(db, produto):
    p = produto("Semente", 0)
    _compra(db, p["id"], purchaseNumber="COMP-202501-0009")
    assert gerar_numero_compra(db, date(2025, 1, 31)) == "COMP-202501-0010"


def test_entregas_parciais_ate_concluir(db, produto):
    p = produto("Semente", 5)
    c = _compra(db, p["id"])

    e1 = criar_entrega(c["id"], {"products": [{"productId": p["id"], "quantity": 40}]}, db_path=db)
    assert e1["status"] == "pending"
    assert e1["deliveryNumber"] == f"ENT-{c['purchaseNumber']}-1"

    compra = concluir_entrega(c["id"], e1["id"], [{"productId": p["id"], "quantityReceived": 40}], db_path=db)
    assert compra["status"] == "partial_delivered"
    assert compra["totalDelivered"] == 40
    assert compra["totalPending"] == 60
    assert ProdutoRepo(db).obter(p["id"])["stock"] == 45

    e2 = criar_entrega(c["id"], {"products": [{"productId": p["id"], "quantity": 60}]}, db_path=db)
    compra = concluir_entrega(
        c["id"], e2["id"], [{"productId": p["id"], "quantityReceived": 60, "warehouseId": "dep-2"}], db_path=db
    )
    assert compra["status"] == "completed"
    assert compra["totalPending"] == 0
    final = ProdutoRepo(db).obter(p["id"])
    assert final["stock"] == 105
    assert final["warehouseId"] == "dep-2"


def test_concluir_entrega_inexistente(db, produto):
    p = produto("Semente", 5)
    c = _compra(db, p["id"])
    with pytest.raises(DocumentoNaoEncontrado):
        concluir_entrega(c["id"], "delivery-x", [{"productId": p["id"], "quantityReceived": 1}], db_path=db)
    assert ProdutoRepo(db).obter(p["id"])["stock"] == 5

    with pytest.raises(DocumentoNaoEncontrado):
        criar_entrega("nao-existe", {}, db_path=db)


def test_cancelar_entrega_recalcula(db, produto):
    p = produto("Semente", 0)
    c = _compra(db, p["id"])
    e = criar_entrega(c["id"], {"products": [{"productId": p["id"], "quantity": 30}]}, db_path=db)

    compra = cancelar_entrega(c["id"], e["id"], "atraso", db_path=db)

    [entrega] = compra["deliveries"]
    assert entrega["status"] == "cancelled"
    assert entrega["cancellationReason"] == "atraso"
    assert compra["totalDelivered"] == 0
    assert compra["totalPending"] == 100
    assert compra["status"] == "approved"


def test_listar_por_fornecedor(db, produto):
    p = produto("Semente", 0)
    c1 = _compra(db, p["id"])
    _compra(db, p["id"], supplier="Outro")
    assert [c["id"] for c in listar_compras({"fornecedor": "agro"}, db_path=db)] == [c1["id"]]
