import pytest

from fazenda.domain.erros import DocumentoNaoEncontrado, EstoqueInsuficiente
from fazenda.infra.repositories import ProdutoRepo, TransferenciaRepo
from fazenda.usecases.transferencias import (
    aprovar_transferencia,
    atualizar_transferencia,
    criar_transferencia,
    enviar_transferencia,
    listar_transferencias,
    receber_transferencia,
    rejeitar_transferencia,
)

USUARIO = {"uid": "u1", "displayName": "Ana", "email": "ana@fazenda.com"}


def _transferencia(db, *linhas, custo=0):
    return criar_transferencia(
        {
            "sourceWarehouseId": "dep-a",
            "targetWarehouseId": "dep-b",
            "transferCost": custo,
            "products": [{"productId": pid, "quantity": q} for pid, q in linhas],
        },
        db_path=db,
        usuario=USUARIO,
    )


def test_criar_transferencia(db, produto):
    p = produto("Ureia", 50, warehouseId="dep-a")
    t = _transferencia(db, (p["id"], 20), custo=100)
    assert t["status"] == "pending"
    assert t["costPerUnit"] == 5.0
    assert t["requestedBy"] == "Ana"
    assert t["transferNumber"].startswith("TR-")


def test_criar_transferencia_validacoes(db, produto):
    p = produto("Ureia", 50)
    with pytest.raises(ValueError):
        criar_transferencia(
            {"sourceWarehouseId": "dep-a", "targetWarehouseId": "dep-a", "products": []}, db_path=db
        )
    with pytest.raises(ValueError):
        _transferencia(db, (p["id"], 0))
    assert TransferenciaRepo(db).get_all() == []


def test_fluxo_completo_move_estoque(db, produto):
    p = produto("Ureia", 50, warehouseId="dep-a")
    t = _transferencia(db, (p["id"], 20))

    assert aprovar_transferencia(t["id"], db_path=db, usuario=USUARIO)["status"] == "approved"

    enviada = enviar_transferencia(t["id"], db_path=db, usuario=USUARIO)
    assert enviada["status"] == "shipped"
    assert enviada["shippedBy"] == "Ana"
    assert ProdutoRepo(db).obter(p["id"])["stock"] == 30

    recebida = receber_transferencia(t["id"], db_path=db, usuario=USUARIO)
    assert recebida["status"] == "completed"
    destino = ProdutoRepo(db).obter(p["id"])
    assert destino["stock"] == 50
    assert destino["warehouseId"] == "dep-b"


def test_receber_com_quantidade_recebida(db, produto):
    p = produto("Ureia", 50)
    t = _transferencia(db, (p["id"], 20))
    enviar_transferencia(t["id"], db_path=db)

    recebidos = [{"productId": p["id"], "quantity": 20, "quantityReceived": 18}]
    recebida = receber_transferencia(t["id"], recebidos, db_path=db)

    assert ProdutoRepo(db).obter(p["id"])["stock"] == 48
    assert recebida["receivedProducts"] == recebidos


def test_enviar_sem_estoque_aborta(db, produto):
    p1 = produto("Ureia", 50)
    p2 = produto("Calcário", 5)
    t = _transferencia(db, (p1["id"], 20), (p2["id"], 10))

    with pytest.raises(EstoqueInsuficiente):
        enviar_transferencia(t["id"], db_path=db)

    assert ProdutoRepo(db).obter(p1["id"])["stock"] == 50
    assert TransferenciaRepo(db).obter(t["id"])["status"] == "pending"


def test_linha_editada_com_quantidade_negativa_nao_mexe_no_estoque(db, produto):
    p = produto("Ureia", 50)
    t = _transferencia(db, (p["id"], 20))

    with pytest.raises(ValueError):
        atualizar_transferencia(t["id"], {"products": [{"productId": p["id"], "quantity": -5}]}, db_path=db)

    TransferenciaRepo(db).atualizar(t["id"], {"products": [{"productId": p["id"], "quantity": -5}]})
    with pytest.raises(ValueError):
        enviar_transferencia(t["id"], db_path=db)
    with pytest.raises(ValueError):
        receber_transferencia(t["id"], db_path=db)

    assert ProdutoRepo(db).obter(p["id"])["stock"] == 50
    assert TransferenciaRepo(db).obter(t["id"])["status"] == "pending"


def test_enviar_ignora_produto_inexistente(db, produto):
    p = produto("Ureia", 50)
    t = _transferencia(db, (p["id"], 20), ("sumiu", 3))
    enviar_transferencia(t["id"], db_path=db)
    assert ProdutoRepo(db).obter(p["id"])["stock"] == 30


def test_rejeitar_e_inexistente(db, produto):
    p = produto("Ureia", 50)
    t = _transferencia(db, (p["id"], 20))
    rejeitada = rejeitar_transferencia(t["id"], "sem caminhão", db_path=db)
    assert rejeitada["status"] == "rejected"
    assert rejeitada["rejectionReason"] == "sem caminhão"

    with pytest.raises(DocumentoNaoEncontrado):
        aprovar_transferencia("nao-existe", db_path=db)
    with pytest.raises(DocumentoNaoEncontrado):
        enviar_transferencia("nao-existe", db_path=db)


def test_atualizar_recalcula_custo(db, produto):
    p = produto("Ureia", 50)
    t = _transferencia(db, (p["id"], 20), custo=100)
    atualizada = atualizar_transferencia(
        t["id"], {"transferCost": 60, "products": [{"productId": p["id"], "quantity": 30}]}, db_path=db
    )
    assert atualizada["costPerUnit"] == 2.0


def test_listar_por_status_e_origem(db, produto):
    p = produto("Ureia", 50)
    t1 = _transferencia(db, (p["id"], 1))
    t2 = _transferencia(db, (p["id"], 2))
    aprovar_transferencia(t2["id"], db_path=db)

    assert [t["id"] for t in listar_transferencias({"status": "approved"}, db_path=db)] == [t2["id"]]
    assert {t["id"] for t in listar_transferencias({"deposito_origem": "dep-a"}, db_path=db)} == {t1["id"], t2["id"]}
