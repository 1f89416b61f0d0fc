from fazenda.infra.repositories import AtividadeRepo
from fazenda.usecases import atividades
from fazenda.usecases.atividades import (
    gerar_descricao,
    limpar_metadados,
    listar_por_entidade,
    listar_por_usuario,
    listar_recentes,
    registrar_atividade,
    registrar_mudanca_status,
)


def test_registrar_sem_usuario_usa_sistema(db):
    doc_id = registrar_atividade("warehouse-create", {"id": "d1", "name": "Silo", "type": "silo"}, db_path=db)
    doc = AtividadeRepo(db).obter(doc_id)

    assert doc["type"] == "create"
    assert doc["action"] == "warehouse-create"
    assert doc["entity"] == "warehouse"
    assert doc["entityId"] == "d1"
    assert doc["entityName"] == "Silo"
    assert doc["description"] == 'Criou silo "Silo"'
    assert doc["userId"] == "sistema"
    assert doc["userName"] == "Sistema"
    assert doc["createdAt"]


def test_registrar_com_usuario_sem_nome(db):
    doc_id = registrar_atividade(
        "field-create", {"id": "c1", "name": "Norte", "area": 10},
        usuario={"uid": "u9", "email": "maria@fazenda.com"}, db_path=db,
    )
    doc = AtividadeRepo(db).obter(doc_id)
    assert doc["userId"] == "u9"
    assert doc["userName"] == "maria"
    assert doc["userEmail"] == "maria@fazenda.com"
    assert doc["description"] == 'Criou campo "Norte" (10 ha)'


def test_metadados_sem_nulos_e_sem_campos_sensiveis(db):
    entidade = {"id": "u1", "email": "a@b.com", "password": "123", "role": None, "extra": {"x": None}}
    doc_id = registrar_atividade("user-update", entidade, db_path=db)
    meta = AtividadeRepo(db).obter(doc_id)["metadata"]

    assert "password" not in meta["originalData"]
    assert "role" not in meta
    assert "role" not in meta["originalData"]
    assert "extra" not in meta["originalData"]
    assert meta["email"] == "a@b.com"


def test_acao_com_hifens_separa_so_a_entidade(db):
    doc_id = registrar_atividade("purchase-delivery-add", {"id": "c1", "purchaseNumber": "COMP-202501-0001"}, db_path=db)
    doc = AtividadeRepo(db).obter(doc_id)
    assert doc["entity"] == "purchase"
    assert doc["type"] == "delivery-add"
    assert doc["description"] == "Adicionou entrega a COMP-202501-0001"


def test_acao_invalida_nao_grava(db):
    assert registrar_atividade("semhifen", {"id": "x"}, db_path=db) is None
    assert AtividadeRepo(db).get_all() == []


def test_falha_ao_gravar_nao_propaga(db, monkeypatch):
    def _explode(self, dados):
        raise RuntimeError("disco cheio")

    monkeypatch.setattr(atividades.AtividadeRepo, "adicionar", _explode)
    assert registrar_atividade("product-create", {"id": "p1", "name": "X"}, db_path=db) is None


def test_gerar_descricao():
    assert gerar_descricao("fumigation-complete", {"orderNumber": "FUM-202501-003"}, {}) == \
        "Concluiu fumigação FUM-202501-003"
    assert gerar_descricao("transfer-approve", {"transferNumber": "TR-1-001"}, {}) == \
        "Aprovou uma transferência: TR-1-001"
    assert gerar_descricao("expense-create", {"expenseNumber": "GAST-2025-0001"}, {"type": "product", "amount": 1234.5}) == \
        "Registrou venda GAST-2025-0001 de 1.234,50"
    assert gerar_descricao("system-backup", {}, {}) == "Sistema - backup"
    assert gerar_descricao("crop-create", {"name": "Soja"}, {}) == 'create crop "Soja"'


def test_limpar_metadados():
    assert limpar_metadados({"a": 1, "b": None, "c": {"d": None}, "e": {"f": 0}}) == {"a": 1, "e": {"f": 0}}


def test_consultas(db):
    registrar_atividade("product-create", {"id": "p1", "name": "A"}, usuario={"uid": "u1"}, db_path=db)
    registrar_atividade("product-update", {"id": "p1", "name": "A"}, usuario={"uid": "u2"}, db_path=db)
    registrar_mudanca_status({"id": "h1", "crop": "soja"}, "harvest", "pending", "cancelled", "chuva", db_path=db)

    assert len(listar_recentes(2, db_path=db)) == 2
    assert {a["type"] for a in listar_por_entidade("product", "p1", db_path=db)} == {"create", "update"}
    assert [a["action"] for a in listar_por_usuario("u2", db_path=db)] == ["product-update"]

    [mudanca] = listar_por_entidade("harvest", "h1", db_path=db)
    assert mudanca["metadata"]["oldStatus"] == "pending"
    assert mudanca["metadata"]["newStatus"] == "cancelled"
    assert mudanca["metadata"]["statusChange"] is True
