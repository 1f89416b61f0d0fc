# fazenda/infra/repositories.py
"""
Repositórios por coleção sobre o banco de documentos.

Classes:
- ProdutoRepo
- FumigacaoRepo
- ColheitaRepo
- TransferenciaRepo
- CompraRepo
- DespesaRepo
- CampoRepo
- DepositoRepo
- UsuarioRepo
- AtividadeRepo

`listar(filtros)` sempre relê a coleção inteira do banco (recarga explícita,
controlada por quem chama) e aplica os filtros em memória.

Filtros aceitos (quando fazem sentido para a coleção):
- status, categoria, tipo, ... : igualdade exata (ver `filtros_exatos`)
- campo, cultura, fornecedor   : "contém", sem diferenciar maiúsculas
- busca                        : termo procurado nos `campos_busca`
- periodo                      : (inicio, fim) sobre `campo_data`; None = aberto
- estoque_baixo                : só produtos com stock <= minStock
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from fazenda.domain.policies import para_data, quantidade
from .documentos import BancoDocumentos


# -------------------------
# Helpers
# -------------------------

def _valor(doc: Dict[str, Any], caminho: str) -> Any:
    """Lê 'a.b.c' de dicionários aninhados (ex.: 'field.name')."""
    atual: Any = doc
    for parte in caminho.split("."):
        if not isinstance(atual, dict):
            return None
        atual = atual.get(parte)
    return atual


def _contem(valor: Any, termo: str) -> bool:
    return valor is not None and termo.lower() in str(valor).lower()


def _no_periodo(valor: Any, periodo: Tuple[Any, Any]) -> bool:
    data = para_data(valor)
    if data is None:
        return False
    inicio, fim = (para_data(p) for p in periodo)
    if inicio and data < inicio:
        return False
    if fim and data > fim:
        return False
    return True


# -------------------------
# Base
# -------------------------

class _Repo:
    colecao: str = ""
    ordem: Tuple[Optional[str], bool] = (None, False)   # (campo, desc)
    filtros_exatos: Dict[str, Sequence[str]] = {"status": ("status",)}
    filtros_contem: Dict[str, str] = {}
    campos_busca: Sequence[str] = ("name",)
    campo_data: Optional[str] = None

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.banco = BancoDocumentos(db_path)

    # leitura
    def obter(self, doc_id: str) -> Optional[Dict[str, Any]]:
        return self.banco.obter(self.colecao, doc_id)

    def get_all(self) -> List[Dict[str, Any]]:
        campo, desc = self.ordem
        return self.banco.listar(self.colecao, ordenar_por=campo, desc=desc)

    def listar(self, filtros: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        docs = self.get_all()
        filtros = {k: v for k, v in (filtros or {}).items() if v not in (None, "", False)}
        if not filtros:
            return docs

        for chave, valor in filtros.items():
            if chave in self.filtros_exatos:
                campos = self.filtros_exatos[chave]
                docs = [d for d in docs if any(d.get(c) == valor for c in campos)]
            elif chave in self.filtros_contem:
                caminho = self.filtros_contem[chave]
                docs = [d for d in docs if _contem(_valor(d, caminho), str(valor))]
            elif chave == "busca":
                termo = str(valor)
                docs = [
                    d for d in docs
                    if any(_contem(_valor(d, c), termo) for c in self.campos_busca)
                ]
            elif chave == "periodo" and self.campo_data:
                docs = [d for d in docs if _no_periodo(d.get(self.campo_data), valor)]
            else:
                docs = self._filtro_extra(docs, chave, valor)
        return docs

    def _filtro_extra(self, docs: List[Dict[str, Any]], chave: str, valor: Any) -> List[Dict[str, Any]]:
        raise ValueError(f"Filtro não suportado em '{self.colecao}': {chave}")

    # escrita
    def adicionar(self, dados: Dict[str, Any]) -> str:
        return self.banco.adicionar(self.colecao, dados)

    def atualizar(self, doc_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        return self.banco.atualizar(self.colecao, doc_id, patch)

    def remover(self, doc_id: str) -> bool:
        return self.banco.remover(self.colecao, doc_id)


# -------------------------
# Estoque
# -------------------------

class ProdutoRepo(_Repo):
    colecao = "products"
    ordem = ("name", False)
    filtros_exatos = {
        "status": ("status",),
        "categoria": ("category",),
        "deposito_id": ("warehouseId",),
        "campo_id": ("fieldId",),
    }
    campos_busca = ("name", "code", "lotNumber")

    def _filtro_extra(self, docs, chave, valor):
        if chave == "estoque_baixo":
            return [
                d for d in docs
                if quantidade(d.get("stock")) <= quantidade(d.get("minStock"))
            ]
        return super()._filtro_extra(docs, chave, valor)


class DepositoRepo(_Repo):
    colecao = "warehouses"
    ordem = ("name", False)
    filtros_exatos = {
        "status": ("status",),
        "tipo": ("type",),
        "campo_id": ("fieldId",),
    }
    campos_busca = ("name", "location")


class CampoRepo(_Repo):
    colecao = "fields"
    ordem = ("name", False)
    campos_busca = ("name", "location", "cropType")


# -------------------------
# Operações de campo
# -------------------------

class FumigacaoRepo(_Repo):
    colecao = "fumigations"
    ordem = ("applicationDate", True)
    filtros_contem = {
        "estabelecimento": "establishment",
        "campo": "field.name",
        "cultura": "crop",
    }
    campos_busca = ("orderNumber", "establishment", "applicator", "crop")
    campo_data = "applicationDate"


class ColheitaRepo(_Repo):
    colecao = "harvests"
    ordem = ("plannedDate", True)
    filtros_contem = {
        "campo": "field.name",
        "cultura": "crop",
    }
    campos_busca = ("crop", "field.name", "harvestMethod")
    campo_data = "plannedDate"


# -------------------------
# Movimentações e compras
# -------------------------

class TransferenciaRepo(_Repo):
    colecao = "transfers"
    ordem = ("createdAt", True)
    filtros_exatos = {
        "status": ("status",),
        "deposito_origem": ("sourceWarehouseId",),
        "deposito_destino": ("targetWarehouseId",),
    }
    campos_busca = ("transferNumber", "sourceWarehouse.name", "targetWarehouse.name", "requestedBy")
    campo_data = "requestDate"


class CompraRepo(_Repo):
    colecao = "purchases"
    ordem = ("createdAt", True)
    filtros_contem = {"fornecedor": "supplier"}
    campos_busca = ("purchaseNumber", "supplier", "invoiceNumber")
    campo_data = "purchaseDate"


class DespesaRepo(_Repo):
    colecao = "expenses"
    ordem = ("createdAt", True)
    filtros_exatos = {
        "tipo": ("type",),
        "categoria": ("category", "productCategory"),
    }
    campos_busca = ("expenseNumber", "productName", "description", "supplier")
    campo_data = "date"


# -------------------------
# Usuários e atividades
# -------------------------

class UsuarioRepo(_Repo):
    colecao = "users"
    ordem = ("displayName", False)
    filtros_exatos = {"papel": ("role",)}
    campos_busca = ("displayName", "username", "email")


class AtividadeRepo(_Repo):
    colecao = "activities"
    ordem = ("createdAt", True)
    filtros_exatos = {
        "entidade": ("entity",),
        "entidade_id": ("entityId",),
        "usuario_id": ("userId",),
        "tipo": ("type",),
    }
    campos_busca = ("description", "entityName", "userName")
    campo_data = "createdAt"

    def recentes(self, limite: int = 50) -> List[Dict[str, Any]]:
        return self.get_all()[:limite]
