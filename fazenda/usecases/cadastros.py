# fazenda/usecases/cadastros.py
"""
UC: Cadastros simples (sem efeito em estoque).
- Campos: criar/atualizar/remover/listar + adicionar_lote()/remover_lote()
- Depósitos: criar/atualizar/remover/listar + ativar/desativar
- Usuários: criar/atualizar/remover/listar + atualizar_permissoes()

Obs.: usuários aqui são só perfis (nome, papel, permissões); senha e
autenticação ficam fora do sistema e nunca são gravadas.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from fazenda.config import DB_PATH
from fazenda.domain.erros import DocumentoNaoEncontrado
from fazenda.infra.documentos import agora_servidor
from fazenda.infra.repositories import CampoRepo, DepositoRepo, UsuarioRepo
from fazenda.infra.logger import log_database_operation, log_system_event
from .atividades import registrar_atividade
from .comum import como_patch, uid_de


PERMISSOES_MINIMAS: Dict[str, bool] = {
    "dashboard": True,
    "activities": False,
    "products": False,
    "transfers": False,
    "purchases": False,
    "expenses": False,
    "fumigations": False,
    "harvests": False,
    "fields": False,
    "warehouses": False,
    "reports": False,
    "users": False,
}

SEM_GRAVAR = ("id", "password")


def _criar(repo, entidade: str, doc: Dict[str, Any], usuario, db_path: str) -> Dict[str, Any]:
    doc_id = repo.adicionar(doc)
    log_database_operation(repo.colecao, "INSERT", 1, doc_id=doc_id)
    criado = repo.obter(doc_id)
    registrar_atividade(f"{entidade}-create", criado, usuario=usuario, db_path=db_path)
    return criado


def _atualizar(repo, entidade: str, doc_id: str, patch, usuario, db_path: str, acao: str = "update",
               extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    campos = {k: v for k, v in como_patch(patch).items() if k not in SEM_GRAVAR}
    atualizado = repo.atualizar(doc_id, campos)
    log_database_operation(repo.colecao, "UPDATE", 1, doc_id=doc_id)
    registrar_atividade(f"{entidade}-{acao}", atualizado, extra, usuario, db_path)
    return atualizado


def _remover(repo, entidade: str, doc_id: str, usuario, db_path: str) -> bool:
    doc = repo.obter(doc_id)
    if doc is None:
        raise DocumentoNaoEncontrado(repo.colecao, doc_id)
    repo.remover(doc_id)
    log_database_operation(repo.colecao, "DELETE", 1, doc_id=doc_id)
    registrar_atividade(f"{entidade}-delete", doc, usuario=usuario, db_path=db_path)
    return True


# -------------------------
# Campos
# -------------------------

def criar_campo(dados: Dict[str, Any], db_path: str = DB_PATH,
                usuario: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    if not (dados.get("name") or "").strip():
        raise ValueError("Campo sem nome")
    doc = {k: v for k, v in dados.items() if k not in SEM_GRAVAR}
    doc.setdefault("areaUnit", "ha")
    doc.setdefault("status", "active")
    doc["lots"] = doc.get("lots") or []
    doc["createdBy"] = uid_de(usuario)
    return _criar(CampoRepo(db_path), "field", doc, usuario, db_path)


def atualizar_campo(campo_id: str, patch: Dict[str, Any], db_path: str = DB_PATH,
                    usuario: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return _atualizar(CampoRepo(db_path), "field", campo_id, patch, usuario, db_path)


def remover_campo(campo_id: str, db_path: str = DB_PATH,
                  usuario: Optional[Dict[str, Any]] = None) -> bool:
    return _remover(CampoRepo(db_path), "field", campo_id, usuario, db_path)


def listar_campos(filtros: Optional[Dict[str, Any]] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return CampoRepo(db_path).listar(filtros)


def adicionar_lote(campo_id: str, lote: Dict[str, Any], db_path: str = DB_PATH,
                   usuario: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Acrescenta um lote ao campo; devolve o campo atualizado."""
    repo = CampoRepo(db_path)
    campo = repo.obter(campo_id)
    if campo is None:
        raise DocumentoNaoEncontrado("fields", campo_id)
    lotes = list(campo.get("lots") or [])
    novo = {
        **lote,
        "id": lote.get("id") or str(int(time.time() * 1000)),
        "areaUnit": lote.get("areaUnit") or campo.get("areaUnit") or "ha",
        "crops": lote.get("crops") or [],
        "createdAt": agora_servidor(),
    }
    extra = {"lotName": novo.get("name"), "newLotsCount": len(lotes) + 1, "previousLotsCount": len(lotes)}
    return _atualizar(repo, "field", campo_id, {"lots": lotes + [novo]}, usuario, db_path, "lot-add", extra)


def remover_lote(campo_id: str, lote_id: str, db_path: str = DB_PATH,
                 usuario: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    repo = CampoRepo(db_path)
    campo = repo.obter(campo_id)
    if campo is None:
        raise DocumentoNaoEncontrado("fields", campo_id)
    lotes = list(campo.get("lots") or [])
    restantes = [l for l in lotes if str(l.get("id")) != str(lote_id)]
    if len(restantes) == len(lotes):
        raise DocumentoNaoEncontrado(f"fields/{campo_id}/lots", lote_id)
    extra = {"lotId": lote_id, "newLotsCount": len(restantes), "previousLotsCount": len(lotes)}
    return _atualizar(repo, "field", campo_id, {"lots": restantes}, usuario, db_path, "lot-remove", extra)


# -------------------------
# Depósitos
# -------------------------

def criar_deposito(dados: Dict[str, Any], db_path: str = DB_PATH,
                   usuario: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    if not (dados.get("name") or "").strip():
        raise ValueError("Depósito sem nome")
    doc = {k: v for k, v in dados.items() if k not in SEM_GRAVAR}
    doc["status"] = doc.get("status") or "active"
    return _criar(DepositoRepo(db_path), "warehouse", doc, usuario, db_path)


def atualizar_deposito(deposito_id: str, patch: Dict[str, Any], db_path: str = DB_PATH,
                       usuario: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return _atualizar(DepositoRepo(db_path), "warehouse", deposito_id, patch, usuario, db_path)


def remover_deposito(deposito_id: str, db_path: str = DB_PATH,
                     usuario: Optional[Dict[str, Any]] = None) -> bool:
    return _remover(DepositoRepo(db_path), "warehouse", deposito_id, usuario, db_path)


def listar_depositos(filtros: Optional[Dict[str, Any]] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return DepositoRepo(db_path).listar(filtros)


def ativar_deposito(deposito_id: str, db_path: str = DB_PATH,
                    usuario: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return _atualizar(DepositoRepo(db_path), "warehouse", deposito_id, {"status": "active"},
                      usuario, db_path, "activate")


def desativar_deposito(deposito_id: str, db_path: str = DB_PATH,
                       usuario: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return _atualizar(DepositoRepo(db_path), "warehouse", deposito_id, {"status": "inactive"},
                      usuario, db_path, "deactivate")


# -------------------------
# Usuários
# -------------------------

def criar_usuario(dados: Dict[str, Any], db_path: str = DB_PATH,
                  usuario: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    email = (dados.get("email") or "").strip()
    if not email:
        raise ValueError("Usuário sem e-mail")
    apelido = dados.get("username") or email.split("@")[0]
    doc = {
        "email": email,
        "username": apelido,
        "displayName": dados.get("displayName") or apelido,
        "role": dados.get("role") or "user",
        "permissions": dados.get("permissions") or dict(PERMISSOES_MINIMAS),
        "isActive": True,
        "lastLoginAt": None,
    }
    return _criar(UsuarioRepo(db_path), "user", doc, usuario, db_path)


def atualizar_usuario(usuario_id: str, patch: Dict[str, Any], db_path: str = DB_PATH,
                      usuario: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return _atualizar(UsuarioRepo(db_path), "user", usuario_id, patch, usuario, db_path)


def atualizar_permissoes(usuario_id: str, permissoes: Dict[str, bool], db_path: str = DB_PATH,
                         usuario: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Mescla `permissoes` às permissões atuais; o dashboard continua sempre liberado."""
    repo = UsuarioRepo(db_path)
    atual = repo.obter(usuario_id)
    if atual is None:
        raise DocumentoNaoEncontrado("users", usuario_id)
    mescladas = {**(atual.get("permissions") or {}), **permissoes, "dashboard": True}
    log_system_event("permissoes_atualizadas", {"usuario_id": usuario_id, "permissoes": sorted(permissoes)})
    return _atualizar(repo, "user", usuario_id, {"permissions": mescladas}, usuario, db_path,
                      "permissions-update")


def remover_usuario(usuario_id: str, db_path: str = DB_PATH,
                    usuario: Optional[Dict[str, Any]] = None) -> bool:
    return _remover(UsuarioRepo(db_path), "user", usuario_id, usuario, db_path)


def listar_usuarios(filtros: Optional[Dict[str, Any]] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return UsuarioRepo(db_path).listar(filtros)

