"""
Pequenos utilitários compartilhados pelos casos de uso.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


def uid_de(usuario: Optional[Dict[str, Any]]) -> str:
    return (usuario or {}).get("uid") or ""


def nome_de(usuario: Optional[Dict[str, Any]]) -> str:
    """Nome exibido do usuário (displayName, e-mail ou 'Usuário')."""
    usuario = usuario or {}
    return usuario.get("displayName") or usuario.get("email") or "Usuário"


def como_patch(dados: Any) -> Dict[str, Any]:
    """Aceita dict ou um comando com `para_patch()` e devolve o patch do documento."""
    if dados is None:
        return {}
    if hasattr(dados, "para_patch"):
        return dados.para_patch()
    if isinstance(dados, dict):
        return {k: v for k, v in dados.items() if k != "id"}
    raise TypeError(f"Patch não suportado: {type(dados).__name__}")
