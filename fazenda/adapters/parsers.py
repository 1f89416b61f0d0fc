"""
Utilidades de parsing para os valores digitados na linha de comando.

Este módulo interpreta quantidades (com vírgula ou ponto decimal), datas
(DD/MM/AAAA ou ISO), listas curtas de itens no formato "id:quantidade" e
payloads JSON (inline ou "@arquivo.json") usados pelos comandos da CLI.
"""

from __future__ import annotations

import json
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

_NUM_RE = re.compile(r"^[-+]?\d+(?:[.,]\d+)?$")
_MILHAR_RE = re.compile(r"^[-+]?\d{1,3}(?:\.\d{3})+(?:,\d+)?$")


def parse_quantidade(txt: Any) -> Optional[float]:
    """Interpreta uma quantidade digitada.

    Exemplos:
        "5"        → 5.0
        "5,5"      → 5.5
        "1.234,5"  → 1234.5
        ""         → None

    Raises:
        ValueError: texto que não é um número.
    """
    if txt is None:
        return None
    if isinstance(txt, (int, float)) and not isinstance(txt, bool):
        return float(txt)
    s = str(txt).strip()
    if not s:
        return None
    if _MILHAR_RE.match(s):
        s = s.replace(".", "")
    if not _NUM_RE.match(s):
        raise ValueError(f"Quantidade inválida: {txt!r}")
    return float(s.replace(",", "."))


def parse_data(txt: Optional[str]) -> Optional[date]:
    """Aceita DD/MM/AAAA ou AAAA-MM-DD; vazio → None."""
    if txt is None:
        return None
    s = str(txt).strip()
    if not s:
        return None
    for fmt in ("%d/%m/%Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Data inválida: {txt!r} (use DD/MM/AAAA ou AAAA-MM-DD)")


def parse_itens(txt: Optional[str], chave_qtd: str = "quantity") -> List[Dict[str, Any]]:
    """Converte "id1:10;id2:2,5" (ou "id1:10,id2:2.5") em [{productId, <chave_qtd>}].

    O separador entre itens é ';' quando presente, senão ','. Com ',' as
    quantidades devem usar ponto decimal.
    """
    if not txt or not txt.strip():
        return []
    sep = ";" if ";" in txt else ","
    itens: List[Dict[str, Any]] = []
    for parte in txt.split(sep):
        parte = parte.strip()
        if not parte:
            continue
        if ":" not in parte:
            raise ValueError(f"Item inválido (use id:quantidade): {parte!r}")
        produto_id, qtd = parte.split(":", 1)
        itens.append({"productId": produto_id.strip(), chave_qtd: parse_quantidade(qtd)})
    return itens


def carregar_json(txt: Optional[str]) -> Any:
    """JSON inline ou, com prefixo '@', lido de arquivo. Vazio → {}."""
    if txt is None or not str(txt).strip():
        return {}
    s = str(txt).strip()
    if s.startswith("@"):
        s = Path(s[1:]).read_text(encoding="utf-8")
    try:
        return json.loads(s)
    except json.JSONDecodeError as e:
        raise ValueError(f"JSON inválido: {e.msg} (linha {e.lineno}, coluna {e.colno})")
