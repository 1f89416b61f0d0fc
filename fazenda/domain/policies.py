"""
Políticas e regras de negócio do sistema da fazenda.

Este módulo concentra as regras puras (sem acesso a banco) usadas pelos
casos de uso: estados válidos de cada entidade, verificação de estoque,
numeração sequencial de documentos, número de lote dos produtos colhidos,
custo unitário de transferências e o estado de uma compra em função das
entregas recebidas.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional


STATUS_FUMIGACAO = ("pending", "in-progress", "completed", "cancelled")
STATUS_COLHEITA = ("pending", "scheduled", "in_progress", "completed", "cancelled")
STATUS_TRANSFERENCIA = ("pending", "approved", "rejected", "shipped", "completed", "cancelled")
STATUS_COMPRA = ("pending", "approved", "partial_delivered", "completed", "cancelled")


def valida_status(status: Optional[str], permitidos: Iterable[str], entidade: str) -> None:
    """Lança ``ValueError`` se ``status`` não estiver entre os ``permitidos``.

    ``None`` é aceito (o campo não foi informado).
    """
    if status is None:
        return
    permitidos = tuple(permitidos)
    if status not in permitidos:
        raise ValueError(
            f"Status inválido para {entidade}: '{status}'. Use um de: {', '.join(permitidos)}"
        )


def quantidade(valor: Any) -> float:
    """Converte quantidades vindas dos documentos (None/'' contam como 0)."""
    if valor is None or valor == "":
        return 0.0
    try:
        return float(valor)
    except (TypeError, ValueError):
        raise ValueError(f"Quantidade inválida: {valor!r}")


def quantidade_nao_negativa(valor: Any, item: Any = None) -> float:
    """Como ``quantidade``, mas rejeita valores negativos com ``ValueError``."""
    qtd = quantidade(valor)
    if qtd < 0:
        raise ValueError(f"Quantidade negativa para {item or 'item'}: {valor!r}")
    return qtd


def para_iso(valor: Any) -> Any:
    """Converte datas/datetimes para ISO; demais valores passam direto."""
    if isinstance(valor, (datetime, date)):
        return valor.isoformat()
    return valor


def pode_descontar(estoque: Any, requerido: Any) -> bool:
    """Há estoque suficiente para descontar ``requerido``?"""
    return quantidade(estoque) >= quantidade(requerido)


def estoque_baixo(produto: Dict[str, Any]) -> bool:
    """Estoque no mínimo ou abaixo dele (só quando há mínimo definido)."""
    minimo = quantidade(produto.get("minStock"))
    return minimo > 0 and quantidade(produto.get("stock")) <= minimo


def para_data(valor: Any) -> Optional[date]:
    """Aceita date/datetime/ISO string; devolve ``date`` ou None."""
    if valor is None or valor == "":
        return None
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    try:
        return datetime.fromisoformat(str(valor).replace("Z", "+00:00")).date()
    except ValueError:
        return None


def vence_em_breve(produto: Dict[str, Any], hoje: date, dias: int) -> bool:
    """Validade entre hoje e hoje + ``dias`` (inclusive)."""
    validade = para_data(produto.get("expiryDate") or produto.get("expirationDate"))
    if validade is None:
        return False
    return hoje <= validade <= hoje + timedelta(days=dias)


def proximo_numero(existentes: Iterable[Optional[str]], prefixo: str, largura: int) -> str:
    """Gera o próximo número sequencial ``<prefixo><NNN>``.

    Considera apenas os números existentes que começam com ``prefixo``;
    o sufixo numérico mais alto + 1 é usado, preenchido com zeros até
    ``largura``.

    Exemplo:
        proximo_numero(["FUM-202501-007"], "FUM-202501-", 3) → "FUM-202501-008"
    """
    maior = 0
    padrao = re.compile(re.escape(prefixo) + r"(\d+)$")
    for numero in existentes:
        if not numero:
            continue
        m = padrao.match(str(numero))
        if m:
            maior = max(maior, int(m.group(1)))
    return f"{prefixo}{str(maior + 1).zfill(largura)}"


def numero_lote_colheita(colheita_id: str, instante_ms: int, prefixo: str) -> str:
    """Lote sintético de um produto colhido: prefixo + id da colheita + instante."""
    return f"{prefixo}-{colheita_id[:8]}-{instante_ms}"


def custo_por_unidade(custo_total: Any, produtos: Optional[List[Dict[str, Any]]]) -> float:
    total = sum(quantidade(p.get("quantity")) for p in (produtos or []))
    if total == 0:
        total = 1.0
    return quantidade(custo_total) / total


def total_entregue(entregas: List[Dict[str, Any]], status: str = "completed") -> float:
    """Soma as quantidades das entregas com o ``status`` informado."""
    total = 0.0
    for entrega in entregas:
        if entrega.get("status") != status:
            continue
        for p in entrega.get("products") or []:
            total += quantidade(p.get("quantityReceived") or p.get("quantity"))
    return total


def status_compra(entregue: float, comprado: float) -> str:
    """Estado da compra após receber/cancelar entregas."""
    if entregue == comprado:
        return "completed"
    if entregue > 0:
        return "partial_delivered"
    return "approved"
