# fazenda/usecases/relatorios.py
"""
Relatórios:
- por coleção (produtos, transferências, fumigações, colheitas, compras,
  despesas) com filtros de data de criação, categoria e status
- atividades consolidadas (todas as operações, mais recentes primeiro)
- inventário (campos + depósitos)
- resumo do dashboard (estoque baixo, vencimentos, pendências)
- exportação tabular para XLSX/CSV
"""

from __future__ import annotations

import io
import re
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from fazenda.config import DB_PATH, DEFAULTS
from fazenda.domain.policies import estoque_baixo, para_data, quantidade, vence_em_breve
from fazenda.infra.repositories import (
    CampoRepo,
    ColheitaRepo,
    CompraRepo,
    DepositoRepo,
    DespesaRepo,
    FumigacaoRepo,
    ProdutoRepo,
    TransferenciaRepo,
)
from fazenda.infra.logger import log_system_event, log_database_operation, system_logger


Filtros = Optional[Dict[str, Any]]


# ----------------------
# util
# ----------------------

def _aplica_filtros(docs: List[Dict[str, Any]], filtros: Filtros) -> List[Dict[str, Any]]:
    """startDate/endDate (sobre createdAt, dias inteiros), category e status."""
    filtros = filtros or {}
    inicio = para_data(filtros.get("startDate"))
    fim = para_data(filtros.get("endDate"))
    categoria = filtros.get("category")
    status = filtros.get("status")

    out = []
    for d in docs:
        if inicio or fim:
            criado = para_data(d.get("createdAt"))
            if criado is None:
                continue
            if inicio and criado < inicio:
                continue
            if fim and criado > fim:
                continue
        if categoria and categoria not in (d.get("category"), d.get("productCategory")):
            continue
        if status and d.get("status") != status:
            continue
        out.append(d)
    return out


def _relatorio(repo, nome: str, filtros: Filtros) -> List[Dict[str, Any]]:
    log_system_event(f"relatorio_{nome}_start", {"filtros": filtros or {}})
    try:
        docs = _aplica_filtros(repo.get_all(), filtros)
        log_database_operation(repo.colecao, "SELECT", len(docs), relatorio=nome)
        return docs
    except Exception as e:
        log_system_event(f"relatorio_{nome}_error", {"error": str(e)}, level="error")
        raise


# ----------------------
# Relatórios por coleção
# ----------------------

def relatorio_produtos(filtros: Filtros = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return _relatorio(ProdutoRepo(db_path), "produtos", filtros)


def relatorio_transferencias(filtros: Filtros = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return _relatorio(TransferenciaRepo(db_path), "transferencias", filtros)


def relatorio_fumigacoes(filtros: Filtros = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return _relatorio(FumigacaoRepo(db_path), "fumigacoes", filtros)


def relatorio_colheitas(filtros: Filtros = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return _relatorio(ColheitaRepo(db_path), "colheitas", filtros)


def relatorio_compras(filtros: Filtros = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return _relatorio(CompraRepo(db_path), "compras", filtros)


def relatorio_despesas(filtros: Filtros = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    return _relatorio(DespesaRepo(db_path), "despesas", filtros)


def relatorio_estoque_baixo(db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    """Produtos com mínimo definido e estoque no mínimo ou abaixo, por nome."""
    return [p for p in ProdutoRepo(db_path).get_all() if estoque_baixo(p)]


# ----------------------
# Atividades consolidadas
# ----------------------

def relatorio_atividades(filtros: Filtros = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    """
    Junta transferências, fumigações, colheitas, compras e despesas numa
    lista única: {id, type, description, date, status, details}.
    """
    linhas: List[Dict[str, Any]] = []

    for t in relatorio_transferencias(filtros, db_path):
        produtos = t.get("products") or []
        linhas.append({
            "id": t["id"],
            "type": "transfer",
            "description": f"Transferência {t.get('transferNumber') or ''}: {len(produtos)} produto(s)".strip(),
            "date": t.get("createdAt"),
            "status": t.get("status") or "completed",
            "details": {
                "from": (t.get("sourceWarehouse") or {}).get("name"),
                "to": (t.get("targetWarehouse") or {}).get("name"),
                "quantity": sum(quantidade(p.get("quantity")) for p in produtos),
                "createdBy": t.get("requestedBy"),
            },
        })

    for f in relatorio_fumigacoes(filtros, db_path):
        linhas.append({
            "id": f["id"],
            "type": "fumigation",
            "description": f"Fumigação {f.get('orderNumber') or ''} - {f.get('crop') or 'cultura'}",
            "date": f.get("applicationDate") or f.get("createdAt"),
            "status": f.get("status") or "completed",
            "details": {
                "fieldName": (f.get("field") or {}).get("name"),
                "surface": f.get("totalSurface"),
                "method": f.get("applicationMethod"),
                "createdBy": f.get("createdBy"),
            },
        })

    for c in relatorio_colheitas(filtros, db_path):
        linhas.append({
            "id": c["id"],
            "type": "harvest",
            "description": f"Colheita de {c.get('crop') or 'cultura'}",
            "date": c.get("harvestDate") or c.get("createdAt"),
            "status": c.get("status") or "completed",
            "details": {
                "fieldName": (c.get("field") or {}).get("name"),
                "totalHarvested": c.get("totalHarvested"),
                "unit": c.get("totalHarvestedUnit"),
                "createdBy": c.get("createdBy"),
            },
        })

    for p in relatorio_compras(filtros, db_path):
        linhas.append({
            "id": p["id"],
            "type": "purchase",
            "description": f"Compra {p.get('purchaseNumber') or ''} - {p.get('supplier') or 'fornecedor'}",
            "date": p.get("createdAt"),
            "status": p.get("status") or "completed",
            "details": {
                "supplier": p.get("supplier"),
                "totalAmount": p.get("totalAmount"),
                "totalProducts": p.get("totalProducts"),
                "createdBy": p.get("createdBy"),
            },
        })

    for d in relatorio_despesas(filtros, db_path):
        venda = d.get("type") == "product"
        linhas.append({
            "id": d["id"],
            "type": "expense",
            "description": f"Venda de {d.get('productName')}" if venda else (d.get("description") or "Despesa"),
            "date": d.get("date") or d.get("createdAt"),
            "status": "completed",
            "details": {
                "type": d.get("type"),
                "amount": d.get("totalAmount") if venda else d.get("amount"),
                "category": d.get("category") or d.get("productCategory"),
                "createdBy": d.get("createdBy"),
            },
        })

    linhas.sort(key=lambda a: para_data(a["date"]) or date.min, reverse=True)
    system_logger.info(f"REPORT_ATIVIDADES: {len(linhas)} linhas")
    return linhas


# ----------------------
# Inventário e dashboard
# ----------------------

def relatorio_inventario(db_path: str = DB_PATH) -> Dict[str, List[Dict[str, Any]]]:
    return {
        "fields": CampoRepo(db_path).get_all(),
        "warehouses": DepositoRepo(db_path).get_all(),
    }


def resumo_dashboard(db_path: str = DB_PATH, hoje: Optional[date] = None, limite: int = 5) -> Dict[str, Any]:
    """
    Indicadores do painel inicial.

    Contagens consideram todos os documentos; as listas trazem só os
    `limite` primeiros (vencimentos mais próximos primeiro).
    """
    hoje = hoje or date.today()
    produtos = ProdutoRepo(db_path).get_all()
    baixo = [p for p in produtos if estoque_baixo(p)]
    vencendo = sorted(
        (p for p in produtos if vence_em_breve(p, hoje, DEFAULTS.dias_vencimento)),
        key=lambda p: para_data(p.get("expiryDate") or p.get("expirationDate")),
    )
    transferencias = [
        t for t in TransferenciaRepo(db_path).get_all() if t.get("status") in ("pending", "approved")
    ]
    fumigacoes = [
        f for f in FumigacaoRepo(db_path).get_all() if f.get("status") in ("planned", "pending")
    ]
    colheitas = [
        c for c in ColheitaRepo(db_path).get_all() if c.get("status") in ("planned", "pending", "scheduled")
    ]
    return {
        "totalProducts": len(produtos),
        "lowStockCount": len(baixo),
        "expiringCount": len(vencendo),
        "warehouseCount": len(DepositoRepo(db_path).get_all()),
        "pendingTransfersCount": len(transferencias),
        "pendingFumigationsCount": len(fumigacoes),
        "upcomingHarvestsCount": len(colheitas),
        "lowStockProducts": baixo[:limite],
        "expiringProducts": vencendo[:limite],
        "pendingTransfers": transferencias[:limite],
        "pendingFumigations": fumigacoes[:limite],
        "upcomingHarvests": colheitas[:limite],
    }


# ----------------------
# Exportação
# ----------------------

Colunas = Sequence[Union[str, Tuple[str, str]]]


def _nome_planilha(titulo: str) -> str:
    nome = re.sub(r"[\[\]:*?/\\]", " ", titulo).strip()
    return (nome or "Relatorio")[:31]


def _dataframe(linhas: List[Dict[str, Any]], colunas: Colunas) -> pd.DataFrame:
    pares = [(c, c) if isinstance(c, str) else (c[0], c[1]) for c in colunas]
    dados = [[linha.get(chave) for chave, _ in pares] for linha in linhas]
    return pd.DataFrame(dados, columns=[rotulo for _, rotulo in pares])


def exportar(
    linhas: List[Dict[str, Any]],
    colunas: Colunas,
    titulo: str,
    formato: str = "xlsx",
) -> bytes:
    """
    Converte linhas (dicts) numa planilha.

    Args:
        linhas: documentos/linhas do relatório
        colunas: chaves a exportar, ou pares (chave, rótulo do cabeçalho)
        titulo: título (1ª linha do XLSX e nome da planilha)
        formato: "xlsx" ou "csv"

    Returns:
        Conteúdo do arquivo em bytes.
    """
    df = _dataframe(linhas, colunas)
    formato = formato.lower()
    if formato == "csv":
        return df.to_csv(index=False).encode("utf-8")
    if formato != "xlsx":
        raise ValueError(f"Formato de exportação não suportado: {formato}")

    buf = io.BytesIO()
    planilha = _nome_planilha(titulo)
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=planilha, index=False, startrow=2)
        ws = writer.sheets[planilha]
        ws.cell(row=1, column=1, value=titulo)
    log_system_event("exportacao", {"titulo": titulo, "linhas": len(df), "formato": formato})
    return buf.getvalue()
