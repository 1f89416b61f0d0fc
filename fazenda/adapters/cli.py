# fazenda/adapters/cli.py
"""
CLI da gestão da fazenda (Typer).

Comandos principais:
- migrate                                -> aplica migrações do banco
- produtos listar/criar/ajustar/remover  -> cadastro e estoque de produtos
- fumigacoes listar/criar/concluir       -> ordens de fumigação
- colheitas listar/criar/concluir        -> colheitas (payloads JSON)
- transferencias listar/criar/aprovar/rejeitar/enviar/receber
- compras listar/criar/entrega/receber-entrega
- despesas listar/criar
- atividades listar                      -> trilha de auditoria
- rel produtos/estoque-baixo/dashboard/atividades [--saida arq.xlsx|csv]

Payloads JSON podem ser passados inline ou como "@arquivo.json".
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from fazenda.config import DB_PATH
from fazenda.domain.erros import ErroFazenda
from fazenda.infra.migrations import apply_migrations
from fazenda.adapters.parsers import carregar_json, parse_data, parse_itens, parse_quantidade
from fazenda.usecases.produtos import ajustar_estoque, criar_produto, listar_produtos, remover_produto
from fazenda.usecases.fumigacoes import concluir_fumigacao, criar_fumigacao, listar_fumigacoes
from fazenda.usecases.colheitas import concluir_colheita, criar_colheita, listar_colheitas
from fazenda.usecases.transferencias import (
    aprovar_transferencia,
    criar_transferencia,
    enviar_transferencia,
    listar_transferencias,
    receber_transferencia,
    rejeitar_transferencia,
)
from fazenda.usecases.compras import concluir_entrega, criar_compra, criar_entrega, listar_compras
from fazenda.usecases.despesas import criar_despesa, listar_despesas
from fazenda.usecases.atividades import listar_por_entidade, listar_por_usuario, listar_recentes
from fazenda.usecases.relatorios import (
    exportar,
    relatorio_atividades,
    relatorio_estoque_baixo,
    relatorio_produtos,
    resumo_dashboard,
)


app = typer.Typer(help="Gestão da Fazenda: CLI")
console = Console()

COLS_PRODUTO = ["id", "name", "category", "stock", "minStock", "unit", "warehouseId", "lotNumber"]
COLS_FUMIGACAO = ["id", "orderNumber", "crop", "applicationDate", "status"]
COLS_COLHEITA = ["id", "crop", "plannedDate", "status", "totalHarvested"]
COLS_TRANSFERENCIA = ["id", "transferNumber", "sourceWarehouseId", "targetWarehouseId", "status"]
COLS_COMPRA = ["id", "purchaseNumber", "supplier", "status", "totalDelivered", "totalPending"]
COLS_DESPESA = ["id", "expenseNumber", "type", "productName", "amount", "totalAmount"]
COLS_ATIVIDADE = ["createdAt", "action", "description", "userName"]


# -----------------------
# util
# -----------------------

@contextmanager
def _tratando_erros() -> Iterator[None]:
    """Erros de negócio/entrada viram mensagem em vermelho e exit code 1."""
    try:
        yield
    except (ErroFazenda, ValueError) as e:
        console.print(f"[bold red]Erro:[/] {e}")
        raise typer.Exit(code=1)


def _fmt(val: Any) -> str:
    if val is None:
        return ""
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return f"{val:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    if isinstance(val, (dict, list)):
        return json.dumps(val, ensure_ascii=False)
    return str(val)


def _display_table(
    data: Dict[str, Any] | List[Dict[str, Any]],
    title: str = "Resultado",
    colunas: Optional[Sequence[str]] = None,
) -> None:
    """Exibe os dados em tabelas formatadas usando Rich."""
    if not data:
        console.print(Panel("Nenhum dado encontrado", title=title, border_style="yellow"))
        return

    if isinstance(data, list):
        table = Table(title=title, box=box.ROUNDED)
        colunas = list(colunas or data[0].keys())
        for col in colunas:
            if col in ("stock", "minStock", "amount", "totalAmount", "totalHarvested",
                       "totalDelivered", "totalPending", "quantity"):
                table.add_column(col, justify="right")
            else:
                table.add_column(col)

        for row in data:
            valores = []
            for col in colunas:
                val = row.get(col)
                if col == "status":
                    s = _fmt(val)
                    if s in ("completed", "active"):
                        valores.append(f"[bold green]{s}[/]")
                    elif s in ("cancelled", "rejected"):
                        valores.append(f"[bold red]{s}[/]")
                    elif s:
                        valores.append(f"[bold yellow]{s}[/]")
                    else:
                        valores.append(s)
                else:
                    valores.append(_fmt(val))
            table.add_row(*valores)

        console.print(table)
        return

    # Documento único / resumo: Campo | Valor
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Campo")
    table.add_column("Valor")
    for chave, valor in data.items():
        if isinstance(valor, list) and valor and isinstance(valor[0], dict):
            table.add_row(chave, f"{len(valor)} item(ns)")
        else:
            table.add_row(chave, _fmt(valor))
    console.print(table)


def _salvar_export(linhas: List[Dict[str, Any]], colunas: Sequence[str], titulo: str, saida: str) -> None:
    formato = Path(saida).suffix.lstrip(".").lower() or "xlsx"
    conteudo = exportar(linhas, colunas, titulo, formato=formato)
    Path(saida).write_bytes(conteudo)
    console.print(f">> {len(linhas)} linha(s) exportada(s) para: {saida}")


# -----------------------
# comandos de infra
# -----------------------

@app.command("migrate")
def cmd_migrate(db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")):
    """Aplica as migrações do banco de documentos."""
    apply_migrations(db_path)
    typer.echo(f">> Migrações aplicadas em: {db_path}")


# -----------------------
# produtos
# -----------------------

produtos_app = typer.Typer(help="Produtos e estoque")
app.add_typer(produtos_app, name="produtos")


@produtos_app.command("listar")
def cmd_produtos_listar(
    categoria: Optional[str] = typer.Option(None, help="Filtra por categoria"),
    status: Optional[str] = typer.Option(None, help="Filtra por status"),
    baixo: bool = typer.Option(False, "--baixo", help="Só produtos com estoque <= mínimo"),
    busca: Optional[str] = typer.Option(None, help="Nome, código ou lote"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Lista produtos ordenados por nome."""
    with _tratando_erros():
        res = listar_produtos(
            {"categoria": categoria, "status": status, "estoque_baixo": baixo, "busca": busca},
            db_path=db_path,
        )
    _display_table(res, title="Produtos", colunas=COLS_PRODUTO)


@produtos_app.command("criar")
def cmd_produtos_criar(
    nome: str = typer.Option(..., help="Nome do produto"),
    categoria: Optional[str] = typer.Option(None),
    unidade: Optional[str] = typer.Option(None, help="Ex.: kg, L"),
    estoque: str = typer.Option("0", help="Estoque inicial"),
    minimo: str = typer.Option("0", help="Estoque mínimo"),
    deposito: Optional[str] = typer.Option(None, help="ID do depósito"),
    validade: Optional[str] = typer.Option(None, help="DD/MM/AAAA ou AAAA-MM-DD"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Cadastra um produto."""
    with _tratando_erros():
        dados: Dict[str, Any] = {
            "name": nome,
            "stock": parse_quantidade(estoque) or 0,
            "minStock": parse_quantidade(minimo) or 0,
        }
        if categoria:
            dados["category"] = categoria
        if unidade:
            dados["unit"] = unidade
        if deposito:
            dados["warehouseId"] = deposito
        if validade:
            dados["expiryDate"] = parse_data(validade).isoformat()
        produto = criar_produto(dados, db_path=db_path)
    _display_table(produto, title="Produto Criado")


@produtos_app.command("ajustar")
def cmd_produtos_ajustar(
    produto_id: str = typer.Argument(..., help="ID do produto"),
    novo_estoque: str = typer.Argument(..., help="Novo estoque (>= 0)"),
    motivo: str = typer.Option("", help="Motivo do ajuste"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Ajusta manualmente o estoque de um produto."""
    with _tratando_erros():
        produto = ajustar_estoque(produto_id, parse_quantidade(novo_estoque), motivo, db_path=db_path)
    typer.echo(f">> Estoque de {produto.get('name')}: {_fmt(produto.get('stock'))}")


@produtos_app.command("remover")
def cmd_produtos_remover(
    produto_id: str = typer.Argument(..., help="ID do produto"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Exclui um produto."""
    with _tratando_erros():
        remover_produto(produto_id, db_path=db_path)
    typer.echo(f">> Produto {produto_id} removido.")


# -----------------------
# fumigações
# -----------------------

fumigacoes_app = typer.Typer(help="Ordens de fumigação")
app.add_typer(fumigacoes_app, name="fumigacoes")


@fumigacoes_app.command("listar")
def cmd_fumigacoes_listar(
    status: Optional[str] = typer.Option(None),
    cultura: Optional[str] = typer.Option(None),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Lista fumigações (mais recentes primeiro)."""
    with _tratando_erros():
        res = listar_fumigacoes({"status": status, "cultura": cultura}, db_path=db_path)
    _display_table(res, title="Fumigações", colunas=COLS_FUMIGACAO)


@fumigacoes_app.command("criar")
def cmd_fumigacoes_criar(
    payload: Optional[str] = typer.Option(None, help="JSON da fumigação (ou @arquivo.json)"),
    cultura: Optional[str] = typer.Option(None),
    data: Optional[str] = typer.Option(None, help="Data de aplicação"),
    itens: Optional[str] = typer.Option(None, help='Produtos "id:qtd;id:qtd" (quantidade total)'),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Cria uma ordem de fumigação."""
    with _tratando_erros():
        dados = carregar_json(payload)
        if cultura:
            dados["crop"] = cultura
        if data:
            dados["applicationDate"] = parse_data(data).isoformat()
        if itens:
            dados["selectedProducts"] = parse_itens(itens, "totalQuantity")
        fumigacao = criar_fumigacao(dados, db_path=db_path)
    _display_table(fumigacao, title="Fumigação Criada")


@fumigacoes_app.command("concluir")
def cmd_fumigacoes_concluir(
    fumigacao_id: str = typer.Argument(..., help="ID da fumigação"),
    notas: Optional[str] = typer.Option(None, help="Observações da conclusão"),
    estrito: bool = typer.Option(False, "--estrito", help="Aborta se faltar estoque"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Conclui a fumigação descontando o estoque dos produtos aplicados."""
    with _tratando_erros():
        conclusao = {"completionNotes": notas} if notas else None
        res = concluir_fumigacao(fumigacao_id, conclusao, db_path=db_path, estrito=estrito or None)
    _display_table(res["descontados"], title="Estoque Descontado")
    if res["sem_estoque"]:
        _display_table(res["sem_estoque"], title="[yellow]Não Descontados[/]")
    typer.echo(f">> Fumigação {res['fumigacao'].get('orderNumber') or fumigacao_id} concluída.")


# -----------------------
# colheitas
# -----------------------

colheitas_app = typer.Typer(help="Colheitas")
app.add_typer(colheitas_app, name="colheitas")


@colheitas_app.command("listar")
def cmd_colheitas_listar(
    status: Optional[str] = typer.Option(None),
    cultura: Optional[str] = typer.Option(None),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Lista colheitas (data planejada mais recente primeiro)."""
    with _tratando_erros():
        res = listar_colheitas({"status": status, "cultura": cultura}, db_path=db_path)
    _display_table(res, title="Colheitas", colunas=COLS_COLHEITA)


@colheitas_app.command("criar")
def cmd_colheitas_criar(
    payload: str = typer.Argument(..., help="JSON da colheita (ou @arquivo.json)"),
    itens: Optional[str] = typer.Option(None, help='Insumos "id:qtd;id:qtd"'),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Cria a colheita consumindo os insumos (tudo ou nada)."""
    with _tratando_erros():
        dados = carregar_json(payload)
        if itens:
            dados["selectedProducts"] = parse_itens(itens)
        colheita = criar_colheita(dados, db_path=db_path)
    _display_table(colheita, title="Colheita Criada")


@colheitas_app.command("concluir")
def cmd_colheitas_concluir(
    colheita_id: str = typer.Argument(..., help="ID da colheita"),
    payload: Optional[str] = typer.Argument(None, help="JSON da conclusão (ou @arquivo.json)"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Conclui a colheita e cria os produtos colhidos no estoque."""
    with _tratando_erros():
        res = concluir_colheita(colheita_id, carregar_json(payload), db_path=db_path)
    _display_table(res["produtos"], title="Produtos Colhidos", colunas=COLS_PRODUTO)
    typer.echo(f">> Colheita {colheita_id} concluída.")


# -----------------------
# transferências
# -----------------------

transferencias_app = typer.Typer(help="Transferências entre depósitos")
app.add_typer(transferencias_app, name="transferencias")


@transferencias_app.command("listar")
def cmd_transferencias_listar(
    status: Optional[str] = typer.Option(None),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    with _tratando_erros():
        res = listar_transferencias({"status": status}, db_path=db_path)
    _display_table(res, title="Transferências", colunas=COLS_TRANSFERENCIA)


@transferencias_app.command("criar")
def cmd_transferencias_criar(
    origem: str = typer.Option(..., help="ID do depósito de origem"),
    destino: str = typer.Option(..., help="ID do depósito de destino"),
    itens: str = typer.Option(..., help='Produtos "id:qtd;id:qtd"'),
    custo: str = typer.Option("0", help="Custo total da transferência"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Solicita uma transferência (status pending)."""
    with _tratando_erros():
        transferencia = criar_transferencia(
            {
                "sourceWarehouseId": origem,
                "targetWarehouseId": destino,
                "products": parse_itens(itens),
                "transferCost": parse_quantidade(custo) or 0,
            },
            db_path=db_path,
        )
    _display_table(transferencia, title="Transferência Criada")


@transferencias_app.command("aprovar")
def cmd_transferencias_aprovar(transferencia_id: str = typer.Argument(...), db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")):
    with _tratando_erros():
        aprovar_transferencia(transferencia_id, db_path=db_path)
    typer.echo(f">> Transferência {transferencia_id} aprovada.")


@transferencias_app.command("rejeitar")
def cmd_transferencias_rejeitar(
    transferencia_id: str = typer.Argument(...),
    motivo: str = typer.Option(..., help="Motivo da rejeição"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    with _tratando_erros():
        rejeitar_transferencia(transferencia_id, motivo, db_path=db_path)
    typer.echo(f">> Transferência {transferencia_id} rejeitada.")


@transferencias_app.command("enviar")
def cmd_transferencias_enviar(transferencia_id: str = typer.Argument(...), db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")):
    """Desconta o estoque da origem e marca como enviada."""
    with _tratando_erros():
        enviar_transferencia(transferencia_id, db_path=db_path)
    typer.echo(f">> Transferência {transferencia_id} enviada.")


@transferencias_app.command("receber")
def cmd_transferencias_receber(transferencia_id: str = typer.Argument(...), db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")):
    """Soma o recebido ao estoque no depósito de destino."""
    with _tratando_erros():
        receber_transferencia(transferencia_id, db_path=db_path)
    typer.echo(f">> Transferência {transferencia_id} recebida.")


# -----------------------
# compras
# -----------------------

compras_app = typer.Typer(help="Compras e entregas")
app.add_typer(compras_app, name="compras")


@compras_app.command("listar")
def cmd_compras_listar(
    status: Optional[str] = typer.Option(None),
    fornecedor: Optional[str] = typer.Option(None),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    with _tratando_erros():
        res = listar_compras({"status": status, "fornecedor": fornecedor}, db_path=db_path)
    _display_table(res, title="Compras", colunas=COLS_COMPRA)


@compras_app.command("criar")
def cmd_compras_criar(
    payload: str = typer.Argument(..., help="JSON da compra (ou @arquivo.json)"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    with _tratando_erros():
        compra = criar_compra(carregar_json(payload), db_path=db_path)
    _display_table(compra, title="Compra Criada")


@compras_app.command("entrega")
def cmd_compras_entrega(
    compra_id: str = typer.Argument(...),
    itens: str = typer.Option(..., help='Produtos "id:qtd;id:qtd"'),
    previsao: Optional[str] = typer.Option(None, help="Data prevista"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Registra uma entrega pendente para a compra."""
    with _tratando_erros():
        dados: Dict[str, Any] = {"products": parse_itens(itens)}
        if previsao:
            dados["expectedDate"] = parse_data(previsao).isoformat()
        entrega = criar_entrega(compra_id, dados, db_path=db_path)
    typer.echo(f">> Entrega {entrega['deliveryNumber']} criada (id {entrega['id']}).")


@compras_app.command("receber-entrega")
def cmd_compras_receber_entrega(
    compra_id: str = typer.Argument(...),
    entrega_id: str = typer.Argument(...),
    itens: str = typer.Option(..., help='Recebido "id:qtd;id:qtd"'),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Recebe a entrega e soma as quantidades ao estoque."""
    with _tratando_erros():
        compra = concluir_entrega(compra_id, entrega_id, parse_itens(itens, "quantityReceived"), db_path=db_path)
    typer.echo(f">> Compra {compra.get('purchaseNumber')}: {compra.get('status')}")


# -----------------------
# despesas
# -----------------------

despesas_app = typer.Typer(help="Despesas e vendas")
app.add_typer(despesas_app, name="despesas")


@despesas_app.command("listar")
def cmd_despesas_listar(
    tipo: Optional[str] = typer.Option(None),
    categoria: Optional[str] = typer.Option(None),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    with _tratando_erros():
        res = listar_despesas({"tipo": tipo, "categoria": categoria}, db_path=db_path)
    _display_table(res, title="Despesas", colunas=COLS_DESPESA)


@despesas_app.command("criar")
def cmd_despesas_criar(
    payload: str = typer.Argument(..., help="JSON da despesa (ou @arquivo.json)"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Registra a despesa; vendas de produto descontam o estoque."""
    with _tratando_erros():
        despesa = criar_despesa(carregar_json(payload), db_path=db_path)
    _display_table(despesa, title="Despesa Registrada")


# -----------------------
# atividades
# -----------------------

atividades_app = typer.Typer(help="Trilha de atividades")
app.add_typer(atividades_app, name="atividades")


@atividades_app.command("listar")
def cmd_atividades_listar(
    limite: int = typer.Option(50, help="Quantidade máxima"),
    entidade: Optional[str] = typer.Option(None, help="Tipo de entidade (product, harvest...)"),
    entidade_id: Optional[str] = typer.Option(None, "--id", help="ID da entidade"),
    usuario: Optional[str] = typer.Option(None, help="ID do usuário"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Lista as atividades mais recentes."""
    if entidade and entidade_id:
        res = listar_por_entidade(entidade, entidade_id, db_path=db_path)
    elif usuario:
        res = listar_por_usuario(usuario, db_path=db_path)
    else:
        res = listar_recentes(limite, db_path=db_path)
    _display_table(res[:limite], title="Atividades", colunas=COLS_ATIVIDADE)


# -----------------------
# relatórios
# -----------------------

rel_app = typer.Typer(help="Relatórios")
app.add_typer(rel_app, name="rel")


@rel_app.command("produtos")
def rel_produtos(
    inicio: Optional[str] = typer.Option(None, help="Criados a partir de"),
    fim: Optional[str] = typer.Option(None, help="Criados até"),
    categoria: Optional[str] = typer.Option(None),
    saida: Optional[str] = typer.Option(None, help="Exporta para .xlsx ou .csv"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Relatório de produtos."""
    with _tratando_erros():
        filtros = {
            "startDate": parse_data(inicio),
            "endDate": parse_data(fim),
            "category": categoria,
        }
        res = relatorio_produtos(filtros, db_path=db_path)
        if saida:
            _salvar_export(res, COLS_PRODUTO, "Relatório de Produtos", saida)
            return
    _display_table(res, title="Relatório de Produtos", colunas=COLS_PRODUTO)


@rel_app.command("estoque-baixo")
def rel_estoque_baixo(
    saida: Optional[str] = typer.Option(None, help="Exporta para .xlsx ou .csv"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Produtos com estoque no mínimo ou abaixo."""
    with _tratando_erros():
        res = relatorio_estoque_baixo(db_path=db_path)
        if saida:
            _salvar_export(res, COLS_PRODUTO, "Estoque Baixo", saida)
            return
    _display_table(res, title="Estoque Baixo", colunas=COLS_PRODUTO)


@rel_app.command("dashboard")
def rel_dashboard(db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")):
    """Resumo do painel: totais, estoque baixo, vencimentos e pendências."""
    res = resumo_dashboard(db_path=db_path)
    _display_table(res, title="Dashboard")
    if res["lowStockProducts"]:
        _display_table(res["lowStockProducts"], title="Estoque Baixo", colunas=COLS_PRODUTO)
    if res["expiringProducts"]:
        _display_table(res["expiringProducts"], title="Vencendo em Breve",
                       colunas=["id", "name", "expiryDate", "stock"])


@rel_app.command("atividades")
def rel_atividades(
    inicio: Optional[str] = typer.Option(None),
    fim: Optional[str] = typer.Option(None),
    status: Optional[str] = typer.Option(None),
    saida: Optional[str] = typer.Option(None, help="Exporta para .xlsx ou .csv"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Atividades consolidadas (transferências, fumigações, colheitas, compras, despesas)."""
    colunas = ["date", "type", "description", "status"]
    with _tratando_erros():
        filtros = {"startDate": parse_data(inicio), "endDate": parse_data(fim), "status": status}
        res = relatorio_atividades(filtros, db_path=db_path)
        if saida:
            _salvar_export(res, colunas, "Relatório de Atividades", saida)
            return
    _display_table(res, title="Relatório de Atividades", colunas=colunas)


# Entry point opcional:
def main():
    app()


if __name__ == "__main__":
    main()
