# fazenda/infra/logger.py
"""
Sistema de logging das transações da fazenda.

Este módulo configura e fornece loggers para registrar as operações
críticas do sistema: transações de estoque, movimentos de estoque por
produto, operações no banco de documentos e eventos gerais.
"""

import logging
import os
from typing import Dict, Any, Optional

from fazenda.config import LOGS_DIR


# Flag global para habilitar/desabilitar logging
ENABLE_LOGGING = os.getenv("FAZENDA_LOGGING", "0") == "1"
# Flag global para habilitar/desabilitar prints/output
ENABLE_OUTPUT = os.getenv("FAZENDA_OUTPUT", "0") == "1"

def print_system(*args, **kwargs):
    """Print controlado pelo ENABLE_OUTPUT."""
    if ENABLE_OUTPUT:
        print(*args, **kwargs)

# Configuração base dos loggers
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logger(name: str, log_file: str, level: int = logging.INFO) -> logging.Logger:
    """
    Configura um logger específico com arquivo de saída.

    O arquivo só é criado na primeira mensagem (``delay=True``), então
    importar o módulo com o logging desligado não toca o disco.

    Args:
        name: Nome do logger
        log_file: Caminho do arquivo de log
        level: Nível de logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Logger configurado
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    # Remove todos os handlers existentes (incluindo root e console)
    while logger.handlers:
        logger.removeHandler(logger.handlers[0])

    file_handler = _FileHandlerLazy(log_file, encoding='utf-8', delay=True)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger


class _FileHandlerLazy(logging.FileHandler):
    """FileHandler que cria o diretório do log apenas ao abrir o arquivo."""

    def _open(self):
        os.makedirs(os.path.dirname(self.baseFilename), exist_ok=True)
        return super()._open()


# Loggers específicos para cada operação
transaction_logger = setup_logger(
    'fazenda.transactions',
    str(LOGS_DIR / 'transactions.log')
)

estoque_logger = setup_logger(
    'fazenda.estoque',
    str(LOGS_DIR / 'estoque.log')
)

database_logger = setup_logger(
    'fazenda.database',
    str(LOGS_DIR / 'database.log')
)

system_logger = setup_logger(
    'fazenda.system',
    str(LOGS_DIR / 'system.log')
)

def log_transaction(operation: str, data: Dict[str, Any], result: Optional[Any] = None, error: Optional[str] = None) -> None:
    """
    Registra uma transação completa no log.

    Args:
        operation: Tipo de operação (concluir_fumigacao, criar_colheita, ...)
        data: Dados da transação
        result: Resultado da operação (opcional)
        error: Mensagem de erro (opcional)
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    if error:
        transaction_logger.error(f"TRANSACTION_FAILED: {operation} - {error} - Data: {data}")
    else:
        transaction_logger.info(f"TRANSACTION_SUCCESS: {operation} - Result: {result} - Data: {data}")

def log_movimento_estoque(action: str, produto_id: str, estoque_anterior: float,
                          estoque_novo: Optional[float], **kwargs) -> None:
    """
    Log específico para movimentos de estoque de um produto.

    Args:
        action: Ação (desconto, entrada, ajuste, ignorado)
        produto_id: ID do produto
        estoque_anterior: Estoque lido na transação
        estoque_novo: Estoque gravado (None quando o desconto foi ignorado)
        **kwargs: Dados adicionais (origem, quantidade, motivo...)
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {
        "action": action,
        "produto_id": produto_id,
        "estoque_anterior": estoque_anterior,
        "estoque_novo": estoque_novo,
        **kwargs
    }
    if action == "ignorado":
        estoque_logger.warning(f"ESTOQUE_{action.upper()}: {log_data}")
    else:
        estoque_logger.info(f"ESTOQUE_{action.upper()}: {log_data}")

def log_database_operation(colecao: str, operation: str, affected_docs: int = 0, **kwargs) -> None:
    """
    Log específico para operações no banco de documentos.

    Args:
        colecao: Nome da coleção
        operation: Operação (INSERT, UPDATE, DELETE, SELECT, TRANSACTION)
        affected_docs: Número de documentos afetados
        **kwargs: Dados adicionais
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {
        "colecao": colecao,
        "operation": operation,
        "affected_docs": affected_docs,
        **kwargs
    }
    database_logger.info(f"DB_{operation}: {log_data}")

def log_system_event(event: str, details: Dict[str, Any] = None, level: str = "info") -> None:
    """
    Log para eventos do sistema.

    Args:
        event: Descrição do evento
        details: Detalhes adicionais (opcional)
        level: Nível do log (info, warning, error)
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {
        "event": event,
        "details": details or {}
    }
    log_method = getattr(system_logger, level.lower(), system_logger.info)
    log_method(f"SYSTEM_EVENT: {event} - {log_data}")

def get_log_summary(log_type: str = "transactions", lines: int = 100) -> str:
    """
    Obtém um resumo dos logs recentes.

    Args:
        log_type: Tipo de log (transactions, estoque, database, system)
        lines: Número de linhas a retornar

    Returns:
        Conteúdo do log como string
    """
    log_files = {
        "transactions": LOGS_DIR / "transactions.log",
        "estoque": LOGS_DIR / "estoque.log",
        "database": LOGS_DIR / "database.log",
        "system": LOGS_DIR / "system.log"
    }

    log_file = log_files.get(log_type)
    if not log_file or not log_file.exists():
        return f"Log {log_type} não encontrado."

    with open(log_file, 'r', encoding='utf-8') as f:
        all_lines = f.readlines()
    recent_lines = all_lines[-lines:] if len(all_lines) > lines else all_lines
    return ''.join(recent_lines)
