# fazenda/config.py
"""
Configurações globais e valores padrão do sistema da fazenda.
"""

import os
from dataclasses import dataclass
from pathlib import Path


# Caminho padrão do banco de documentos (SQLite)
DB_PATH = os.getenv("FAZENDA_DB", os.path.join(os.getcwd(), "fazenda.db"))

# Diretório dos arquivos de log
LOGS_DIR = Path(os.getenv("FAZENDA_LOGS_DIR", str(Path(__file__).parent.parent / "logs")))


@dataclass
class DefaultConfig:
    """Valores padrão para parâmetros do sistema."""
    categoria_colheita: str = "Colheita"   # categoria dos produtos gerados por colheita
    prefixo_lote_colheita: str = "COLHEITA"
    unidade_padrao: str = "kg"
    vazao_fumigacao: float = 80.0          # L/ha
    tentativas_transacao: int = 5          # tentativas quando o banco está bloqueado
    espera_transacao_s: float = 0.05
    dias_vencimento: int = 30              # janela do alerta de vencimento no dashboard
    fumigacao_estrita: bool = False        # True = aborta a conclusão com estoque insuficiente


# Instância global dos valores padrão
DEFAULTS = DefaultConfig()
