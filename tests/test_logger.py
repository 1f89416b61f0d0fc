from fazenda.infra import logger
from fazenda.infra.logger import get_log_summary, log_movimento_estoque, log_system_event


def test_logging_desligado_nao_registra(monkeypatch, caplog):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", False)
    monkeypatch.setattr(logger, "ENABLE_OUTPUT", False)
    monkeypatch.setattr(logger.system_logger, "handlers", [caplog.handler])
    log_system_event("qualquer", {"x": 1})
    assert caplog.records == []


def test_movimento_ignorado_vira_aviso(monkeypatch, caplog):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", True)
    monkeypatch.setattr(logger.estoque_logger, "handlers", [caplog.handler])

    log_movimento_estoque("ignorado", "p1", 5, None, motivo="insuficiente")
    log_movimento_estoque("desconto", "p1", 5, 3, origem="fumigacao:f1")

    assert [r.levelname for r in caplog.records] == ["WARNING", "INFO"]
    assert "ESTOQUE_IGNORADO" in caplog.records[0].getMessage()
    assert "fumigacao:f1" in caplog.records[1].getMessage()


def test_evento_de_erro_usa_nivel_informado(monkeypatch, caplog):
    monkeypatch.setattr(logger, "ENABLE_LOGGING", True)
    monkeypatch.setattr(logger.system_logger, "handlers", [caplog.handler])
    log_system_event("concluir_fumigacao_error", {"error": "boom"}, level="error")
    [registro] = caplog.records
    assert registro.levelname == "ERROR"
    assert "concluir_fumigacao_error" in registro.getMessage()


def test_get_log_summary(monkeypatch, tmp_path):
    monkeypatch.setattr(logger, "LOGS_DIR", tmp_path)
    assert get_log_summary("transactions") == "Log transactions não encontrado."

    (tmp_path / "estoque.log").write_text("".join(f"linha {i}\n" for i in range(10)), encoding="utf-8")
    assert get_log_summary("estoque", lines=3) == "linha 7\nlinha 8\nlinha 9\n"
