"""Tests for logging setup."""

from click.testing import CliRunner
from loguru import logger

from modresolve.cli import main
from modresolve.logger import resolve_level, setup_logger


def test_console_and_file_sinks(tmp_path):
    lines = []
    log_file = tmp_path / "logs" / "modresolve.log"

    level = setup_logger(level="info", sink=lines.append, enqueue=False, colorize=False, log_file=str(log_file))
    logger.debug("scan details")
    logger.info("版本检查完成")
    logger.remove()

    assert level == "INFO"
    assert any("版本检查完成" in line for line in lines)
    assert not any("scan details" in line for line in lines)
    text = log_file.read_text(encoding="utf-8")
    assert "scan details" in text
    assert "版本检查完成" in text


def test_resolve_level_from_environment(monkeypatch):
    monkeypatch.delenv("MODRESOLVE_DEBUG", raising=False)
    monkeypatch.delenv("MODRESOLVE_LOG_LEVEL", raising=False)
    assert resolve_level() == "INFO"

    monkeypatch.setenv("MODRESOLVE_LOG_LEVEL", "warning")
    assert resolve_level() == "WARNING"

    monkeypatch.setenv("MODRESOLVE_DEBUG", "1")
    assert resolve_level() == "DEBUG"
    assert resolve_level("error") == "ERROR"


def test_cli_log_file_option(tmp_path):
    log_file = tmp_path / "cli.log"

    result = CliRunner().invoke(main, ["--debug", "--log-file", str(log_file), "compare", "1.0", "1.1"])
    logger.remove()

    assert result.exit_code == 0
    assert result.output.strip() == "-1"
    assert "DEBUG 模式已启用" in log_file.read_text(encoding="utf-8")
