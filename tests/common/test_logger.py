# tests/common/test_logger.py
"""
Unit тесты для модуля логирования (microshop/common/logger.py).
"""

import json
import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from microshop.common.constants import TypeMsg
from microshop.common.logger import (
    ColoredFormatter,
    DateBasedRotatingFileHandler,
    JsonFormatter,
    _get_caller_info,
    _loggers,
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_warning,
    request_id_var,
    setup_logging,
)


def _record(level: int = logging.INFO, msg: str = "Test message", exc_info=None) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test_logger",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    record.module = "test_module"
    record.funcName = "test_function"
    return record


class TestJsonFormatter:
    """Тесты для JsonFormatter."""

    def test_format_basic_record(self) -> None:
        """Тест форматирования базовой записи."""
        data = json.loads(JsonFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["message"] == "Test message"
        assert data["module"] == "test_module"
        assert data["function"] == "test_function"
        assert data["line"] == 10
        assert data["timestamp"].endswith("Z")
        assert "request_id" not in data

    def test_format_with_extra_data(self) -> None:
        record = _record(logging.WARNING, "Warning message")
        record.extra_data = {"order_id": "o-1", "action": "test"}

        data = json.loads(JsonFormatter().format(record))

        assert data["extra"] == {"order_id": "o-1", "action": "test"}

    def test_format_with_request_id(self) -> None:
        """X-Request-ID попадает в каждую запись."""
        record = _record()
        record.request_id = "req-123"

        data = json.loads(JsonFormatter().format(record))

        assert data["request_id"] == "req-123"

    def test_request_id_from_contextvar(self) -> None:
        token = request_id_var.set("ctx-req")
        try:
            data = json.loads(JsonFormatter().format(_record()))
        finally:
            request_id_var.reset(token)

        assert data["request_id"] == "ctx-req"

    def test_format_with_exception(self) -> None:
        """Тест форматирования записи с исключением."""
        try:
            raise ValueError("Test exception")
        except ValueError:
            exc_info = sys.exc_info()

        result = JsonFormatter().format(_record(logging.ERROR, "Error occurred", exc_info))

        assert '"exception"' in result
        assert "ValueError" in result
        assert "Test exception" in result


class TestColoredFormatter:
    """Тесты для ColoredFormatter."""

    def test_format_basic_record(self) -> None:
        result = ColoredFormatter().format(_record())

        assert "INFO" in result
        assert "Test message" in result
        assert "\033[" in result  # ANSI код присутствует

    def test_format_with_caller_info(self) -> None:
        """Тест форматирования с информацией о вызывающей функции."""
        record = _record(logging.DEBUG, "Debug message")
        record.extra_data = {
            "caller_function": "my_function",
            "caller_module": "my_module",
            "caller_file": "my_file.py",
            "caller_line": 42,
        }

        result = ColoredFormatter().format(record)

        assert "my_module.my_function()" in result
        assert "my_file.py:42" in result

    def test_format_with_request_id(self) -> None:
        record = _record()
        record.request_id = "req-777"

        assert "req=req-777" in ColoredFormatter().format(record)


class TestDateBasedRotatingFileHandler:
    """Тесты для ротации файлов логов."""

    def test_rollover_creates_archive(self, tmp_path: Path) -> None:
        handler = DateBasedRotatingFileHandler(
            log_dir=str(tmp_path), max_bytes=10, logger_name="app_catalog", backup_count=2
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        try:
            handler.emit(_record(msg="x" * 50))
            handler.emit(_record(msg="second"))
        finally:
            handler.close()

        assert (tmp_path / "app_catalog.log").exists()
        assert list(tmp_path.glob("app_catalog_*.log"))

    def test_prune_keeps_limit(self, tmp_path: Path) -> None:
        for i in range(4):
            (tmp_path / f"app_2026-01-0{i + 1}_00-00-00.log").write_text("old")

        handler = DateBasedRotatingFileHandler(
            log_dir=str(tmp_path), max_bytes=0, logger_name="app", backup_count=2
        )
        try:
            handler._prune_archives()
        finally:
            handler.close()

        remaining = sorted(p.name for p in tmp_path.glob("app_*.log"))
        assert remaining == ["app_2026-01-03_00-00-00.log", "app_2026-01-04_00-00-00.log"]


class TestGetLogger:
    """Тесты для get_logger."""

    def setup_method(self) -> None:
        """Очистка кэша логгеров перед каждым тестом."""
        _loggers.clear()
        for logger in logging.Logger.manager.loggerDict.values():
            if isinstance(logger, logging.Logger):
                logger.handlers.clear()

    def test_get_logger_creates_new_logger(self) -> None:
        logger = get_logger("test_logger")

        assert logger.name == "test_logger"
        assert len(logger.handlers) >= 1
        assert logger.propagate is False

    def test_get_logger_returns_cached_logger(self) -> None:
        assert get_logger("test_logger") is get_logger("test_logger")

    def test_get_logger_uses_settings(self) -> None:
        """Тест использования настроек из конфига."""
        mock_settings = MagicMock()
        mock_settings.logging.LOG_LEVEL = "WARNING"
        mock_settings.logging.LOG_FORMAT = "json"
        mock_settings.logging.LOG_TO_FILE = False
        mock_settings.logging.LOG_FILE_PATH = "logs/test.log"
        mock_settings.logging.LOG_MAX_BYTES = 10485760
        mock_settings.logging.LOG_BACKUP_COUNT = 5

        with patch("microshop.config.settings", mock_settings):
            logger = get_logger("test_with_settings")

        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)

    def test_get_logger_ignores_mock_values(self) -> None:
        """Нестроковые значения настроек заменяются значениями по умолчанию."""
        with patch("microshop.config.settings", MagicMock()):
            logger = get_logger("test_mock_settings")

        assert logger.level == logging.INFO
        assert isinstance(logger.handlers[0].formatter, ColoredFormatter)


class TestSetupLogging:
    """Тесты для setup_logging."""

    def setup_method(self) -> None:
        _loggers.clear()

    def test_setup_logging_sets_third_party_levels(self) -> None:
        """Тест установки уровней для сторонних библиотек."""
        with patch("microshop.common.logger._LOGGING_INITIALIZED", False):
            setup_logging()

        assert "microshop" in _loggers
        assert logging.getLogger("asyncpg").level == logging.WARNING
        assert logging.getLogger("aio_pika").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING


class TestGetCallerInfo:
    """Тесты для _get_caller_info."""

    def test_get_caller_info_points_to_caller(self) -> None:
        def some_function():
            return _get_caller_info()

        info = some_function()

        assert info["caller_function"] == "some_function"
        assert info["caller_file"] == "test_logger.py"


class TestLogFunctions:
    """Тесты для асинхронных функций логирования."""

    def setup_method(self) -> None:
        _loggers.clear()

    @pytest.mark.asyncio
    async def test_log_info_basic(self) -> None:
        with patch.object(logging.Logger, "info") as mock_info:
            await log_info("Test message")

            mock_info.assert_called_once()
            assert "Test message" in mock_info.call_args[0]

    @pytest.mark.asyncio
    async def test_log_info_with_type_msg(self) -> None:
        """Тест логирования с разными типами сообщений."""
        with patch.object(logging.Logger, "debug") as mock_debug:
            await log_info("Debug message", type_msg=TypeMsg.DEBUG)
            mock_debug.assert_called_once()

        with patch.object(logging.Logger, "critical") as mock_critical:
            await log_info("Critical message", type_msg=TypeMsg.CRITICAL)
            mock_critical.assert_called_once()

    @pytest.mark.asyncio
    async def test_log_info_passes_extra_and_request_id(self) -> None:
        token = request_id_var.set("req-42")
        try:
            with patch.object(logging.Logger, "info") as mock_info:
                await log_info("Test message", extra={"order_id": "o-1"})
        finally:
            request_id_var.reset(token)

        record_extra = mock_info.call_args[1]["extra"]
        assert record_extra["request_id"] == "req-42"
        assert record_extra["extra_data"]["order_id"] == "o-1"

    @pytest.mark.asyncio
    async def test_log_debug_and_warning(self) -> None:
        with patch.object(logging.Logger, "debug") as mock_debug:
            await log_debug("Debug message")
            mock_debug.assert_called_once()

        with patch.object(logging.Logger, "warning") as mock_warning:
            await log_warning("Warning message")
            mock_warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_log_error_with_exc_info(self) -> None:
        """Тест логирования ошибки с трейсбеком."""
        with patch.object(logging.Logger, "error") as mock_error:
            await log_error("Error message", exc_info=True)

            mock_error.assert_called_once()
            assert mock_error.call_args[1].get("exc_info") is True

    @pytest.mark.asyncio
    async def test_log_info_with_custom_logger_name(self) -> None:
        with patch("microshop.common.logger.get_logger") as mock_get_logger:
            mock_logger = MagicMock()
            mock_get_logger.return_value = mock_logger

            await log_info("Test message", logger_name="custom_logger")

            mock_get_logger.assert_called_once_with("custom_logger")
            mock_logger.info.assert_called_once()
