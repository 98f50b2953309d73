"""
Unit тесты для модуля логирования (src/common/logger.py).
"""

import json
import logging
import pytest
from pathlib import Path
from unittest.mock import Mock, patch, MagicMock

import src.common.logger as logger_module
from src.common.logger import (
    JsonFormatter,
    ColoredFormatter,
    DateBasedRotatingFileHandler,
    get_logger,
    setup_logging,
    log_info,
    log_debug,
    log_warning,
    log_error,
    _get_caller_info,
    _loggers,
)
from src.common.constants import TypeMsg


def make_record(level: int = logging.INFO, msg: str = "Test message", exc_info=None) -> logging.LogRecord:
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
        result = json.loads(JsonFormatter().format(make_record()))

        assert result["level"] == "INFO"
        assert result["message"] == "Test message"
        assert result["module"] == "test_module"
        assert result["function"] == "test_function"
        assert result["line"] == 10
        assert result["timestamp"].endswith("Z")

    def test_format_with_extra_data(self) -> None:
        """Тест форматирования записи с дополнительными данными."""
        record = make_record(logging.WARNING, "Warning message")
        record.extra_data = {"call_id": "call-1", "action": "claim"}

        result = json.loads(JsonFormatter().format(record))

        assert result["extra"] == {"call_id": "call-1", "action": "claim"}

    def test_format_with_exception(self) -> None:
        """Тест форматирования записи с исключением."""
        try:
            raise ValueError("Test exception")
        except ValueError:
            import sys
            exc_info = sys.exc_info()

        result = JsonFormatter().format(make_record(logging.ERROR, "Error occurred", exc_info))

        assert '"exception"' in result
        assert "ValueError" in result
        assert "Test exception" in result


class TestColoredFormatter:
    """Тесты для ColoredFormatter."""

    def test_format_basic_record(self) -> None:
        """Тест цветного форматирования базовой записи."""
        result = ColoredFormatter().format(make_record())

        assert "INFO" in result
        assert "Test message" in result
        assert "\033[" in result  # ANSI код присутствует

    def test_format_with_caller_info(self) -> None:
        """Тест форматирования с информацией о вызывающей функции."""
        record = make_record(logging.DEBUG, "Debug message")
        record.extra_data = {
            "caller_function": "claim_call",
            "caller_module": "src.core.calls.service",
            "caller_file": "service.py",
            "caller_line": 42,
        }

        result = ColoredFormatter().format(record)

        assert "src.core.calls.service.claim_call()" in result
        assert "service.py:42" in result


class TestDateBasedRotatingFileHandler:
    """Тесты ротации файлов логов."""

    def test_rollover_archives_file(self, tmp_path: Path) -> None:
        handler = DateBasedRotatingFileHandler(str(tmp_path), max_bytes=10, logger_name="ride")
        handler.setFormatter(logging.Formatter("%(message)s"))
        try:
            handler.emit(make_record(msg="x" * 20))
            handler.emit(make_record(msg="second"))
        finally:
            handler.close()

        archives = [p for p in tmp_path.iterdir() if p.name.startswith("ride_")]
        assert len(archives) == 1
        assert (tmp_path / "ride.log").read_text(encoding="utf-8").strip() == "second"


class TestGetLogger:
    """Тесты для get_logger."""

    def setup_method(self) -> None:
        """Очистка кэша логгеров перед каждым тестом."""
        _loggers.clear()
        # Очистка хендлеров у существующих логгеров
        for logger in logging.Logger.manager.loggerDict.values():
            if isinstance(logger, logging.Logger):
                logger.handlers.clear()

    def teardown_method(self) -> None:
        for handler in (logger_module._GLOBAL_FILE_HANDLER, logger_module._GLOBAL_ERROR_HANDLER):
            if handler is not None:
                handler.close()
        logger_module._GLOBAL_FILE_HANDLER = None
        logger_module._GLOBAL_ERROR_HANDLER = None

    def test_get_logger_creates_new_logger(self) -> None:
        """Тест создания нового логгера."""
        logger = get_logger("test_logger")

        assert logger.name == "test_logger"
        assert len(logger.handlers) >= 1
        assert logger.propagate is False

    def test_get_logger_returns_cached_logger(self) -> None:
        """Тест возврата кэшированного логгера."""
        assert get_logger("test_logger") is get_logger("test_logger")

    @patch("src.config.settings")
    def test_get_logger_uses_settings(self, mock_settings: Mock, tmp_path: Path) -> None:
        """Тест использования настроек из конфига."""
        mock_settings.logging.LOG_LEVEL = "WARNING"
        mock_settings.logging.LOG_FORMAT = "json"
        mock_settings.logging.LOG_TO_FILE = True
        mock_settings.logging.LOG_FILE_PATH = str(tmp_path / "logs" / "test.log")
        mock_settings.logging.LOG_MAX_BYTES = 10485760

        logger = get_logger("test_with_settings")

        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)
        assert (tmp_path / "logs").is_dir()
        assert logger_module._GLOBAL_ERROR_HANDLER in logger.handlers

    def test_get_logger_handles_missing_settings(self) -> None:
        """Тест работы при отсутствии настроек."""
        # settings импортируется внутри функции, поэтому патчим модуль src.config
        with patch.dict('sys.modules', {'src.config': None}):
            logger = get_logger("test_no_settings")

            assert logger is not None
            assert logger.level == logging.DEBUG


class TestSetupLogging:
    """Тесты для setup_logging."""

    def setup_method(self) -> None:
        """Очистка перед тестом."""
        _loggers.clear()
        logger_module._LOGGING_INITIALIZED = False

    def test_setup_logging_initializes_system(self) -> None:
        """Тест инициализации системы логирования."""
        setup_logging()

        assert "ride_match" in _loggers

    def test_setup_logging_idempotent(self) -> None:
        setup_logging()
        _loggers.clear()
        setup_logging()

        assert "ride_match" not in _loggers

    def test_setup_logging_sets_third_party_levels(self) -> None:
        """Тест установки уровней для сторонних библиотек."""
        setup_logging()

        assert logging.getLogger("redis").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING


class TestGetCallerInfo:
    """Тесты для _get_caller_info."""

    def test_get_caller_info_returns_dict(self) -> None:
        """Тест возврата словаря с информацией о вызывающей функции."""
        assert isinstance(_get_caller_info(), dict)


class TestLogFunctions:
    """Тесты для асинхронных функций логирования."""

    def setup_method(self) -> None:
        """Очистка перед тестом."""
        _loggers.clear()

    @pytest.mark.asyncio
    async def test_log_info_basic(self) -> None:
        """Тест базового логирования INFO."""
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

        with patch.object(logging.Logger, "warning") as mock_warning:
            await log_info("Warning message", type_msg=TypeMsg.WARNING)
            mock_warning.assert_called_once()

        with patch.object(logging.Logger, "critical") as mock_critical:
            await log_info("Critical message", type_msg=TypeMsg.CRITICAL)
            mock_critical.assert_called_once()

    @pytest.mark.asyncio
    async def test_log_info_with_extra(self) -> None:
        """Тест логирования с дополнительными данными."""
        with patch.object(logging.Logger, "info") as mock_info:
            await log_info("Test message", extra={"call_id": "call-1"})

            extra = mock_info.call_args[1]["extra"]["extra_data"]
            assert extra["call_id"] == "call-1"
            assert extra["caller_function"] == "test_log_info_with_extra"

    @pytest.mark.asyncio
    async def test_log_debug(self) -> None:
        """Тест функции log_debug."""
        with patch.object(logging.Logger, "debug") as mock_debug:
            await log_debug("Debug message")

            mock_debug.assert_called_once()

    @pytest.mark.asyncio
    async def test_log_warning(self) -> None:
        """Тест функции log_warning."""
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
        """Тест логирования с пользовательским именем логгера."""
        with patch("src.common.logger.get_logger") as mock_get_logger:
            mock_logger = MagicMock()
            mock_get_logger.return_value = mock_logger

            await log_info("Test message", logger_name="custom_logger")

            mock_get_logger.assert_called_once_with("custom_logger")
            mock_logger.info.assert_called_once()
