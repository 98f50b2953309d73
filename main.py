#!/usr/bin/env python3
# main.py
"""
Главная точка входа ride_match.
Запускает Admin API или выполняет операторский сброс в зависимости от аргументов.
"""

from __future__ import annotations

import asyncio
import signal
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg
from src.common.exceptions import AdminActionForbiddenError, StoreUnavailableError

VALID_MODES = ("admin_api", "reset")

# Глобальный флаг для graceful shutdown
_shutdown_event: asyncio.Event | None = None
_running_tasks: list[asyncio.Task] = []


def setup_signal_handlers() -> None:
    """Настраивает обработчики сигналов для graceful shutdown."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    def signal_handler(sig: int) -> None:
        """Обработчик сигналов SIGINT и SIGTERM."""
        if _shutdown_event and not _shutdown_event.is_set():
            print(f"\nПолучен сигнал остановки (sig={sig}), завершаем работу...")
            _shutdown_event.set()
            for task in _running_tasks:
                if not task.done():
                    task.cancel()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
    except NotImplementedError:
        # Windows не поддерживает add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: signal_handler(s))
        signal.signal(signal.SIGTERM, lambda s, f: signal_handler(s))


async def run_admin_api() -> None:
    """Запускает Admin API (health, сброс тестовых данных)."""
    import uvicorn

    await log_info(
        f"Запуск Admin API на порту {settings.admin.ADMIN_API_PORT}...",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.services.admin_api.app:app",
        host=settings.admin.ADMIN_API_HOST,
        port=settings.admin.ADMIN_API_PORT,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    task = asyncio.create_task(server.serve())
    _running_tasks.append(task)
    try:
        await task
    except asyncio.CancelledError:
        await log_info("Admin API: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def run_reset() -> int:
    """
    Одноразовый сброс calls и transactions.

    Returns:
        Код выхода процесса
    """
    from src.core.admin import AdminService
    from src.infra.factory import close_store, init_store

    try:
        store = await init_store()
        cleared = await AdminService(store).reset()
    except AdminActionForbiddenError as e:
        await log_error(f"Сброс запрещён: {e}")
        return 2
    except StoreUnavailableError as e:
        await log_error(f"Хранилище недоступно: {e}")
        return 1
    finally:
        await close_store()

    print(f"Очищено: {', '.join(cleared)}")
    return 0


async def main(mode: str | None = None) -> int:
    """
    Главная функция запуска.

    Args:
        mode: Режим запуска (admin_api, reset).
              Если None, берётся COMPONENT_MODE из настроек.
    """
    setup_logging()
    setup_signal_handlers()

    if mode is None:
        mode = settings.system.COMPONENT_MODE
        if mode not in VALID_MODES:
            await log_error(f"Неизвестный COMPONENT_MODE '{mode}'")
            return 1

    await log_info(
        f"{settings.system.PROJECT_NAME} v{settings.system.VERSION} — запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    try:
        if mode == "admin_api":
            await run_admin_api()
            return 0
        return await run_reset()
    except asyncio.CancelledError:
        await log_info("Задача отменена, выполняется graceful shutdown", type_msg=TypeMsg.INFO)
        return 0
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}", exc_info=True)
        raise
    finally:
        _running_tasks.clear()
        await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)


def print_usage() -> None:
    """Выводит справку по использованию."""
    print("""
ride_match — матчинг участников и торг по цене в реальном времени

Использование:
    python main.py [mode]

Режимы:
    admin_api              — Admin API (health, POST /api/v1/admin/reset)
    reset                  — Удалить все calls и transactions (тест/демо)

Примеры:
    python main.py                       # Режим из COMPONENT_MODE
    python main.py admin_api             # Только Admin API
    STORE_BACKEND=memory python main.py reset
    """)


if __name__ == "__main__":
    mode = None

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in VALID_MODES:
            mode = arg
        else:
            print(f"Ошибка: неизвестный режим '{arg}'")
            print_usage()
            sys.exit(1)

    try:
        sys.exit(asyncio.run(main(mode)))
    except KeyboardInterrupt:
        pass
