#!/usr/bin/env python3
# entrypoint_admin_api.py
"""
Точка входа для Admin API.
Порт: 8090
"""

import asyncio
import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

import uvicorn

from src.config import settings
from src.common.logger import log_info, setup_logging
from src.common.constants import TypeMsg


async def main() -> None:
    """Запуск Admin API."""
    setup_logging()
    await log_info(
        f"Запуск Admin API на порту {settings.admin.ADMIN_API_PORT}",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "src.services.admin_api.app:app",
        host=settings.admin.ADMIN_API_HOST,
        port=settings.admin.ADMIN_API_PORT,
        reload=False,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
