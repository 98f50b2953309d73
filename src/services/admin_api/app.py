# src/services/admin_api/app.py
"""
FastAPI приложение для Admin API.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.common.logger import log_info
from src.common.constants import TypeMsg
from src.config import settings
from src.services.admin_api.routes import router


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Жизненный цикл приложения."""
    await log_info("Admin API запускается...", type_msg=TypeMsg.INFO)

    from src.services.admin_api.dependencies import init_dependencies, close_dependencies
    await init_dependencies()

    yield

    await close_dependencies()
    await log_info("Admin API остановлен", type_msg=TypeMsg.INFO)


# =============================================================================
# ПРИЛОЖЕНИЕ
# =============================================================================

app = FastAPI(
    title="Admin API",
    description="Операторский интерфейс движка матчинга",
    version=settings.system.VERSION,
    lifespan=lifespan,
)

app.include_router(router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check() -> dict:
    """Проверка здоровья сервиса."""
    from src.services.admin_api.dependencies import get_store

    store = get_store()
    healthy = await store.health_check()

    return {
        "status": "ok" if healthy else "degraded",
        "service": "admin_api",
        "store": type(store).__name__,
    }
