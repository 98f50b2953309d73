# src/services/__init__.py
"""
Сервисы приложения.

Сервисы:
- admin_api: административный HTTP-интерфейс (health, сброс тестовых данных)
"""

__all__: list[str] = []
