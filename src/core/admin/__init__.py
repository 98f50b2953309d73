# src/core/admin/__init__.py
"""
Администрирование.
"""

from src.core.admin.service import AdminService

__all__ = ["AdminService"]
