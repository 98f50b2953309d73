# src/services/admin_api/__init__.py
"""
Admin API: операторский HTTP-интерфейс.
"""
