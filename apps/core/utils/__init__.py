# apps/core/utils/__init__.py
"""
Core utilities package
"""
from .tenant import TenantContext
from .retry import retry_on_storage_error

__all__ = [
    'TenantContext',
    'retry_on_storage_error',
]
