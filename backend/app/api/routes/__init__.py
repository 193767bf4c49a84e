"""
API route modules.

Import all route modules here for easy access.
"""

from app.api.routes import diagnostics, items, runtime

__all__ = ["items", "diagnostics", "runtime"]
