"""
API route modules.

Import all route modules here for easy access.
"""

from insights.api.routes import insights

__all__ = ["insights"]
