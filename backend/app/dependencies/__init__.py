"""
FastAPI dependencies for the InSkate application.
"""

from .permissions import require_permission

__all__ = [
    "require_permission",
]
