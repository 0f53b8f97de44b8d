"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.commands import router as commands_router

__all__ = [
    "commands_router",
]
