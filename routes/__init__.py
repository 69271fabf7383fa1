"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.dispatcher import router as dispatcher_router
from routes.approvals import assignment_router, redirect_router
from routes.rules import router as rules_router
from routes.inventory import router as inventory_router

__all__ = [
    "dispatcher_router",
    "assignment_router",
    "redirect_router",
    "rules_router",
    "inventory_router",
]
