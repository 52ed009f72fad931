"""
API routes module.
"""

from printbroker.api.routes.health import router as health_router
from printbroker.api.routes.jobs import clients_router
from printbroker.api.routes.jobs import router as jobs_router
from printbroker.api.routes.print import router as print_router
from printbroker.api.routes.storage import router as storage_router

__all__ = [
    "print_router",
    "jobs_router",
    "clients_router",
    "storage_router",
    "health_router",
]
