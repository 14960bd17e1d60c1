"""
app/api/routers package marker.
"""

from app.api.routers.changes import router as changes_router
from app.api.routers.crawl_jobs import router as crawl_jobs_router
from app.api.routers.credentials import router as credentials_router
from app.api.routers.templates import router as templates_router

__all__ = [
    "changes_router",
    "crawl_jobs_router",
    "credentials_router",
    "templates_router",
]
