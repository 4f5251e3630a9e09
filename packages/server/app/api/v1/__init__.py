"""
API v1 Router

Org-scoped resources live under /orgs/{org_id}; files are addressed
directly by id under /files/{file_id}.
"""

from fastapi import APIRouter
from . import files, groups, organizations

router = APIRouter()

router.include_router(organizations.router, tags=["Organizations"])
router.include_router(groups.router, prefix="/orgs/{org_id}/groups", tags=["Groups"])
router.include_router(files.router, tags=["Files"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/orgs",
            "/orgs/{org_id}",
            "/orgs/{org_id}/members",
            "/orgs/{org_id}/groups",
            "/orgs/{org_id}/files",
            "/files/{file_id}",
            "/me/orgs",
            "/me/uploads",
        ],
    }
