"""
API v1 routes.
"""

from fastapi import APIRouter

from clearance.api.v1 import admin, exports, submissions

router = APIRouter()

router.include_router(submissions.router, prefix="/submissions", tags=["Submissions"])
router.include_router(submissions.bundles_router, prefix="/bundles", tags=["Bundles"])
router.include_router(admin.router, prefix="/admin/submissions", tags=["Admin"])
router.include_router(exports.router, prefix="/admin/exports", tags=["Export"])
