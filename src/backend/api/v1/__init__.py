"""
API v1 router aggregating all endpoints.
"""

from fastapi import APIRouter

from api.v1.admin import router as admin_router
from api.v1.candidates import router as candidates_router
from api.v1.elections import router as elections_router
from api.v1.session import router as session_router
from api.v1.voters import router as voters_router

router = APIRouter()

router.include_router(session_router, prefix="/session", tags=["Session"])
router.include_router(elections_router, prefix="/elections", tags=["Elections"])
router.include_router(candidates_router, prefix="/candidates", tags=["Candidates"])
router.include_router(voters_router, prefix="/voters", tags=["Voters"])
router.include_router(admin_router, prefix="/admin", tags=["Admin"])
