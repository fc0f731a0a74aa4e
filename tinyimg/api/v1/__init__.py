"""
API v1 - PNG optimization endpoints.
"""
from fastapi import APIRouter
from tinyimg.api.v1.png import router as png_router

router = APIRouter()
router.include_router(png_router)
