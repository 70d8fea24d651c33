from fastapi import APIRouter

from dictionary_review.api.routes import admin, corrections, health, words

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(words.router, prefix="/words", tags=["words"])
api_router.include_router(corrections.router, prefix="/corrections", tags=["corrections"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
