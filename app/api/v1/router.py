from fastapi import APIRouter

# Auth
from app.api.v1.public.auth import router as auth_router

# Public
from app.api.v1.public.health import router as health_router
from app.api.v1.public.posts import router as public_posts_router
from app.api.v1.public.site import router as site_router

# Admin
from app.api.v1.admin.posts import router as posts_router
from app.api.v1.admin.tags import router as tags_router
from app.api.v1.admin.settings import router as settings_router

api_router = APIRouter()

# --- Auth ---
api_router.include_router(auth_router)

# --- Public ---
api_router.include_router(health_router)
api_router.include_router(public_posts_router)
api_router.include_router(site_router)

# --- Admin ---
api_router.include_router(posts_router)
api_router.include_router(tags_router)
api_router.include_router(settings_router)
