import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from app.db.init_db import create_database, seed_admin
from app.db.base import Base
from app.db.session import engine, SessionLocal
from app.core.config import settings
from app.core.exceptions import PreviewTokenMissingSecret, SlugConflict, SlugGenerationExhausted
from app.api.v1.router import api_router
from app.api.v1.public.pages import router as pages_router

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Ensure DB exists, create tables and the seed admin
    create_database()
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_admin(db)
    finally:
        db.close()
    yield


from fastapi.middleware.cors import CORSMiddleware

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SlugConflict)
async def slug_conflict_handler(request: Request, exc: SlugConflict):
    return JSONResponse(
        status_code=409,
        content={"detail": {"error": "SLUG_CONFLICT", "message": str(exc)}},
    )


@app.exception_handler(SlugGenerationExhausted)
async def slug_exhausted_handler(request: Request, exc: SlugGenerationExhausted):
    logger.error("Slug generation exhausted for %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=409,
        content={"detail": {"error": "SLUG_EXHAUSTED", "message": str(exc)}},
    )


@app.exception_handler(PreviewTokenMissingSecret)
async def preview_secret_handler(request: Request, exc: PreviewTokenMissingSecret):
    logger.error("Preview tokens unavailable: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": {"error": "PREVIEW_TOKEN_FAILED", "message": "Preview links are not configured"}},
    )


app.include_router(api_router, prefix=settings.API_V1_STR)

# Site pages last: with an empty POST_ROUTE_PREFIX the post route is a catch-all
app.include_router(pages_router)

@app.get("/")
def read_root():
    return {"name": settings.PROJECT_NAME, "posts": f"{settings.API_V1_STR}/site/posts"}
