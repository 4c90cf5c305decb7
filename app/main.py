import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.core.session_cache import session_cache
from app.errors import ConnectHubError, InvalidInputError
from app.gateway.factory import get_local_gateway
from app.logging_config import setup_logging

# Routers
from app.routers import (
    admin_router,
    auth_router,
    community_router,
    connection_router,
    discover_router,
    embedding_router,
    live_router,
    message_router,
    post_router,
    profile_router,
    settings_router,
)

setup_logging()
logger = logging.getLogger(__name__)

# -----------------------
# CREATE APP
# -----------------------
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Backend for the ConnectHub social app: profiles, communities, messaging and connections.",
    version="1.0.0",
)

# -----------------------
# CORS
# -----------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -----------------------
# ERROR HANDLERS
# -----------------------
@app.exception_handler(ConnectHubError)
async def connecthub_error_handler(request: Request, exc: ConnectHubError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)

    body = {"detail": exc.message}
    if isinstance(exc, InvalidInputError) and exc.field:
        body["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=body)


# -----------------------
# LOCAL BACKEND: TABLES + MEDIA
# -----------------------
if settings.GATEWAY_BACKEND == "local":
    local_gateway = get_local_gateway()
    local_gateway.create_schema()
    session_cache.attach(local_gateway)

    os.makedirs(settings.LOCAL_MEDIA_PATH, exist_ok=True)
    app.mount("/media", StaticFiles(directory=settings.LOCAL_MEDIA_PATH), name="media")

logger.info("Starting in %s with the %s gateway backend", settings.ENV, settings.GATEWAY_BACKEND)

# -----------------------
# ROUTES
# -----------------------
app.include_router(auth_router.router)
app.include_router(profile_router.router)
app.include_router(connection_router.router)
app.include_router(discover_router.router)
app.include_router(community_router.router)
app.include_router(post_router.router)
app.include_router(message_router.router)
app.include_router(settings_router.router)
app.include_router(admin_router.router)
app.include_router(embedding_router.router)
app.include_router(live_router.router)


# -----------------------
# HEALTH CHECK
# -----------------------
@app.get("/")
def root():
    return {"message": "ConnectHub API is running!"}
