# app/main.py  # Punto de entrada de la API (uvicorn app.main:app).

# =================================================================================
# 🧠 NÚCLEO DE LA APLICACIÓN API (FastAPI)
# ---------------------------------------------------------------------------------
# - Crea la instancia de FastAPI y configura CORS.
# - Traduce GuestAppError a {"detail": mensaje} con su código HTTP.
# - Registra routers modulares (auth, guest, admin, meta).
# - Loguea al arrancar el modo (demo/online) y el bucket de fotos.
# =================================================================================

import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from app import meta
from app.config import settings
from app.errors import GuestAppError
from app.routers import admin, auth_routes, guest
from app.sessions import registry

logger.remove()
logger.add(sys.stderr, level=settings.log_level)

app = FastAPI(
    title=f"API del portal de invitados {settings.event_title}",
    description="Backend para canje de códigos, RSVP, fotos, chat y panel de admin",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GuestAppError)
async def guest_app_error_handler(request: Request, exc: GuestAppError) -> JSONResponse:
    logger.info("{} {} -> {} ({})", request.method, request.url.path, exc.status_code, type(exc).__name__)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.on_event("startup")
def _startup_trace() -> None:
    logger.info(
        "[BOOT] MODE={} | BUCKET={} | API={} | UI={}",
        "mock" if settings.mock_mode else "online",
        settings.photo_bucket,
        settings.api_public_url,
        settings.app_public_url,
    )
    if settings.mock_mode:
        logger.warning("⚡ Modo demo offline activo: no se contactará al backend.")


@app.on_event("shutdown")
async def _close_sessions() -> None:
    await registry.close_all()


app.include_router(auth_routes.router)
app.include_router(guest.router)
app.include_router(meta.router)
app.include_router(admin.router)


@app.get("/health", tags=["meta"])
def health():
    return {"status": "ok", "mode": "mock" if settings.mock_mode else "online", "sessions": len(registry)}
