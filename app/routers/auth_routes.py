# app/routers/auth_routes.py  # Router de sesión y autenticación del invitado.

# =================================================================================
# 🔐 Router: Sesión + canje de código + magic link
# ---------------------------------------------------------------------------------
# - /api/session: crea / lee / cierra la sesión del navegador (token Bearer,
#   creación con rate limit por IP).
# - /api/auth/code: canje del código (con rate limit por IP).
# - /api/auth/email: paso de email (magic link) o contraseña (admin).
# - /api/auth/callback: vuelta del link del email; redirige a la UI con token
#   solo si el link se verificó.
# =================================================================================

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from loguru import logger

from app.auth import create_access_token
from app.config import settings
from app.core.security import get_controller, get_registry
from app.errors import GuestAppError, RateLimited
from app.rate_limit import SlidingWindowLimiter
from app.schemas import CodeIn, EmailIn, SessionCreated, SessionSnapshot
from app.session import SessionController
from app.sessions import SessionRegistry

router = APIRouter(prefix="/api", tags=["auth"])

code_limiter = SlidingWindowLimiter(settings.code_rate_limit_max, settings.code_rate_limit_window)
session_limiter = SlidingWindowLimiter(settings.session_rate_limit_max, settings.session_rate_limit_window)


def _client_key(request: Request, route: str) -> str:
    host = request.client.host if request.client else "unknown"
    return f"{host}:{route}"


# 🪪 Sesión del navegador
# ---------------------------------------------------------------------------------
@router.post("/session", response_model=SessionCreated)
async def create_session(request: Request, sessions: SessionRegistry = Depends(get_registry)):
    if not session_limiter.is_allowed(_client_key(request, "/api/session")):
        raise RateLimited()
    controller = await sessions.create()
    token = create_access_token(subject=controller.session_id)
    return SessionCreated(token=token, snapshot=SessionSnapshot.from_state(controller.snapshot()))


@router.get("/session", response_model=SessionSnapshot)
def read_session(controller: SessionController = Depends(get_controller)):
    return SessionSnapshot.from_state(controller.snapshot())


@router.delete("/session", status_code=204)
async def delete_session(
    controller: SessionController = Depends(get_controller),
    sessions: SessionRegistry = Depends(get_registry),
):
    await sessions.drop(controller.session_id)


# 🎟️ Canje de código y email
# ---------------------------------------------------------------------------------
@router.post("/auth/code", response_model=SessionSnapshot)
async def redeem_code(
    payload: CodeIn,
    request: Request,
    controller: SessionController = Depends(get_controller),
):
    if not code_limiter.is_allowed(_client_key(request, "/api/auth/code")):
        raise RateLimited()
    await controller.redeem_code(payload.code)
    return SessionSnapshot.from_state(controller.snapshot())


@router.post("/auth/email", response_model=SessionSnapshot)
async def submit_email(payload: EmailIn, controller: SessionController = Depends(get_controller)):
    await controller.submit_email(payload.email, payload.password)
    return SessionSnapshot.from_state(controller.snapshot())


@router.post("/auth/reset", response_model=SessionSnapshot)
def reset_auth(controller: SessionController = Depends(get_controller)):
    controller.reset_auth()
    return SessionSnapshot.from_state(controller.snapshot())


@router.get("/auth/callback")
async def email_link_callback(
    request: Request,
    link: Optional[str] = Query(default=None, description="Nonce del magic link enviado"),
    token_hash: Optional[str] = None,
    code: Optional[str] = Query(default=None, description="Código PKCE del link"),
    sessions: SessionRegistry = Depends(get_registry),
):
    """Completa el magic link y devuelve al invitado a la UI (con token solo si se verificó)."""
    controller = sessions.find_link(link)
    created = controller is None
    try:
        if created:
            # La sesión original expiró: el código pendiente sale de la metadata del link.
            if not session_limiter.is_allowed(_client_key(request, "/api/session")):
                raise RateLimited()
            logger.info("Callback sin sesión activa; se crea una nueva")
            controller = await sessions.create()
        await controller.complete_email_link(token_hash=token_hash, auth_code=code)
    except GuestAppError as exc:
        logger.warning("Callback de magic link falló: {}", exc.message)
        if created and controller is not None:
            await sessions.drop(controller.session_id)                   # Nadie más conoce esta sesión.
        params = {"auth_error": exc.message}
    else:
        params = {"session": create_access_token(subject=controller.session_id)}
    return RedirectResponse(url=f"{settings.app_public_url}/?{urlencode(params)}", status_code=303)
