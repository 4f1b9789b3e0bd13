# app/core/security.py
# Dependencias de FastAPI que resuelven el token Bearer a la sesión del navegador.
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.auth import verify_access_token
from app.session import SessionController
from app.sessions import SessionRegistry, registry

_bearer = HTTPBearer(auto_error=False)


def get_registry() -> SessionRegistry:
    return registry


async def get_controller(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer),
    sessions: SessionRegistry = Depends(get_registry),
) -> SessionController:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Falta el token de sesión")
    await sessions.sweep()                                                # Cierra las sesiones vencidas.
    payload = verify_access_token(credentials.credentials)
    controller = sessions.get(payload.get("sub")) if payload else None
    if controller is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sesión inválida o expirada",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return controller


def require_user(controller: SessionController = Depends(get_controller)) -> SessionController:
    if controller.state.user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Primero ingresá con tu código")
    return controller


def require_admin(controller: SessionController = Depends(require_user)) -> SessionController:
    if not controller.state.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No tenés permiso para esta acción")
    return controller
