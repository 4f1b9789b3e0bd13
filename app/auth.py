# app/auth.py  # Tokens de sesión del navegador (JWT).

# =================================================================================
# 🔐 TOKENS DE SESIÓN (JWT)
# ---------------------------------------------------------------------------------
# - La UI guarda un único token opaco; su claim `sub` es el id de la sesión
#   (SessionController) que vive en el servidor.
# - Usa python-jose (jose.jwt) para firmar/decodificar.
# - El token NO es la identidad de Supabase: esa queda dentro del controlador.
# =================================================================================

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from app.config import settings

# 🔒 Validación mínima de config crítica
if not settings.secret_key:
    raise ValueError("SECRET_KEY no está configurado.")
if not settings.algorithm:
    raise ValueError("ALGORITHM no está configurado.")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)                                     # Siempre con zona horaria (UTC).


def _encode(payload: Dict[str, Any]) -> str:
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)  # Firma HS256 por defecto.


def create_access_token(*, subject: str, extra: Optional[Dict[str, Any]] = None) -> str:
    """Crea un token de tipo 'access' para la sesión `subject`."""
    now = _utcnow()
    exp = now + timedelta(minutes=settings.session_expire_minutes)        # Misma vida que la sesión del servidor.
    payload: Dict[str, Any] = {
        "sub": subject,                                                   # Id de la sesión en el registro.
        "type": "access",                                                 # Único tipo de token emitido.
        "iat": int(now.timestamp()),                                      # Emitido (epoch).
        "exp": int(exp.timestamp()),                                      # Vence (epoch).
    }
    if extra:
        payload.update(extra)
    return _encode(payload)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decodifica y exige tipo 'access'. Lanza JWTError/ValueError si no es válido."""
    data = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])  # Verifica firma y exp.
    if data.get("type") != "access":
        raise ValueError("Invalid token type for access token")
    return data


def verify_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Payload si el token es válido (firma + expiración + tipo); None si no."""
    try:
        return decode_access_token(token)
    except (JWTError, ValueError):
        return None                                                       # Token inválido, vencido o de otro tipo.
