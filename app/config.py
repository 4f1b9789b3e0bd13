# app/config.py
# =================================================================================
# ⚙️ CONFIGURACIÓN Y COMPUERTA DE MODO (MOCK / ONLINE)
# ---------------------------------------------------------------------------------
# Este módulo centraliza la lectura de variables de entorno (.env) y calcula,
# una sola vez, si la app corre contra el backend real (Supabase) o en modo
# demo offline con datos en memoria.
# - La ausencia de URL/clave (o un placeholder) ES la señal de modo demo.
# - No hay camino de error: configurar mal nunca rompe el arranque.
# =================================================================================

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from loguru import logger

load_dotenv(dotenv_path=Path(".") / ".env")  # Carga .env del directorio de trabajo (si existe).

# Valores de ejemplo que aparecen en plantillas .env y en el cliente por defecto.
KNOWN_PLACEHOLDERS = {
    "https://placeholder.supabase.co",
    "placeholder-key",
    "your-supabase-url",
    "your-anon-key",
    "changeme",
}


def _is_placeholder(value: Optional[str]) -> bool:
    """True si el valor está vacío o es claramente un marcador sin resolver."""
    val = (value or "").strip()
    if not val:
        return True
    if val.startswith("${{") and val.endswith("}}"):  # Plantilla de Railway sin resolver.
        logger.warning("Variable de entorno parece un placeholder sin resolver: {}", val)
        return True
    if val.lower() in KNOWN_PLACEHOLDERS:
        return True
    return "placeholder" in val.lower()


def is_mock_mode(url: Optional[str], key: Optional[str]) -> bool:
    """Modo demo si falta (o es placeholder) el endpoint o la clave de acceso."""
    return _is_placeholder(url) or _is_placeholder(key)


def _env(name: str, default: str = "", *aliases: str) -> str:
    """Lee una variable probando alias (p. ej. los nombres VITE_* de un despliegue con Vite)."""
    for candidate in (name, *aliases):
        raw = os.getenv(candidate)
        if raw is not None and raw.strip():
            return raw.strip()
    return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning("Valor inválido para {}; se usa {}", name, default)
        return default


@dataclass(frozen=True)
class Settings:
    supabase_url: str = ""
    supabase_key: str = ""
    admin_invite_code: str = "ADMIN-SETUP"       # Código reservado que crea/entra como admin.
    invite_code_prefix: str = "G15"              # Prefijo base de los códigos generados.
    photo_bucket: str = "user_photos"
    chat_history_limit: int = 50
    api_public_url: str = "http://127.0.0.1:8000"   # Destino del magic link (callback de la API).
    app_public_url: str = "http://localhost:8501"   # UI de Streamlit (redirección tras el callback).
    secret_key: str = "dev_secret"
    algorithm: str = "HS256"
    session_expire_minutes: int = 1440
    code_rate_limit_max: int = 10
    code_rate_limit_window: int = 60
    session_rate_limit_max: int = 30
    session_rate_limit_window: int = 60
    cors_origins: tuple = ("http://localhost:8501", "http://127.0.0.1:8501")
    log_level: str = "INFO"
    event_title: str = "Gemma 15"
    mock_mode: bool = field(default=True)

    @property
    def storage_public_base(self) -> str:
        """Base pública del object storage (sin barra final)."""
        return f"{self.supabase_url.rstrip('/')}/storage/v1/object/public"


def load_settings() -> Settings:
    """Construye Settings desde el entorno y calcula la compuerta de modo."""
    url = _env("SUPABASE_URL", "", "VITE_SUPABASE_URL")
    key = _env("SUPABASE_ANON_KEY", "", "VITE_SUPABASE_ANON_KEY", "SUPABASE_KEY")
    origins = tuple(
        o.strip() for o in _env("CORS_ORIGINS", "http://localhost:8501,http://127.0.0.1:8501").split(",") if o.strip()
    )
    return Settings(
        supabase_url=url,
        supabase_key=key,
        admin_invite_code=_env("ADMIN_INVITE_CODE", "ADMIN-SETUP").upper(),
        invite_code_prefix=_env("INVITE_CODE_PREFIX", "G15").upper(),
        photo_bucket=_env("PHOTO_BUCKET", "user_photos"),
        chat_history_limit=_env_int("CHAT_HISTORY_LIMIT", 50),
        api_public_url=_env("API_PUBLIC_URL", "http://127.0.0.1:8000").rstrip("/"),
        app_public_url=_env("APP_PUBLIC_URL", "http://localhost:8501").rstrip("/"),
        secret_key=_env("SECRET_KEY", "dev_secret"),
        algorithm=_env("ALGORITHM", "HS256"),
        session_expire_minutes=_env_int("SESSION_EXPIRE_MINUTES", 1440),
        code_rate_limit_max=_env_int("CODE_RATE_LIMIT_MAX", 10),
        code_rate_limit_window=_env_int("CODE_RATE_LIMIT_WINDOW", 60),
        session_rate_limit_max=_env_int("SESSION_RATE_LIMIT_MAX", 30),
        session_rate_limit_window=_env_int("SESSION_RATE_LIMIT_WINDOW", 60),
        cors_origins=origins,
        log_level=_env("LOG_LEVEL", "INFO").upper(),
        event_title=_env("EVENT_TITLE", "Gemma 15"),
        mock_mode=is_mock_mode(url, key),
    )


settings = load_settings()  # Instancia única usada por la API.
