# app/storage.py
# =================================================================================
# 🗃️ UTILIDADES DE OBJECT STORAGE
# ---------------------------------------------------------------------------------
# - Limpia nombres de archivo (solo alfanuméricos, conserva la extensión).
# - Construye rutas únicas por dueño y timestamp: <user_id>/<epoch_ms>_<nombre>.<ext>
# - Construye la URL pública a partir de bucket + ruta.
# =================================================================================

import re
import time
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def sanitize_filename(filename: str) -> tuple[str, str]:
    """Devuelve (nombre_limpio, extensión) para un archivo subido por el invitado."""
    name = (filename or "").strip().replace("\\", "/").split("/")[-1]  # Sin directorios del cliente.
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""
    clean_stem = _NON_ALNUM.sub("_", stem) or "foto"
    clean_ext = _NON_ALNUM.sub("", ext).lower()
    return clean_stem, clean_ext


def build_photo_path(user_id: str, filename: str, now_ms: Optional[int] = None) -> str:
    """Ruta namespaced por dueño y tiempo para evitar colisiones."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    stem, ext = sanitize_filename(filename)
    suffix = f".{ext}" if ext else ""
    return f"{user_id}/{stamp}_{stem}{suffix}"


def public_url(base: str, bucket: str, path: str) -> str:
    """URL pública de un objeto (`base` = <SUPABASE_URL>/storage/v1/object/public)."""
    return f"{base.rstrip('/')}/{bucket}/{path.lstrip('/')}"
