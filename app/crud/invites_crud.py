# app/crud/invites_crud.py                                                    # Ruta del archivo dentro del proyecto.

# =================================================================================
# 🎟️ CRUD de Códigos de Invitación (tabla 'invites').
# - Normaliza y valida el código que escribe el invitado.
# - Genera lotes incrementales G15-J01, G15-J02... por segmento (solo admin).
# - Marca un código como usado UNA sola vez (update condicional is_used=false).
# - Libera el código si el alta del perfil falla después de marcarlo.
# =================================================================================

import re
from typing import Iterable, Optional

from loguru import logger

from app.backend import SupabaseGateway
from app.errors import ValidationFailed
from app.models import InviteCode, Segment

TABLE = "invites"

# Letra que identifica a cada segmento dentro del código (G15-J.., G15-A..).
SEGMENT_LETTER = {
    Segment.YOUNG: "J",
    Segment.ADULT: "A",
}

# ---------------------------------------------------------------------------------
# 🛡️ Helpers puros (sin backend)
# ---------------------------------------------------------------------------------

def normalize_code(raw: Optional[str]) -> str:
    """Recorta espacios y pasa a mayúsculas: ' g15-j01 ' -> 'G15-J01'."""
    return (raw or "").strip().upper()                                    # None o vacío -> "".


def prefix_for(segment: Segment, base: str = "G15") -> str:
    """Prefijo de generación del segmento; ADMIN no es generable."""
    letter = SEGMENT_LETTER.get(Segment(segment))                         # ADMIN no tiene letra.
    if letter is None:
        raise ValidationFailed("No se pueden generar códigos de administrador")
    return f"{base.upper()}-{letter}"


def next_sequence(prefix: str, existing_codes: Iterable[str]) -> int:
    """Siguiente número libre para el prefijo (máximo existente + 1, o 1)."""
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")                 # Solo el número final cuenta.
    numbers = [int(m.group(1)) for m in (pattern.match(c or "") for c in existing_codes) if m]
    return max(numbers) + 1 if numbers else 1


def allocate_codes(segment: Segment, count: int, existing_codes: Iterable[str], base: str = "G15") -> list[str]:
    """Devuelve `count` códigos consecutivos con número de 2 dígitos mínimo (J01..J99, J100..)."""
    if count < 1:
        raise ValidationFailed("La cantidad debe ser al menos 1")
    prefix = prefix_for(segment, base)
    start = next_sequence(prefix, existing_codes)                         # Continúa después del máximo actual.
    return [f"{prefix}{n:02d}" for n in range(start, start + count)]


# ---------------------------------------------------------------------------------
# 🔎 Lecturas
# ---------------------------------------------------------------------------------

async def get_invite(backend: SupabaseGateway, code: str) -> Optional[InviteCode]:
    """Invitación por código exacto, o None si no existe."""
    row = await backend.select_maybe(TABLE, eq={"code": code})            # El código es único en la tabla.
    return InviteCode.model_validate(row) if row else None


async def get_invite_used_by(backend: SupabaseGateway, user_id: str) -> Optional[InviteCode]:
    row = await backend.select_maybe(TABLE, eq={"used_by": user_id})
    return InviteCode.model_validate(row) if row else None


async def list_invites(backend: SupabaseGateway) -> list[InviteCode]:
    return [InviteCode.model_validate(r) for r in await backend.select(TABLE)]


async def codes_with_prefix(backend: SupabaseGateway, prefix: str) -> list[str]:
    rows = await backend.select(TABLE, "code", like={"code": f"{prefix}%"})
    return [r["code"] for r in rows if r.get("code")]


# ---------------------------------------------------------------------------------
# ✍️ Escrituras
# ---------------------------------------------------------------------------------

async def create_batch(backend: SupabaseGateway, segment: Segment, count: int, base: str = "G15") -> list[InviteCode]:
    """Genera e inserta un lote incremental de códigos sin usar."""
    prefix = prefix_for(segment, base)                                    # Falla antes de tocar el backend si es ADMIN.
    existing = await codes_with_prefix(backend, prefix)                   # Vista actual de códigos con ese prefijo.
    codes = allocate_codes(segment, count, existing, base)
    records = [{"code": c, "segment": Segment(segment).value, "is_used": False} for c in codes]
    await backend.insert(TABLE, records)                                  # La unicidad la garantiza el backend.
    logger.info("Generados {} códigos {} ({}..{})", len(codes), prefix, codes[0], codes[-1])
    return [InviteCode.model_validate(r) for r in records]


async def mark_used(backend: SupabaseGateway, code: str, user_id: str) -> bool:
    """Marca el código como usado por `user_id`; False si ya estaba usado (no se pisa)."""
    rows = await backend.update(
        TABLE,
        {"is_used": True, "used_by": user_id},
        eq={"code": code, "is_used": False},                              # Transición única unused -> used.
    )
    if not rows:                                                          # Ninguna fila cambió: alguien ganó la carrera.
        logger.warning("El código {} no se marcó como usado (ya estaba activado)", code)
        return False
    return True


async def release(backend: SupabaseGateway, code: str, user_id: str) -> None:
    """Deshace `mark_used` si el alta del perfil falló (solo si el código sigue siendo de `user_id`)."""
    await backend.update(
        TABLE,
        {"is_used": False, "used_by": None},                              # Vuelve a quedar disponible.
        eq={"code": code, "used_by": user_id},                            # Nunca libera el canje de otro invitado.
    )
    logger.info("Código {} liberado tras fallar el alta del perfil", code)
