# app/crud/profiles_crud.py                                                   # Ruta del archivo dentro del proyecto.

# =================================================================================
# 👤 CRUD de Perfiles (tabla 'profiles').
# - Lectura por user_id y del perfil público (nombre + avatar) de un remitente.
# - Alta del perfil en el primer canje del código.
# - Listado combinado perfiles + invitación canjeada para el panel de admin.
# =================================================================================

from typing import Any, Optional

from loguru import logger

from app.backend import SupabaseGateway
from app.models import GuestRow, InviteCode, SenderProfile, UserProfile

TABLE = "profiles"


def _mask_email(email: Optional[str]) -> str:
    """Enmascara un email para no exponer PII en logs. 'test@example.com' -> 'te**@example.com'."""
    if not email:
        return "<empty>"                                                  # Nada que enmascarar.
    if "@" not in email:
        return f"{email[:2]}***"
    user, domain = email.split("@", 1)                                    # Se conserva el dominio completo.
    return f"{user[:2]}{'*' * max(len(user) - 2, 0)}@{domain}"


async def get_profile(backend: SupabaseGateway, user_id: str) -> Optional[UserProfile]:
    row = await backend.select_maybe(TABLE, eq={"user_id": user_id})      # Un perfil por usuario de auth.
    return UserProfile.model_validate(row) if row else None


async def get_sender(backend: SupabaseGateway, user_id: str) -> Optional[SenderProfile]:
    """Nombre y avatar del autor de un mensaje (None si no tiene perfil)."""
    row = await backend.select_maybe(TABLE, "name, avatar_url", eq={"user_id": user_id})  # Solo columnas públicas.
    return SenderProfile.model_validate(row) if row else None


async def create_profile(backend: SupabaseGateway, profile: UserProfile) -> UserProfile:
    record = profile.model_dump(mode="json", exclude_none=True)           # Fechas ISO; sin claves nulas.
    await backend.insert(TABLE, record)
    logger.info("Perfil creado: {} ({})", profile.user_id, profile.segment.value)
    return profile


async def update_profile(backend: SupabaseGateway, user_id: str, patch: dict[str, Any]) -> None:
    await backend.update(TABLE, patch, eq={"user_id": user_id})


async def list_guests(backend: SupabaseGateway) -> list[GuestRow]:
    """Perfiles + la invitación que cada uno canjeó (por used_by), más nuevos primero."""
    profiles = await backend.select(TABLE)
    invites = await backend.select("invites")
    by_user = {i["used_by"]: InviteCode.model_validate(i) for i in invites if i.get("used_by")}  # used_by -> invitación.
    guests = [GuestRow.model_validate({**p, "invite": by_user.get(p.get("user_id"))}) for p in profiles]
    guests.sort(key=lambda g: g.created_at.isoformat() if g.created_at else "", reverse=True)  # Más nuevos primero.
    return guests
