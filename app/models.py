# app/models.py
# =================================================================================
# 🏛️ MODELOS DE DOMINIO (filas del backend)
# ---------------------------------------------------------------------------------
# Las tablas viven en Supabase; aquí solo modelamos las filas que leemos y
# escribimos, con Pydantic v2:
# - Enums `str` para valores cerrados (segmento, estados, vistas).
# - `extra="ignore"` para tolerar columnas nuevas del backend.
# - Helpers de presentación que dependen solo del dato (segmento, cuenta regresiva).
# =================================================================================

import enum
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# 🗂️ ENUMS
# ---------------------------------------------------------------------------------
class Segment(str, enum.Enum):
    YOUNG = "YOUNG"  # Jóvenes (fiesta de la tarde).
    ADULT = "ADULT"  # Adultos (recepción de la noche).
    ADMIN = "ADMIN"


class RsvpStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    DECLINED = "DECLINED"
    PENDING = "PENDING"


class PhotoStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class MotionLevel(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


class View(str, enum.Enum):
    AUTH = "AUTH"
    PROFILE_SETUP = "PROFILE_SETUP"
    HOME = "HOME"
    ADMIN = "ADMIN"


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


# 👤 PERFILES E INVITACIONES
# ---------------------------------------------------------------------------------
class SenderProfile(_Row):
    """Perfil desnormalizado que acompaña a mensajes y fotos."""

    name: Optional[str] = None
    avatar_url: Optional[str] = None


class UserProfile(_Row):
    user_id: str
    name: str = ""
    segment: Segment
    is_celiac: bool = False
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    table: Optional[str] = None  # Mesa asignada por el admin.

    def needs_setup(self) -> bool:
        """Los invitados sin nombre real deben completar su perfil (el admin no)."""
        if self.segment == Segment.ADMIN:
            return False
        name = (self.name or "").strip()
        return not name or name.startswith("Invitado ")

    @property
    def first_name(self) -> str:
        parts = (self.name or "").split()
        return parts[0] if parts else ""


class InviteCode(_Row):
    code: str
    segment: Segment
    is_used: bool = False
    used_by: Optional[str] = None


class GuestRow(UserProfile):
    """Perfil + la invitación que canjeó (vista del panel de admin)."""

    invite: Optional[InviteCode] = None


# 💌 RSVP, CHAT Y FOTOS
# ---------------------------------------------------------------------------------
class RSVP(_Row):
    user_id: str
    status: RsvpStatus = RsvpStatus.PENDING
    note: Optional[str] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChatMessage(_Row):
    id: int
    user_id: str
    text: str
    created_at: Optional[datetime] = None
    profiles: Optional[SenderProfile] = None


class Photo(_Row):
    id: int
    user_id: str
    storage_path: str
    status: PhotoStatus = PhotoStatus.PENDING
    is_featured: bool = False
    created_at: Optional[datetime] = None
    url: Optional[str] = None
    profiles: Optional[SenderProfile] = None


# 🎉 CONFIGURACIÓN DEL EVENTO Y TEMA
# ---------------------------------------------------------------------------------
class SegmentDetails(BaseModel):
    time: str
    dress_code: str
    rules: str
    checklist: Optional[str] = None


class EventConfig(_Row):
    id: int = 1
    event_date: datetime
    location_name: str = ""
    location_address: str = ""
    location_maps_url: str = ""
    time_young: str = ""
    time_adult: str = ""
    spotify_playlist_url: str = ""
    rules_young: str = ""
    rules_adult: str = ""
    dress_code_young: str = ""
    dress_code_adult: str = ""
    checklist_young: str = ""
    welcome_message: str = ""

    def for_segment(self, segment: Segment) -> SegmentDetails:
        """Detalles que ve cada segmento (el admin ve los de adultos)."""
        if segment == Segment.YOUNG:
            return SegmentDetails(
                time=self.time_young,
                dress_code=self.dress_code_young,
                rules=self.rules_young,
                checklist=self.checklist_young or None,
            )
        return SegmentDetails(time=self.time_adult, dress_code=self.dress_code_adult, rules=self.rules_adult)

    def countdown(self, now: Optional[datetime] = None) -> str:
        """Texto tipo '10d 05h 30m' hasta el evento."""
        now = now or datetime.now(timezone.utc)
        target = self.event_date
        if target.tzinfo is None:
            target = target.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        remaining = int((target - now).total_seconds())
        if remaining <= 0:
            return "¡Llegó el día!"
        days, rest = divmod(remaining, 86400)
        hours, rest = divmod(rest, 3600)
        minutes = rest // 60
        return f"{days}d {hours:02d}h {minutes:02d}m"


class ThemeConfig(_Row):
    id: int = 1
    font_family: str = "Inter, sans-serif"
    color_bg: str = "#0f172a"
    color_card: str = "#1e293b"
    color_text: str = "#f8fafc"
    color_primary: str = "#ec4899"
    color_accent: str = "#8b5cf6"
    motion_level: MotionLevel = MotionLevel.medium
