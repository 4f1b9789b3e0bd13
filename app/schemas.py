# app/schemas.py  # Esquemas Pydantic de entrada/salida de la API.

# =================================================================================
# 📦 Schemas (MODELOS DE DATOS Pydantic)
# ---------------------------------------------------------------------------------
# - Validan lo que manda la UI (código, email, RSVP, chat, acciones de admin).
# - Serializan el snapshot de la sesión que la UI dibuja.
# - Pydantic v2: field_validator y ConfigDict.
# =================================================================================

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.auth_flow import AuthState
from app.models import (
    RSVP,
    ChatMessage,
    EventConfig,
    GuestRow,
    InviteCode,
    MotionLevel,
    Photo,
    PhotoStatus,
    RsvpStatus,
    Segment,
    SegmentDetails,
    ThemeConfig,
    UserProfile,
    View,
)
from app.session import AppState, Notice, NoticeKind


def _strip(value: Optional[str]) -> Optional[str]:
    return value.strip() if isinstance(value, str) else value


# =================================================================================
# 📥 Entradas
# =================================================================================
class CodeIn(BaseModel):
    code: str = ""


class EmailIn(BaseModel):
    email: EmailStr
    password: Optional[str] = None


class ProfileIn(BaseModel):
    name: str
    is_celiac: bool = False

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return _strip(v)


class RsvpIn(BaseModel):
    status: RsvpStatus
    note: Optional[str] = Field(default=None, max_length=500)


class ChatIn(BaseModel):
    text: str = Field(default="", max_length=1000)


class InviteBatchIn(BaseModel):
    segment: Segment
    count: int = Field(default=10, ge=1, le=500)


class TableIn(BaseModel):
    table: Optional[str] = Field(default=None, max_length=50)

    @field_validator("table", mode="before")
    @classmethod
    def strip_table(cls, v):
        return _strip(v) or None


class PhotoStatusIn(BaseModel):
    status: PhotoStatus


class ThemePatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    font_family: Optional[str] = None
    color_bg: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    color_card: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    color_text: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    color_primary: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    color_accent: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    motion_level: Optional[MotionLevel] = None


# =================================================================================
# 📤 Salidas
# =================================================================================
class NoticeOut(BaseModel):
    kind: NoticeKind
    message: str

    @classmethod
    def from_notice(cls, notice: Optional[Notice]) -> Optional["NoticeOut"]:
        return cls(kind=notice.kind, message=notice.message) if notice else None


class AuthOut(BaseModel):
    state: AuthState
    error: Optional[str] = None
    pending_code: Optional[str] = None
    pending_is_admin: bool = False
    magic_link_email: Optional[str] = None


class SessionSnapshot(BaseModel):
    """Todo lo que la UI necesita para dibujar la vista actual."""

    view: View
    mock_mode: bool
    auth: AuthOut
    user: Optional[UserProfile] = None
    is_admin: bool = False
    event_config: EventConfig
    segment_details: Optional[SegmentDetails] = None
    countdown: str = ""
    theme: ThemeConfig
    rsvp: Optional[RSVP] = None
    messages: List[ChatMessage] = []
    public_photos: List[Photo] = []
    notice: Optional[NoticeOut] = None

    @classmethod
    def from_state(cls, state: AppState) -> "SessionSnapshot":
        details = state.event_config.for_segment(state.user.segment) if state.user else None
        return cls(
            view=state.view,
            mock_mode=state.mock_mode,
            auth=AuthOut(
                state=state.auth_state,
                error=state.auth_error,
                pending_code=state.pending_code,
                pending_is_admin=state.pending_is_admin,
                magic_link_email=state.magic_link_email,
            ),
            user=state.user,
            is_admin=state.is_admin,
            event_config=state.event_config,
            segment_details=details,
            countdown=state.event_config.countdown(),
            theme=state.theme,
            rsvp=state.rsvp,
            messages=state.messages,
            public_photos=state.public_photos,
            notice=NoticeOut.from_notice(state.notice),
        )


class SessionCreated(BaseModel):
    token: str
    token_type: str = "bearer"
    snapshot: SessionSnapshot


class ChatOut(BaseModel):
    messages: List[ChatMessage]
    notice: Optional[NoticeOut] = None


class GuestListOut(BaseModel):
    guests: List[GuestRow]
    notice: Optional[NoticeOut] = None


class InviteBatchOut(BaseModel):
    codes: List[InviteCode]
    notice: Optional[NoticeOut] = None


class PhotoListOut(BaseModel):
    photos: List[Photo]
    pending_count: int = 0
    notice: Optional[NoticeOut] = None
