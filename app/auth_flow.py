# app/auth_flow.py
# =================================================================================
# 🔑 FLUJO DE INVITACIÓN / AUTENTICACIÓN
# ---------------------------------------------------------------------------------
# Máquina de estados del canje de código:
#   AWAITING_CODE -> CODE_VALIDATED -> (ANONYMOUS_OK | EMAIL_REQUIRED)
#                 -> [MAGIC_LINK_SENT] -> PROFILE_READY
# - El código reservado de admin nunca se busca ni se consume.
# - Un código de invitado pasa de "sin usar" a "usado" una sola vez, ligado a un
#   único perfil: el update condicional (invites_crud.mark_used) corre ANTES del
#   alta del perfil; si no cambia ninguna fila, el canje falla con AlreadyUsed.
# - Los fallos de código vuelven a AWAITING_CODE; los de credenciales se quedan
#   en EMAIL_REQUIRED. Nunca se escribe nada cuando el código falla.
# =================================================================================

import enum
import secrets
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlencode

from loguru import logger

from app.backend import Identity, SupabaseGateway
from app.config import Settings
from app.crud import invites_crud, profiles_crud
from app.crud.profiles_crud import _mask_email
from app.errors import (
    AlreadyUsed,
    AnonymousDisabled,
    AuthRejected,
    ConfirmationPending,
    GuestAppError,
    InvalidCode,
    ValidationFailed,
)
from app.models import InviteCode, Segment, UserProfile

MOCK_USER_ID = "mock-user"
MOCK_ADMIN_ID = "mock-admin"
ADMIN_PROFILE_NAME = "Administrador"


class AuthState(str, enum.Enum):
    AWAITING_CODE = "AWAITING_CODE"
    CODE_VALIDATED = "CODE_VALIDATED"
    ANONYMOUS_OK = "ANONYMOUS_OK"
    EMAIL_REQUIRED = "EMAIL_REQUIRED"
    MAGIC_LINK_SENT = "MAGIC_LINK_SENT"
    PROFILE_READY = "PROFILE_READY"


class AuthFlow:
    """Estado del canje de un navegador. `backend=None` significa modo demo."""

    def __init__(self, backend: Optional[SupabaseGateway], settings: Settings, session_id: str = ""):
        self.backend = backend
        self.settings = settings
        self.session_id = session_id
        self.reset()

    # 🧭 Estado
    # -----------------------------------------------------------------------------
    def reset(self) -> None:
        """Vuelve a la pantalla de código descartando la invitación validada."""
        self.state = AuthState.AWAITING_CODE
        self.invite: Optional[InviteCode] = None
        self.identity: Optional[Identity] = None
        self.profile: Optional[UserProfile] = None
        self.email: Optional[str] = None
        self.error: Optional[str] = None
        self.link_nonce: Optional[str] = None     # Identifica el link enviado; no es el id de la sesión.

    @property
    def mock(self) -> bool:
        return self.backend is None

    @property
    def is_sentinel(self) -> bool:
        return self.invite is not None and self.invite.code == self.settings.admin_invite_code

    def _fail(self, state: AuthState, exc: GuestAppError) -> None:
        self.state = state
        self.error = exc.message
        logger.info("Auth: {} -> {} ({})", type(exc).__name__, state.value, exc.message)

    # 🎟️ Código
    # -----------------------------------------------------------------------------
    async def validate_code(self, raw: Optional[str]) -> InviteCode:
        """Resuelve el código a una invitación sin usar. No escribe nada."""
        code = invites_crud.normalize_code(raw)
        if not code:
            raise InvalidCode("Ingresá tu código")
        if code == self.settings.admin_invite_code:
            return InviteCode(code=code, segment=Segment.ADMIN)     # Invitación virtual, sin lookup.
        if self.mock:
            return InviteCode(code=code, segment=Segment.YOUNG)
        invite = await invites_crud.get_invite(self.backend, code)
        if invite is None:
            raise InvalidCode()
        if invite.is_used:
            raise AlreadyUsed()
        return invite

    async def submit_code(self, raw: Optional[str]) -> AuthState:
        self.error = None
        try:
            self.invite = await self.validate_code(raw)
        except GuestAppError as exc:
            self.invite = None
            self._fail(AuthState.AWAITING_CODE, exc)
            raise
        self.state = AuthState.CODE_VALIDATED

        if self.mock:
            user_id = MOCK_ADMIN_ID if self.is_sentinel else MOCK_USER_ID
            await self._enter(Identity(user_id=user_id, is_anonymous=True))
            return self.state

        if self.is_sentinel:
            # El admin siempre se identifica con email + contraseña.
            self.state = AuthState.EMAIL_REQUIRED
            return self.state

        try:
            identity = await self.backend.get_session() or await self.backend.sign_in_anonymously()
        except AnonymousDisabled:
            logger.info("Sesión anónima deshabilitada; se pide email para {}", self.invite.code)
            self.state = AuthState.EMAIL_REQUIRED
            return self.state
        except GuestAppError as exc:
            self._fail(AuthState.AWAITING_CODE, exc)
            raise
        self.state = AuthState.ANONYMOUS_OK
        await self._enter(identity)
        return self.state

    # 📧 Email / contraseña
    # -----------------------------------------------------------------------------
    async def submit_email(self, email: Optional[str], password: Optional[str] = None) -> AuthState:
        if self.invite is None or self.state not in (AuthState.EMAIL_REQUIRED, AuthState.MAGIC_LINK_SENT):
            raise ValidationFailed("Primero ingresá tu código")
        self.error = None
        email = (email or "").strip().lower()
        try:
            if not email or "@" not in email:
                raise ValidationFailed("Ingresá tu email")
            if self.is_sentinel:
                return await self._admin_password(email, password)
        except GuestAppError as exc:
            self._fail(AuthState.EMAIL_REQUIRED, exc)
            raise

        if self.mock:
            await self._enter(Identity(user_id=MOCK_USER_ID, email=email))
            return self.state

        try:
            self.invite = await self.validate_code(self.invite.code)     # Pudo activarse mientras tanto.
        except GuestAppError as exc:
            self._fail(AuthState.AWAITING_CODE, exc)
            raise

        nonce = secrets.token_urlsafe(16)
        redirect_to = f"{self.settings.api_public_url}/api/auth/callback?{urlencode({'link': nonce})}"
        try:
            await self.backend.sign_in_with_otp(email, redirect_to, {"invite_code": self.invite.code})
        except GuestAppError as exc:
            self._fail(AuthState.EMAIL_REQUIRED, exc)
            raise
        self.email = email
        self.link_nonce = nonce                   # Un reenvío invalida el link anterior.
        self.state = AuthState.MAGIC_LINK_SENT
        logger.info("Magic link enviado a {} (código {}, sesión {})", _mask_email(email), self.invite.code, self.session_id)
        return self.state

    async def _admin_password(self, email: str, password: Optional[str]) -> AuthState:
        if not password:
            raise ValidationFailed("Ingresá una contraseña")
        if self.mock:
            await self._enter(Identity(user_id=MOCK_ADMIN_ID, email=email))
            return self.state
        try:
            identity = await self.backend.sign_in_with_password(email, password)
        except AuthRejected:
            # Primer ingreso del admin: se registra la cuenta (una sola vez).
            logger.info("Credenciales rechazadas; alta de admin para {}", _mask_email(email))
            identity = await self.backend.sign_up(email, password)
            if identity is None:
                raise ConfirmationPending()
        await self._enter(identity)
        return self.state

    # 🔗 Vuelta del magic link
    # -----------------------------------------------------------------------------
    async def complete_email_link(self, token_hash: Optional[str] = None, auth_code: Optional[str] = None) -> AuthState:
        """Completa el link del email y materializa el perfil del invitado."""
        if self.mock:
            raise ValidationFailed("El modo demo no usa links de acceso")
        self.link_nonce = None                    # Un solo intento por link.
        try:
            identity = await self.backend.verify_email_link(token_hash=token_hash, auth_code=auth_code)
            existing = await profiles_crud.get_profile(self.backend, identity.user_id)
            if existing is None:
                pending = self.invite.code if self.invite else identity.metadata.get("invite_code")
                self.invite = await self.validate_code(pending)
        except GuestAppError as exc:
            self._fail(AuthState.AWAITING_CODE, exc)
            raise
        if existing is not None:
            self.identity = identity
            self.profile = existing
            self.state = AuthState.PROFILE_READY
            return self.state
        await self._enter(identity)
        return self.state

    # 👤 Perfil
    # -----------------------------------------------------------------------------
    async def _enter(self, identity: Identity) -> None:
        try:
            await self.materialize_profile(identity)
        except GuestAppError as exc:
            self._fail(AuthState.AWAITING_CODE, exc)
            raise

    async def materialize_profile(self, identity: Identity) -> UserProfile:
        """Perfil existente gana; si no, alta + consumo único del código de invitado."""
        if self.invite is None:
            raise InvalidCode()
        is_admin = self.invite.segment == Segment.ADMIN
        fresh = UserProfile(
            user_id=identity.user_id,
            name=ADMIN_PROFILE_NAME if is_admin else "",
            segment=self.invite.segment,
            is_celiac=False,
            created_at=datetime.now(timezone.utc),
        )
        if self.mock:
            profile = fresh
        else:
            profile = await profiles_crud.get_profile(self.backend, identity.user_id)
            if profile is None:
                consumes_code = not is_admin and not self.is_sentinel
                if consumes_code and not await invites_crud.mark_used(self.backend, self.invite.code, identity.user_id):
                    # Otro invitado activó el código entre la validación y el alta.
                    logger.warning("Código {} ganado por otra sesión; no se crea perfil para {}", self.invite.code, identity.user_id)
                    raise AlreadyUsed()
                try:
                    profile = await profiles_crud.create_profile(self.backend, fresh)
                except GuestAppError:
                    if consumes_code:
                        await invites_crud.release(self.backend, self.invite.code, identity.user_id)
                    raise
        self.identity = identity
        self.profile = profile
        self.state = AuthState.PROFILE_READY
        logger.info("Perfil listo: {} ({})", profile.user_id, profile.segment.value)
        return profile
