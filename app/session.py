# app/session.py
# =================================================================================
# 🧠 CONTROLADOR DE SESIÓN (estado de la app de un navegador)
# ---------------------------------------------------------------------------------
# Cada navegador tiene un SessionController que:
# - Es el ÚNICO dueño de AppState; la UI solo recibe copias (snapshot()).
# - Expone transiciones con nombre: login, logout, receive_message, theme_update.
# - Carga los datos del invitado y abre las suscripciones en vivo (chat + tema),
#   que se cierran siempre antes de recargar y al cerrar sesión.
# - Aplica el mismo paso de reconciliación a toda escritura: aplicar local,
#   escribir una vez, conservar si sale bien o volver atrás + aviso si falla.
# En modo demo (backend=None) ninguna operación toca el backend.
# =================================================================================

import asyncio
import copy
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from loguru import logger
from pydantic import ValidationError

from app.auth_flow import AuthFlow, AuthState
from app.backend import Subscription, SupabaseGateway
from app.config import Settings
from app.crud import profiles_crud
from app.errors import ConfirmationPending, GuestAppError, NotAuthorized, ValidationFailed
from app.mock_data import DEFAULT_THEME, MOCK_EVENT_CONFIG, MOCK_PHOTO_URL, welcome_messages
from app.models import (
    RSVP,
    ChatMessage,
    EventConfig,
    Photo,
    PhotoStatus,
    RsvpStatus,
    Segment,
    SenderProfile,
    ThemeConfig,
    UserProfile,
    View,
)
from app.storage import build_photo_path, public_url

NETWORK_ERROR_NOTICE = "Error de red: No se pudo guardar"


class NoticeKind(str, enum.Enum):
    success = "success"
    error = "error"
    info = "info"


@dataclass
class Notice:
    kind: NoticeKind
    message: str


@dataclass
class AppState:
    mock_mode: bool = True
    view: View = View.AUTH
    user: Optional[UserProfile] = None
    is_admin: bool = False
    event_config: EventConfig = field(default_factory=lambda: MOCK_EVENT_CONFIG.model_copy(deep=True))
    theme: ThemeConfig = field(default_factory=lambda: DEFAULT_THEME.model_copy(deep=True))
    rsvp: Optional[RSVP] = None
    messages: list = field(default_factory=list)
    public_photos: list = field(default_factory=list)
    notice: Optional[Notice] = None
    auth_state: AuthState = AuthState.AWAITING_CODE
    auth_error: Optional[str] = None
    pending_code: Optional[str] = None
    pending_is_admin: bool = False
    magic_link_email: Optional[str] = None


class SessionController:
    def __init__(self, settings: Settings, backend: Optional[SupabaseGateway] = None, session_id: str = ""):
        self.settings = settings
        self.backend = backend
        self.session_id = session_id
        self.flow = AuthFlow(backend, settings, session_id)
        self.state = AppState(mock_mode=backend is None)
        self._subscriptions: list[Subscription] = []
        self._tasks: set = set()
        self._provisional_seq = 0
        self._admin = None

    @property
    def mock(self) -> bool:
        return self.backend is None

    @property
    def admin(self):
        """Panel de admin (se crea la primera vez que se usa)."""
        from app.admin_panel import AdminPanel

        if self._admin is None:
            self._admin = AdminPanel(self)
        return self._admin

    # 🔔 Avisos y snapshot
    # -----------------------------------------------------------------------------
    def notify(self, kind: NoticeKind, message: str) -> None:
        self.state.notice = Notice(kind=kind, message=message)

    def take_notice(self) -> Optional[Notice]:
        notice, self.state.notice = self.state.notice, None
        return notice

    def snapshot(self, consume_notice: bool = True) -> AppState:
        """Copia de solo lectura del estado; el aviso se entrega una sola vez."""
        snap = copy.deepcopy(self.state)
        if consume_notice:
            self.state.notice = None
        return snap

    def _require_user(self) -> UserProfile:
        if self.state.user is None:
            raise NotAuthorized("Primero ingresá con tu código")
        return self.state.user

    def _sync_auth(self) -> None:
        flow = self.flow
        self.state.auth_state = flow.state
        self.state.auth_error = flow.error
        self.state.pending_code = flow.invite.code if flow.invite else None
        self.state.pending_is_admin = flow.is_sentinel
        self.state.magic_link_email = flow.email

    # 🚀 Arranque
    # -----------------------------------------------------------------------------
    async def bootstrap(self) -> None:
        """Lee tema y evento (singletons id=1) y retoma una sesión existente."""
        if self.mock:
            self.state.theme = DEFAULT_THEME.model_copy(deep=True)
            self.state.event_config = MOCK_EVENT_CONFIG.model_copy(deep=True)
            return
        try:
            theme_row = await self.backend.select_maybe("theme_config", eq={"id": 1})
            event_row = await self.backend.select_maybe("event_config", eq={"id": 1})
            if theme_row:
                self.state.theme = ThemeConfig.model_validate(theme_row)
            if event_row:
                self.state.event_config = EventConfig.model_validate(event_row)
        except (GuestAppError, ValidationError) as exc:
            logger.warning("No se pudo leer la configuración; se usan valores por defecto: {}", exc)

        try:
            identity = await self.backend.get_session()
            profile = await profiles_crud.get_profile(self.backend, identity.user_id) if identity else None
        except GuestAppError as exc:
            logger.warning("No se pudo verificar la sesión existente: {}", exc.message)
            return
        if profile is not None:
            logger.info("Sesión existente retomada: {}", profile.user_id)
            self.flow.identity = identity
            self.flow.profile = profile
            self.flow.state = AuthState.PROFILE_READY
            self._sync_auth()
            await self.login(profile)

    # 🔑 Auth
    # -----------------------------------------------------------------------------
    async def redeem_code(self, raw: Optional[str]) -> None:
        try:
            await self.flow.submit_code(raw)
        finally:
            self._sync_auth()
        if self.flow.state == AuthState.PROFILE_READY:
            await self.login(self.flow.profile)

    async def submit_email(self, email: Optional[str], password: Optional[str] = None) -> None:
        try:
            await self.flow.submit_email(email, password)
        except ConfirmationPending as exc:
            self.notify(NoticeKind.info, exc.message)
            return
        finally:
            self._sync_auth()
        if self.flow.state == AuthState.MAGIC_LINK_SENT:
            self.notify(NoticeKind.info, "¡Listo! Revisá tu email para ingresar.")
        elif self.flow.state == AuthState.PROFILE_READY:
            await self.login(self.flow.profile)

    async def complete_email_link(self, token_hash: Optional[str] = None, auth_code: Optional[str] = None) -> None:
        try:
            await self.flow.complete_email_link(token_hash=token_hash, auth_code=auth_code)
        finally:
            self._sync_auth()
        await self.login(self.flow.profile)

    def reset_auth(self) -> None:
        self.flow.reset()
        self._sync_auth()

    # 🔁 Transiciones con nombre
    # -----------------------------------------------------------------------------
    async def login(self, profile: UserProfile) -> None:
        self.state.user = profile
        if profile.needs_setup():
            self.state.view = View.PROFILE_SETUP
            return
        self.state.is_admin = profile.segment == Segment.ADMIN
        self.state.view = View.HOME
        await self.load_user_data()

    async def logout(self) -> None:
        await self._release_subscriptions()
        for task in list(self._tasks):
            task.cancel()
        if not self.mock:
            try:
                await self.backend.sign_out()
            except GuestAppError as exc:
                logger.warning("Error cerrando sesión en el backend: {}", exc.message)
        self.flow.reset()
        self._admin = None
        self.state = AppState(
            mock_mode=self.mock,
            event_config=self.state.event_config,
            theme=self.state.theme,
        )
        logger.info("Sesión {} cerrada", self.session_id)

    async def receive_message(self, record: dict) -> Optional[ChatMessage]:
        """Agrega un mensaje entrante (con el perfil del autor); ignora ids repetidos."""
        if self._has_message(record.get("id")):
            return None
        sender = None
        if not self.mock and record.get("user_id"):
            try:
                sender = await profiles_crud.get_sender(self.backend, record["user_id"])
            except GuestAppError as exc:
                logger.warning("No se pudo resolver el autor del mensaje {}: {}", record.get("id"), exc.message)
        try:
            message = ChatMessage.model_validate({**record, "profiles": sender})
        except ValidationError as exc:
            logger.warning("Mensaje entrante inválido descartado: {}", exc)
            return None
        if self._has_message(message.id):  # Pudo llegar la confirmación mientras resolvíamos el autor.
            return None
        self.state.messages.append(message)
        return message

    def theme_update(self, record: dict) -> None:
        try:
            self.state.theme = ThemeConfig.model_validate({**self.state.theme.model_dump(), **record})
        except ValidationError as exc:
            logger.warning("Actualización de tema inválida ignorada: {}", exc)

    # 📥 Carga de datos del invitado
    # -----------------------------------------------------------------------------
    async def load_user_data(self) -> None:
        user = self._require_user()
        await self._release_subscriptions()
        if self.mock:
            self.state.messages = welcome_messages()
            return
        try:
            rsvp_row = await self.backend.select_maybe("rsvps", eq={"user_id": user.user_id})
            self.state.rsvp = RSVP.model_validate(rsvp_row) if rsvp_row else None

            chat_rows = await self.backend.select(
                "chat_messages",
                "*, profiles(name, avatar_url)",
                order_by="created_at",
                descending=True,
                limit=self.settings.chat_history_limit,
            )
            self.state.messages = [ChatMessage.model_validate(r) for r in reversed(chat_rows)]

            photo_rows = await self.backend.select(
                "photos",
                "*, profiles(name)",
                eq={"status": PhotoStatus.APPROVED.value},
                order_by="created_at",
                descending=True,
            )
            self.state.public_photos = [self.with_url(Photo.model_validate(r)) for r in photo_rows]

            self._subscriptions.append(await self.backend.subscribe("chat_messages", "INSERT", self._on_chat_insert))
            self._subscriptions.append(await self.backend.subscribe("theme_config", "UPDATE", self.theme_update))
        except (GuestAppError, ValidationError) as exc:
            logger.error("Error cargando datos de {}: {}", user.user_id, exc)
            self.notify(NoticeKind.error, "No pudimos cargar todos los datos. Probá recargar.")

    def _on_chat_insert(self, record: dict) -> None:
        task = asyncio.get_running_loop().create_task(self.receive_message(record))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _release_subscriptions(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for sub in subscriptions:
            await sub.cancel()

    @property
    def active_subscriptions(self) -> list[Subscription]:
        return [s for s in self._subscriptions if s.active]

    async def close(self) -> None:
        """Libera canales y tareas pendientes (sesión expirada o apagado)."""
        await self._release_subscriptions()
        for task in list(self._tasks):
            task.cancel()
        if self.backend is not None:
            await self.backend.close()

    # ♻️ Reconciliación
    # -----------------------------------------------------------------------------
    async def _reconcile(
        self,
        apply: Callable[[], Any],
        rollback: Callable[[], Any],
        write: Optional[Callable[[], Awaitable[Any]]],
        *,
        ok: Optional[str] = None,
        fail: str = NETWORK_ERROR_NOTICE,
    ) -> bool:
        """Aplica local, escribe una vez; si falla vuelve al último valor confirmado."""
        apply()
        if write is not None:
            try:
                await write()
            except GuestAppError as exc:
                rollback()
                logger.warning("Escritura fallida, se revierte el cambio local: {}", exc.message)
                self.notify(NoticeKind.error, fail)
                return False
        if ok:
            self.notify(NoticeKind.success, ok)
        return True

    # 🃏 Tarjetas del invitado
    # -----------------------------------------------------------------------------
    async def save_profile(self, name: Optional[str], is_celiac: bool = False) -> bool:
        previous = self._require_user()
        name = (name or "").strip()
        if not name:
            raise ValidationFailed("Ingresá tu nombre")
        updated = previous.model_copy(update={"name": name, "is_celiac": bool(is_celiac)})

        def apply():
            self.state.user = updated

        def rollback():
            self.state.user = previous

        write = None
        if not self.mock:
            async def write():
                await profiles_crud.update_profile(
                    self.backend, previous.user_id, {"name": name, "is_celiac": bool(is_celiac)}
                )

        saved = await self._reconcile(apply, rollback, write, fail="Error guardando perfil")
        if saved and self.state.view == View.PROFILE_SETUP:
            await self.login(updated)
        return saved

    async def update_rsvp(self, status: RsvpStatus, note: Optional[str] = None) -> bool:
        user = self._require_user()
        status = RsvpStatus(status)
        previous = self.state.rsvp
        if note is None and previous is not None:
            note = previous.note
        rsvp = RSVP(user_id=user.user_id, status=status, note=note, updated_at=datetime.now(timezone.utc))

        def apply():
            self.state.rsvp = rsvp

        def rollback():
            self.state.rsvp = previous

        write = None
        if not self.mock:
            async def write():
                await self.backend.upsert("rsvps", rsvp.model_dump(mode="json"), on_conflict="user_id")

        return await self._reconcile(apply, rollback, write, ok="Asistencia actualizada")

    async def upload_photo(self, filename: str, data: bytes, content_type: Optional[str] = None) -> Optional[str]:
        """Sube la foto al bucket y registra la fila PENDING; devuelve la ruta guardada."""
        user = self._require_user()
        if not data:
            raise ValidationFailed("Elegí una foto")
        content_type = content_type or "image/jpeg"
        if not content_type.startswith("image/"):
            raise ValidationFailed("Solo se aceptan imágenes")
        if self.mock:
            self.notify(NoticeKind.success, "Foto subida (Modo Demo)")
            return None

        path = build_photo_path(user.user_id, filename)
        try:
            await self.backend.upload(self.settings.photo_bucket, path, data, content_type)
            await self.backend.insert(
                "photos",
                {"user_id": user.user_id, "storage_path": path, "status": PhotoStatus.PENDING.value, "is_featured": False},
            )
        except GuestAppError as exc:
            logger.error("Error subiendo foto de {}: {}", user.user_id, exc.message)
            self.notify(NoticeKind.error, f"Error: {exc.message}")
            return None
        logger.info("Foto subida: {}", path)
        self.notify(NoticeKind.success, "¡Foto enviada! El admin la revisará.")
        return path

    async def send_message(self, text: Optional[str]) -> Optional[ChatMessage]:
        user = self._require_user()
        text = (text or "").strip()
        if not text:
            return None
        self._provisional_seq -= 1
        provisional = ChatMessage(
            id=self._provisional_seq,  # Ids negativos: nunca chocan con los del backend.
            user_id=user.user_id,
            text=text,
            created_at=datetime.now(timezone.utc),
            profiles=SenderProfile(name=user.name, avatar_url=user.avatar_url),
        )
        confirmed_rows: list = []

        def apply():
            self.state.messages.append(provisional)

        def rollback():
            self._drop_message(provisional.id)

        write = None
        if not self.mock:
            async def write():
                confirmed_rows.extend(
                    await self.backend.insert("chat_messages", {"user_id": user.user_id, "text": text})
                )

        if not await self._reconcile(apply, rollback, write, fail="No se pudo enviar el mensaje"):
            return None

        if self.mock:
            confirmed = provisional.model_copy(update={"id": self._next_local_id()})
        elif confirmed_rows:
            confirmed = ChatMessage.model_validate({**confirmed_rows[0], "profiles": provisional.profiles})
        else:
            return provisional
        self._drop_message(provisional.id)
        if not self._has_message(confirmed.id):
            self.state.messages.append(confirmed)
        return confirmed

    def _has_message(self, message_id: Any) -> bool:
        return message_id is not None and any(m.id == message_id for m in self.state.messages)

    def _drop_message(self, message_id: int) -> None:
        self.state.messages = [m for m in self.state.messages if m.id != message_id]

    def _next_local_id(self) -> int:
        return max((m.id for m in self.state.messages), default=0) + 1

    # 🛠️ Vista de admin
    # -----------------------------------------------------------------------------
    def enter_admin(self) -> None:
        if not self.state.is_admin:
            raise NotAuthorized()
        self.state.view = View.ADMIN

    async def exit_admin(self) -> None:
        if self.state.view != View.ADMIN:
            return
        self.state.view = View.HOME
        await self.load_user_data()

    def with_url(self, photo: Photo) -> Photo:
        """Completa la URL pública de la foto (placeholder en modo demo)."""
        if self.mock:
            return photo.model_copy(update={"url": MOCK_PHOTO_URL})
        url = public_url(self.settings.storage_public_base, self.settings.photo_bucket, photo.storage_path)
        return photo.model_copy(update={"url": url})
