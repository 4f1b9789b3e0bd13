# app/backend.py
# =================================================================================
# 🔌 GATEWAY AL BACKEND GESTIONADO (Supabase)
# ---------------------------------------------------------------------------------
# Adaptador fino sobre `supabase.AsyncClient` que expone SOLO el contrato que usa
# la app (lecturas/escrituras relacionales, identidad, storage y realtime) y
# traduce las excepciones del SDK a la taxonomía de app/errors.py.
# - Un gateway (y por lo tanto un cliente) por sesión de navegador.
# - Ninguna llamada se reintenta; los fallos suben al que inició la acción.
# =================================================================================

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterator, Optional, Union

import httpx
from loguru import logger
from supabase import AsyncClient, AuthError, PostgrestAPIError, StorageException, acreate_client

from app.config import Settings
from app.errors import (
    AnonymousDisabled,
    AuthRejected,
    GuestAppError,
    MultipleRowsFound,
    NetworkOrBackendError,
    RowNotFound,
)

Record = dict[str, Any]
RowCallback = Callable[[Record], None]


@dataclass(frozen=True)
class Identity:
    """Identidad resuelta por el servicio de auth."""

    user_id: str
    email: Optional[str] = None
    is_anonymous: bool = False
    metadata: dict = field(default_factory=dict)


def _identity_from_user(user: Any) -> Optional[Identity]:
    if user is None:
        return None
    return Identity(
        user_id=str(user.id),
        email=getattr(user, "email", None) or None,
        is_anonymous=bool(getattr(user, "is_anonymous", False)),
        metadata=dict(getattr(user, "user_metadata", None) or {}),
    )


def _translate_auth_error(exc: AuthError) -> GuestAppError:
    """Mapea errores del servicio de identidad a la taxonomía de la app."""
    code = (getattr(exc, "code", None) or "").lower()
    text = str(getattr(exc, "message", exc)).lower()
    if code == "anonymous_provider_disabled" or "anonymous sign-ins are disabled" in text:
        return AnonymousDisabled()
    if code == "invalid_credentials" or "invalid login" in text:
        return AuthRejected()
    return NetworkOrBackendError(str(getattr(exc, "message", exc)) or None)


@contextmanager
def _backend_errors(action: str) -> Iterator[None]:
    try:
        yield
    except GuestAppError:
        raise
    except AuthError as exc:
        translated = _translate_auth_error(exc)
        logger.info("Auth rechazó '{}': {}", action, type(translated).__name__)
        raise translated from exc
    except (PostgrestAPIError, StorageException, httpx.HTTPError) as exc:
        logger.error("Backend falló en '{}': {}", action, exc)
        raise NetworkOrBackendError() from exc


def extract_record(payload: Any) -> Record:
    """Saca la fila nueva de un evento de realtime (tolera ambos formatos del SDK)."""
    if not isinstance(payload, dict):
        return {}
    data = payload.get("data")
    if isinstance(data, dict):
        record = data.get("record") or data.get("new")
        if isinstance(record, dict):
            return record
    for key in ("new", "record"):
        record = payload.get(key)
        if isinstance(record, dict):
            return record
    return {}


class Subscription:
    """Handle cancelable de una suscripción en vivo; `cancel()` es idempotente."""

    def __init__(
        self,
        table: str,
        event: str,
        channel: Any = None,
        remover: Optional[Callable[[Any], Awaitable[Any]]] = None,
    ):
        self.table = table
        self.event = event
        self._channel = channel
        self._remover = remover
        self.active = True

    async def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._remover is None or self._channel is None:
            return
        try:
            await self._remover(self._channel)
        except Exception as exc:  # El canal puede estar ya cerrado por el servidor.
            logger.warning("No se pudo cerrar la suscripción a {}: {}", self.table, exc)


class SupabaseGateway:
    """Fachada async sobre el cliente de Supabase: tablas, auth, storage y realtime."""

    def __init__(self, client: AsyncClient):
        self.client = client

    @classmethod
    async def connect(cls, settings: Settings) -> "SupabaseGateway":
        try:
            client = await acreate_client(settings.supabase_url, settings.supabase_key)
        except Exception as exc:
            logger.error("No se pudo crear el cliente de Supabase: {}", exc)
            raise NetworkOrBackendError() from exc
        return cls(client)

    # 📚 Lecturas relacionales
    # -----------------------------------------------------------------------------
    def _query(
        self,
        table: str,
        columns: str,
        eq: Optional[Record],
        like: Optional[Record],
        order_by: Optional[str],
        descending: bool,
        limit: Optional[int],
    ):
        query = self.client.table(table).select(columns)
        for column, value in (eq or {}).items():
            query = query.eq(column, value)
        for column, pattern in (like or {}).items():
            query = query.like(column, pattern)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit:
            query = query.limit(limit)
        return query

    async def select(
        self,
        table: str,
        columns: str = "*",
        *,
        eq: Optional[Record] = None,
        like: Optional[Record] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Record]:
        with _backend_errors(f"select {table}"):
            res = await self._query(table, columns, eq, like, order_by, descending, limit).execute()
        return list(res.data or [])

    async def select_maybe(self, table: str, columns: str = "*", *, eq: Optional[Record] = None) -> Optional[Record]:
        """Una fila o None; más de una coincidencia es un error distinguible."""
        rows = await self.select(table, columns, eq=eq, limit=2)
        if len(rows) > 1:
            raise MultipleRowsFound()
        return rows[0] if rows else None

    async def select_single(self, table: str, columns: str = "*", *, eq: Optional[Record] = None) -> Record:
        row = await self.select_maybe(table, columns, eq=eq)
        if row is None:
            raise RowNotFound()
        return row

    # ✍️ Escrituras relacionales
    # -----------------------------------------------------------------------------
    async def insert(self, table: str, record: Union[Record, list[Record]]) -> list[Record]:
        with _backend_errors(f"insert {table}"):
            res = await self.client.table(table).insert(record).execute()
        return list(res.data or [])

    async def update(self, table: str, patch: Record, *, eq: Record) -> list[Record]:
        query = self.client.table(table).update(patch)
        for column, value in eq.items():
            query = query.eq(column, value)
        with _backend_errors(f"update {table}"):
            res = await query.execute()
        return list(res.data or [])

    async def upsert(self, table: str, record: Record, *, on_conflict: str = "") -> list[Record]:
        with _backend_errors(f"upsert {table}"):
            res = await self.client.table(table).upsert(record, on_conflict=on_conflict).execute()
        return list(res.data or [])

    # 🔐 Identidad
    # -----------------------------------------------------------------------------
    async def get_session(self) -> Optional[Identity]:
        with _backend_errors("get_session"):
            session = await self.client.auth.get_session()
        return _identity_from_user(session.user) if session else None

    async def sign_in_anonymously(self) -> Identity:
        with _backend_errors("sign_in_anonymously"):
            res = await self.client.auth.sign_in_anonymously()
        identity = _identity_from_user(res.user)
        if identity is None:
            raise AnonymousDisabled()
        return identity

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        with _backend_errors("sign_in_with_password"):
            res = await self.client.auth.sign_in_with_password({"email": email, "password": password})
        identity = _identity_from_user(res.user)
        if identity is None:
            raise AuthRejected()
        return identity

    async def sign_up(self, email: str, password: str) -> Optional[Identity]:
        """Registra la cuenta; None si el backend exige confirmar el email antes de abrir sesión."""
        with _backend_errors("sign_up"):
            res = await self.client.auth.sign_up({"email": email, "password": password})
        if res.user is None or res.session is None:
            return None
        return _identity_from_user(res.user)

    async def sign_in_with_otp(self, email: str, redirect_to: str, data: Optional[Record] = None) -> None:
        options = {"email_redirect_to": redirect_to, "data": data or {}, "should_create_user": True}
        with _backend_errors("sign_in_with_otp"):
            await self.client.auth.sign_in_with_otp({"email": email, "options": options})

    async def verify_email_link(
        self, *, token_hash: Optional[str] = None, auth_code: Optional[str] = None
    ) -> Identity:
        """Completa el magic link (token_hash del template o code del flujo PKCE)."""
        with _backend_errors("verify_email_link"):
            if token_hash:
                res = await self.client.auth.verify_otp({"token_hash": token_hash, "type": "email"})
            elif auth_code:
                res = await self.client.auth.exchange_code_for_session({"auth_code": auth_code})
            else:
                raise AuthRejected("El link de acceso no es válido")
        identity = _identity_from_user(res.user)
        if identity is None:
            raise AuthRejected("El link de acceso expiró")
        return identity

    async def sign_out(self) -> None:
        with _backend_errors("sign_out"):
            await self.client.auth.sign_out()

    # 🖼️ Storage
    # -----------------------------------------------------------------------------
    async def upload(self, bucket: str, path: str, data: bytes, content_type: str = "image/jpeg") -> None:
        with _backend_errors(f"upload {bucket}"):
            await self.client.storage.from_(bucket).upload(path, data, {"content-type": content_type})

    # 📡 Realtime
    # -----------------------------------------------------------------------------
    async def subscribe(self, table: str, event: str, callback: RowCallback) -> Subscription:
        def _on_change(payload: Any) -> None:
            record = extract_record(payload)
            if record:
                callback(record)

        try:
            channel = self.client.channel(f"public:{table}:{event.lower()}")
            channel.on_postgres_changes(event, callback=_on_change, table=table, schema="public")
            await channel.subscribe()
        except Exception as exc:  # El SDK de realtime no tiene una jerarquía de errores estable.
            logger.error("No se pudo suscribir a {} ({}): {}", table, event, exc)
            raise NetworkOrBackendError("No se pudo abrir el canal en vivo") from exc
        logger.debug("Suscripción abierta: {} {}", table, event)
        return Subscription(table, event, channel, self.client.remove_channel)

    async def close(self) -> None:
        try:
            await self.client.remove_all_channels()
        except Exception as exc:
            logger.warning("Error cerrando canales de realtime: {}", exc)
