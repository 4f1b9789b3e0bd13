# conftest.py
# -------------------------------------------------------------------------------------
# Archivo: conftest.py (raíz del proyecto)
# Propósito: fixtures compartidas de pytest.
#   - Limpia las variables de Supabase ANTES de importar la app (la API arranca
#     siempre en modo demo durante los tests).
#   - FakeBackend: doble en memoria del gateway de Supabase que cuenta cada
#     llamada y permite forzar fallos por operación/tabla.
#   - Settings online/demo y controladores de sesión listos para usar.
# -------------------------------------------------------------------------------------

import os

for _var in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_KEY", "VITE_SUPABASE_URL", "VITE_SUPABASE_ANON_KEY"):
    os.environ.pop(_var, None)

import copy
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from app.backend import Identity, Subscription
from app.config import Settings
from app.errors import AnonymousDisabled, AuthRejected, MultipleRowsFound, NetworkOrBackendError, RowNotFound
from app.session import SessionController

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
UNIQUE_KEYS = {"invites": "code", "profiles": "user_id", "rsvps": "user_id"}


class FakeBackend:
    """Doble en memoria con la misma interfaz que SupabaseGateway."""

    def __init__(self, tables: Optional[dict] = None, anonymous_enabled: bool = True, confirm_signups: bool = False):
        self.tables = defaultdict(list, {k: [dict(r) for r in v] for k, v in (tables or {}).items()})
        self.anonymous_enabled = anonymous_enabled
        self.confirm_signups = confirm_signups
        self.session: Optional[Identity] = None
        self.accounts: dict = {}
        self.links: dict = {}
        self.otp_sent: list = []
        self.uploads: dict = {}
        self.subscriptions: list = []
        self.calls: list = []
        self.fail_on: set = set()
        self._seq = 0

    # --- Helpers de test ---
    def _record(self, op: str, table: Optional[str] = None) -> None:
        self.calls.append((op, table))
        if op in self.fail_on or f"{op}:{table}" in self.fail_on:
            raise NetworkOrBackendError()

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def count(self, op: str, table: Optional[str] = None) -> int:
        return sum(1 for o, t in self.calls if o == op and (table is None or t == table))

    @property
    def writes(self) -> list:
        return [c for c in self.calls if c[0] in ("insert", "update", "upsert", "upload")]

    def issue_link(self, email: str, invite_code: Optional[str] = None) -> str:
        """Simula el email del magic link: devuelve el token_hash que trae el link."""
        token = f"hash-{self._next()}"
        self.links[token] = Identity(
            user_id=f"email-{email}", email=email, metadata={"invite_code": invite_code} if invite_code else {}
        )
        return token

    def emit(self, table: str, event: str, record: dict) -> int:
        delivered = 0
        for t, e, callback, sub in self.subscriptions:
            if t == table and e == event and sub.active:
                callback(dict(record))
                delivered += 1
        return delivered

    @staticmethod
    def _matches(row: dict, eq: Optional[dict], like: Optional[dict]) -> bool:
        for column, value in (eq or {}).items():
            if row.get(column) != value:
                return False
        for column, pattern in (like or {}).items():
            if not str(row.get(column, "")).startswith(pattern.rstrip("%")):
                return False
        return True

    def _join_profiles(self, row: dict, columns: str) -> dict:
        if "profiles(" not in columns:
            return row
        profile = next((p for p in self.tables["profiles"] if p.get("user_id") == row.get("user_id")), None)
        row["profiles"] = {"name": profile.get("name"), "avatar_url": profile.get("avatar_url")} if profile else None
        return row

    # --- Relacional ---
    async def select(self, table, columns="*", *, eq=None, like=None, order_by=None, descending=False, limit=None):
        self._record("select", table)
        rows = [copy.deepcopy(r) for r in self.tables[table] if self._matches(r, eq, like)]
        if order_by:
            rows.sort(key=lambda r: str(r.get(order_by) or ""), reverse=descending)
        if limit:
            rows = rows[:limit]
        return [self._join_profiles(r, columns) for r in rows]

    async def select_maybe(self, table, columns="*", *, eq=None):
        rows = await self.select(table, columns, eq=eq, limit=2)
        if len(rows) > 1:
            raise MultipleRowsFound()
        return rows[0] if rows else None

    async def select_single(self, table, columns="*", *, eq=None):
        row = await self.select_maybe(table, columns, eq=eq)
        if row is None:
            raise RowNotFound()
        return row

    async def insert(self, table, record):
        self._record("insert", table)
        created = []
        for item in record if isinstance(record, list) else [record]:
            row = dict(item)
            key = UNIQUE_KEYS.get(table)
            if key and any(r.get(key) == row.get(key) for r in self.tables[table]):
                raise NetworkOrBackendError("duplicate key value violates unique constraint")
            if table in ("chat_messages", "photos"):
                row.setdefault("id", 100 + self._next())
            row.setdefault("created_at", (BASE_TIME + timedelta(minutes=self._next())).isoformat())
            self.tables[table].append(row)
            created.append(copy.deepcopy(row))
        return created

    async def update(self, table, patch, *, eq):
        self._record("update", table)
        updated = []
        for row in self.tables[table]:
            if self._matches(row, eq, None):
                row.update(patch)
                updated.append(copy.deepcopy(row))
        return updated

    async def upsert(self, table, record, *, on_conflict=""):
        self._record("upsert", table)
        key = on_conflict or "id"
        for row in self.tables[table]:
            if row.get(key) == record.get(key):
                row.update(record)
                return [copy.deepcopy(row)]
        self.tables[table].append(dict(record))
        return [dict(record)]

    # --- Identidad ---
    async def get_session(self):
        self._record("get_session")
        return self.session

    async def sign_in_anonymously(self):
        self._record("sign_in_anonymously")
        if not self.anonymous_enabled:
            raise AnonymousDisabled()
        self.session = Identity(user_id=f"anon-{self._next()}", is_anonymous=True)
        return self.session

    async def sign_in_with_password(self, email, password):
        self._record("sign_in_with_password")
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise AuthRejected()
        self.session = account["identity"]
        return self.session

    async def sign_up(self, email, password):
        self._record("sign_up")
        if email in self.accounts:
            raise NetworkOrBackendError("User already registered")
        identity = Identity(user_id=f"user-{self._next()}", email=email)
        self.accounts[email] = {"password": password, "identity": identity}
        if self.confirm_signups:
            return None
        self.session = identity
        return identity

    async def sign_in_with_otp(self, email, redirect_to, data=None):
        self._record("sign_in_with_otp")
        self.otp_sent.append({"email": email, "redirect_to": redirect_to, "data": dict(data or {})})

    async def verify_email_link(self, *, token_hash=None, auth_code=None):
        self._record("verify_email_link")
        identity = self.links.pop(token_hash or auth_code or "", None)
        if identity is None:
            raise AuthRejected("El link de acceso expiró")
        self.session = identity
        return identity

    async def sign_out(self):
        self._record("sign_out")
        self.session = None

    # --- Storage / realtime ---
    async def upload(self, bucket, path, data, content_type="image/jpeg"):
        self._record("upload", bucket)
        self.uploads[f"{bucket}/{path}"] = (data, content_type)

    async def subscribe(self, table, event, callback):
        self._record("subscribe", table)
        sub = Subscription(table, event)
        self.subscriptions.append((table, event, callback, sub))
        return sub

    async def close(self):
        pass


def seed_tables() -> dict:
    return {
        "invites": [
            {"code": "G15-J01", "segment": "YOUNG", "is_used": False, "used_by": None},
            {"code": "G15-J02", "segment": "YOUNG", "is_used": True, "used_by": "someone"},
            {"code": "G15-A01", "segment": "ADULT", "is_used": False, "used_by": None},
        ],
        "theme_config": [
            {
                "id": 1,
                "font_family": "Inter, sans-serif",
                "color_bg": "#000000",
                "color_card": "#111111",
                "color_text": "#ffffff",
                "color_primary": "#ff00aa",
                "color_accent": "#8b5cf6",
                "motion_level": "high",
            }
        ],
        "event_config": [
            {
                "id": 1,
                "event_date": "2026-03-14T14:00:00-01:00",
                "location_name": "Salón",
                "time_young": "14:00",
                "time_adult": "19:00",
                "dress_code_young": "Semi-formal",
                "dress_code_adult": "Elegante Sport",
            }
        ],
    }


@pytest.fixture
def online_settings() -> Settings:
    return Settings(supabase_url="https://demo.supabase.co", supabase_key="anon-key", mock_mode=False)


@pytest.fixture
def mock_settings() -> Settings:
    return Settings(mock_mode=True)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend(seed_tables())


@pytest.fixture
def controller(online_settings, fake_backend) -> SessionController:
    return SessionController(online_settings, fake_backend, "sid-test")


@pytest.fixture
def mock_controller(mock_settings) -> SessionController:
    return SessionController(mock_settings, None, "sid-demo")
