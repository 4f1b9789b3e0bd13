# tests/test_session.py
# Controlador de sesión: login/logout, carga de datos, suscripciones,
# reconciliación de escrituras y chat.

import asyncio
import dataclasses

import pytest

from app.auth_flow import AuthState
from app.errors import InvalidCode, NotAuthorized, ValidationFailed
from app.models import PhotoStatus, RsvpStatus, Segment, UserProfile, View
from app.mock_data import DEFAULT_THEME, MOCK_EVENT_CONFIG
from app.session import NETWORK_ERROR_NOTICE, NoticeKind, SessionController
from app.sessions import SessionRegistry


def _guest(name="Gemma Pérez", segment=Segment.YOUNG, user_id="u-1"):
    return UserProfile(user_id=user_id, name=name, segment=segment)


def _seed_feed(backend):
    backend.tables["profiles"].append({"user_id": "u-2", "name": "Leo", "segment": "ADULT", "avatar_url": "a.png"})
    for n in range(1, 6):
        backend.tables["chat_messages"].append(
            {"id": n, "user_id": "u-2", "text": f"hola {n}", "created_at": f"2026-03-01T10:0{n}:00+00:00"}
        )
    backend.tables["photos"] += [
        {"id": 1, "user_id": "u-2", "storage_path": "u-2/1_a.png", "status": "APPROVED", "created_at": "2026-03-01T10:00:00+00:00"},
        {"id": 2, "user_id": "u-2", "storage_path": "u-2/2_b.png", "status": "PENDING", "created_at": "2026-03-01T11:00:00+00:00"},
    ]


# =======================
# 🚀 Arranque y login
# =======================


def test_bootstrap_reads_theme_and_event_singletons(controller):
    asyncio.run(controller.bootstrap())

    assert controller.state.theme.color_primary == "#ff00aa"
    assert controller.state.theme.motion_level.value == "high"
    assert controller.state.event_config.location_name == "Salón"
    assert controller.state.view == View.AUTH


def test_bootstrap_resumes_existing_session(controller, fake_backend):
    from app.backend import Identity

    fake_backend.session = Identity(user_id="u-1")
    fake_backend.tables["profiles"].append({"user_id": "u-1", "name": "Gemma", "segment": "YOUNG"})

    asyncio.run(controller.bootstrap())

    assert controller.state.view == View.HOME
    assert controller.state.auth_state == AuthState.PROFILE_READY
    assert len(controller.active_subscriptions) == 2


def test_bootstrap_failure_keeps_defaults(controller, fake_backend):
    fake_backend.fail_on.add("select:theme_config")
    default_primary = controller.state.theme.color_primary

    asyncio.run(controller.bootstrap())

    assert controller.state.theme.color_primary == default_primary


def test_redeem_code_without_name_goes_to_profile_setup(controller, fake_backend):
    asyncio.run(controller.redeem_code("G15-J01"))

    assert controller.state.view == View.PROFILE_SETUP
    assert fake_backend.count("subscribe") == 0

    asyncio.run(controller.save_profile("  Gemma  ", True))

    assert controller.state.view == View.HOME
    assert controller.state.user.name == "Gemma"
    stored = fake_backend.tables["profiles"][0]
    assert stored["name"] == "Gemma"
    assert stored["is_celiac"] is True
    assert len(controller.active_subscriptions) == 2


def test_blank_name_is_rejected(controller):
    asyncio.run(controller.redeem_code("G15-J01"))
    with pytest.raises(ValidationFailed):
        asyncio.run(controller.save_profile("   "))
    assert controller.state.view == View.PROFILE_SETUP


def test_failed_code_exposes_error_in_snapshot(controller):
    with pytest.raises(InvalidCode):
        asyncio.run(controller.redeem_code("NOPE"))
    snap = controller.snapshot()
    assert snap.auth_state == AuthState.AWAITING_CODE
    assert snap.auth_error == "Código inválido"
    assert snap.view == View.AUTH


def test_magic_link_sent_sets_info_notice(fake_backend, online_settings):
    from app.session import SessionController

    fake_backend.anonymous_enabled = False
    controller = SessionController(online_settings, fake_backend, "sid-m")
    asyncio.run(controller.redeem_code("G15-J01"))
    asyncio.run(controller.submit_email("ana@example.com"))

    snap = controller.snapshot()
    assert snap.auth_state == AuthState.MAGIC_LINK_SENT
    assert snap.magic_link_email == "ana@example.com"
    assert snap.notice.kind == NoticeKind.info


# =======================
# 📥 Carga de datos y suscripciones
# =======================


def test_login_loads_latest_messages_in_ascending_order(controller, fake_backend, online_settings):
    _seed_feed(fake_backend)
    controller.settings = dataclasses.replace(online_settings, chat_history_limit=3)

    asyncio.run(controller.login(_guest()))

    assert [m.id for m in controller.state.messages] == [3, 4, 5]
    assert controller.state.messages[0].profiles.name == "Leo"
    assert [p.id for p in controller.state.public_photos] == [1]
    assert controller.state.public_photos[0].url == (
        "https://demo.supabase.co/storage/v1/object/public/user_photos/u-2/1_a.png"
    )


def test_reload_releases_previous_subscriptions(controller, fake_backend):
    asyncio.run(controller.login(_guest()))
    first = list(controller.active_subscriptions)

    asyncio.run(controller.load_user_data())

    assert all(not s.active for s in first)
    assert len(controller.active_subscriptions) == 2
    assert fake_backend.count("subscribe") == 4


def test_logout_cancels_subscriptions_and_resets_state(controller, fake_backend):
    asyncio.run(controller.bootstrap())
    asyncio.run(controller.login(_guest()))
    subs = list(controller.active_subscriptions)

    asyncio.run(controller.logout())

    assert all(not s.active for s in subs)
    assert controller.active_subscriptions == []
    assert controller.state.user is None
    assert controller.state.view == View.AUTH
    assert controller.state.theme.color_primary == "#ff00aa"
    assert fake_backend.count("sign_out") == 1


def test_loader_failure_becomes_notice(controller, fake_backend):
    fake_backend.fail_on.add("select:chat_messages")

    asyncio.run(controller.login(_guest()))

    assert controller.state.view == View.HOME
    notice = controller.take_notice()
    assert notice.kind == NoticeKind.error
    assert controller.take_notice() is None


def test_realtime_insert_is_appended_once_with_sender(controller, fake_backend):
    fake_backend.tables["profiles"].append({"user_id": "u-2", "name": "Leo", "segment": "ADULT"})

    async def scenario():
        await controller.login(_guest())
        record = {"id": 77, "user_id": "u-2", "text": "llegué", "created_at": "2026-03-14T14:05:00+00:00"}
        fake_backend.emit("chat_messages", "INSERT", record)
        fake_backend.emit("chat_messages", "INSERT", record)
        await asyncio.gather(*list(controller._tasks))

    asyncio.run(scenario())

    incoming = [m for m in controller.state.messages if m.id == 77]
    assert len(incoming) == 1
    assert incoming[0].profiles.name == "Leo"


def test_theme_update_merges_into_current_theme(controller, fake_backend):
    asyncio.run(controller.bootstrap())
    asyncio.run(controller.login(_guest()))

    fake_backend.emit("theme_config", "UPDATE", {"id": 1, "color_primary": "#00ff00"})

    assert controller.state.theme.color_primary == "#00ff00"
    assert controller.state.theme.color_bg == "#000000"


# =======================
# ♻️ Escrituras reconciliadas
# =======================


def test_rsvp_upsert_is_idempotent(controller, fake_backend):
    asyncio.run(controller.login(_guest()))

    asyncio.run(controller.update_rsvp(RsvpStatus.CONFIRMED))
    asyncio.run(controller.update_rsvp(RsvpStatus.CONFIRMED))

    assert len(fake_backend.tables["rsvps"]) == 1
    assert fake_backend.tables["rsvps"][0]["status"] == "CONFIRMED"
    assert controller.take_notice().message == "Asistencia actualizada"


def test_rsvp_failure_rolls_back_to_last_confirmed(controller, fake_backend):
    asyncio.run(controller.login(_guest()))
    asyncio.run(controller.update_rsvp(RsvpStatus.CONFIRMED))
    fake_backend.fail_on.add("upsert:rsvps")

    ok = asyncio.run(controller.update_rsvp(RsvpStatus.DECLINED))

    assert ok is False
    assert controller.state.rsvp.status == RsvpStatus.CONFIRMED
    notice = controller.take_notice()
    assert notice.kind == NoticeKind.error
    assert notice.message == NETWORK_ERROR_NOTICE


def test_rsvp_requires_login(controller):
    with pytest.raises(NotAuthorized):
        asyncio.run(controller.update_rsvp(RsvpStatus.CONFIRMED))


def test_upload_photo_stores_file_and_pending_row(controller, fake_backend):
    asyncio.run(controller.login(_guest()))

    path = asyncio.run(controller.upload_photo("Mi Foto.PNG", b"\x89PNG", "image/png"))

    assert path.startswith("u-1/") and path.endswith("_Mi_Foto.png")
    assert f"user_photos/{path}" in fake_backend.uploads
    row = fake_backend.tables["photos"][-1]
    assert row["status"] == PhotoStatus.PENDING.value
    assert row["storage_path"] == path
    assert controller.take_notice().message == "¡Foto enviada! El admin la revisará."


def test_upload_rejects_non_images(controller, fake_backend):
    asyncio.run(controller.login(_guest()))
    with pytest.raises(ValidationFailed):
        asyncio.run(controller.upload_photo("notas.txt", b"hola", "text/plain"))
    assert fake_backend.count("upload") == 0


def test_upload_failure_becomes_notice(controller, fake_backend):
    asyncio.run(controller.login(_guest()))
    fake_backend.fail_on.add("upload")

    assert asyncio.run(controller.upload_photo("a.jpg", b"x", "image/jpeg")) is None
    assert controller.take_notice().message == "Error: Error de conexión"
    assert fake_backend.count("insert", "photos") == 0


# =======================
# 💬 Chat
# =======================


def test_send_message_replaces_provisional_with_confirmed(controller, fake_backend):
    async def scenario():
        await controller.login(_guest())
        sent = await controller.send_message("  ¡hola!  ")
        # El eco del realtime trae el mismo id: no se duplica.
        fake_backend.emit("chat_messages", "INSERT", fake_backend.tables["chat_messages"][-1])
        await asyncio.gather(*list(controller._tasks))
        return sent

    sent = asyncio.run(scenario())

    assert sent.id > 0
    assert sent.text == "¡hola!"
    assert [m.id for m in controller.state.messages] == [sent.id]
    assert sent.profiles.name == "Gemma Pérez"


def test_blank_message_is_ignored(controller, fake_backend):
    asyncio.run(controller.login(_guest()))
    assert asyncio.run(controller.send_message("   ")) is None
    assert fake_backend.count("insert", "chat_messages") == 0


def test_failed_message_is_removed(controller, fake_backend):
    asyncio.run(controller.login(_guest()))
    fake_backend.fail_on.add("insert:chat_messages")

    assert asyncio.run(controller.send_message("hola")) is None
    assert controller.state.messages == []
    assert controller.take_notice().message == "No se pudo enviar el mensaje"


# =======================
# 🛠️ Vista de admin
# =======================


def test_guest_cannot_enter_admin(controller):
    asyncio.run(controller.login(_guest()))
    with pytest.raises(NotAuthorized):
        controller.enter_admin()


def test_admin_exit_reloads_data(controller, fake_backend):
    asyncio.run(controller.login(_guest(name="Administrador", segment=Segment.ADMIN)))
    controller.enter_admin()
    assert controller.state.view == View.ADMIN

    asyncio.run(controller.exit_admin())

    assert controller.state.view == View.HOME
    assert len(controller.active_subscriptions) == 2
    assert fake_backend.count("subscribe") == 4


# =======================
# ⚡ Modo demo: cero llamadas al backend
# =======================


def test_mock_registry_never_builds_a_backend(mock_settings):
    built = []

    async def factory(cfg):
        built.append(cfg)

    registry = SessionRegistry(mock_settings, backend_factory=factory)

    async def scenario():
        controller = await registry.create()
        await controller.redeem_code("LO-QUE-SEA")
        await controller.save_profile("Gemma")
        await controller.update_rsvp(RsvpStatus.CONFIRMED)
        await controller.send_message("hola demo")
        await controller.upload_photo("a.jpg", b"x", "image/jpeg")
        return controller

    controller = asyncio.run(scenario())

    assert built == []
    assert controller.backend is None
    assert controller.state.view == View.HOME
    assert [m.text for m in controller.state.messages][-1] == "hola demo"
    assert controller.state.messages[-1].id == 2
    assert controller.state.rsvp.status == RsvpStatus.CONFIRMED


def test_snapshot_is_a_copy_and_consumes_notice(mock_controller):
    asyncio.run(mock_controller.redeem_code("X"))
    asyncio.run(mock_controller.save_profile("Gemma"))
    asyncio.run(mock_controller.update_rsvp(RsvpStatus.CONFIRMED))

    snap = mock_controller.snapshot()
    snap.messages.clear()

    assert snap.notice.message == "Asistencia actualizada"
    assert mock_controller.state.notice is None
    assert len(mock_controller.state.messages) == 1


def test_each_session_gets_its_own_theme_and_event(mock_settings):
    first = SessionController(mock_settings, None, "sid-a")
    second = SessionController(mock_settings, None, "sid-b")

    first.state.theme.color_primary = "#00aa00"
    first.state.event_config.location_name = "Otro salón"

    assert second.state.theme.color_primary == DEFAULT_THEME.color_primary == "#ec4899"
    assert second.state.event_config.location_name == MOCK_EVENT_CONFIG.location_name
    assert first.state.theme is not DEFAULT_THEME


# =======================
# 🗂️ Registro de sesiones
# =======================


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_idle_sessions_expire_and_are_closed(mock_settings):
    clock = FakeClock()
    registry = SessionRegistry(dataclasses.replace(mock_settings, session_expire_minutes=1), clock=clock)
    closed = []

    async def scenario():
        old = await registry.create()
        kept = await registry.create()
        async def record_close():
            closed.append(old.session_id)

        old.close = record_close

        clock.now += 45
        assert registry.get(kept.session_id) is kept                     # Renueva su último acceso.
        clock.now += 30
        assert registry.get(old.session_id) is None                      # 75 s sin uso > 60 s.

        assert await registry.sweep() == 1
        return old, kept

    old, kept = asyncio.run(scenario())

    assert closed == [old.session_id]
    assert len(registry) == 1
    assert registry.get(kept.session_id) is kept


def test_create_sweeps_expired_sessions(mock_settings):
    clock = FakeClock()
    registry = SessionRegistry(dataclasses.replace(mock_settings, session_expire_minutes=1), clock=clock)

    async def scenario():
        for _ in range(5):
            await registry.create()
        clock.now += 61
        return await registry.create()

    fresh = asyncio.run(scenario())

    assert len(registry) == 1
    assert registry.get(fresh.session_id) is fresh


def test_magic_link_nonce_resolves_its_session(fake_backend, online_settings):
    fake_backend.anonymous_enabled = False

    async def factory(cfg):
        return fake_backend

    registry = SessionRegistry(online_settings, backend_factory=factory)

    async def scenario():
        controller = await registry.create()
        await controller.redeem_code("G15-J01")
        await controller.submit_email("ana@example.com")
        return controller

    controller = asyncio.run(scenario())
    nonce = controller.flow.link_nonce

    assert nonce and nonce != controller.session_id
    assert registry.find_link(nonce) is controller
    assert registry.find_link(controller.session_id) is None
    assert registry.find_link(None) is None
