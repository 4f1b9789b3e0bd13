# streamlit_app.py  # App única del portal de invitados (invitado + admin).

# =================================================================================
# 🎉 PORTAL DE INVITADOS • Gemma 15
# ---------------------------------------------------------------------------------
# - Canje del código de invitación (y email / contraseña cuando hace falta).
# - Perfil, asistencia, detalles del evento, fotos y chat del invitado.
# - Panel de admin: códigos, mesas, CSV, moderación de fotos y tema.
# - La UI NO guarda estado propio: dibuja el snapshot que devuelve la API y
#   solo conserva el token de sesión en st.session_state.
# =================================================================================

import html
import os

import pandas as pd
import streamlit as st
from dotenv import load_dotenv

from utils.api_client import ApiClient, ApiError
from utils.ui import ButtonVariant, apply_theme_styles, button, card, demo_banner, show_notice

load_dotenv()

EVENT_TITLE = os.getenv("EVENT_TITLE", "Gemma 15")

st.set_page_config(page_title=EVENT_TITLE, page_icon="🎉", layout="centered")


# 🔌 Sesión con la API
# ---------------------------------------------------------------------------------
def _load_snapshot() -> tuple[ApiClient, dict]:
    """Retoma la sesión del token (o la del magic link) y si no existe crea una nueva."""
    params = st.query_params
    if params.get("session") or params.get("auth_error"):
        if params.get("session"):
            st.session_state["token"] = params.get("session")
        if params.get("auth_error"):  # El link falló: se sigue con la sesión que ya tenía este navegador.
            st.session_state["flash"] = {"kind": "error", "message": params.get("auth_error")}
        st.query_params.clear()

    api = ApiClient(token=st.session_state.get("token"))
    if api.token:
        try:
            return api, api.snapshot()
        except ApiError as e:
            if e.status_code != 401:
                raise
    snapshot = api.create_session()  # Token vencido o primera visita.
    st.session_state["token"] = api.token
    return api, snapshot


@st.cache_data(ttl=300)
def load_options() -> dict:
    return ApiClient().meta_options()


def act(fn, *args, success: str = "", **kwargs) -> None:
    """Ejecuta una acción de la API, guarda el aviso para el próximo render y recarga."""
    try:
        result = fn(*args, **kwargs)
    except ApiError as e:
        st.session_state["flash"] = {"kind": "error", "message": e.message}
    else:
        notice = result.get("notice") if isinstance(result, dict) else None
        if notice:
            st.session_state["flash"] = notice
        elif success:
            st.session_state["flash"] = {"kind": "success", "message": success}
    st.rerun()


try:
    api, snap = _load_snapshot()
except ApiError as e:
    st.error(f"No se pudo conectar con el servidor: {e.message}")
    st.stop()

apply_theme_styles(snap["theme"])
show_notice(snap.get("notice"))
show_notice(st.session_state.pop("flash", None))


# 🔑 Vista: canje de código
# ---------------------------------------------------------------------------------
def render_auth() -> None:
    auth = snap["auth"]
    st.markdown(f'<h1 class="title-script">{html.escape(EVENT_TITLE)}</h1>', unsafe_allow_html=True)
    with st.container(border=True):
        if snap["mock_mode"]:
            demo_banner()

        if auth["state"] == "MAGIC_LINK_SENT":
            st.markdown("### 📩 ¡Revisá tu email!")
            st.write(f"Te enviamos un link de acceso a **{auth.get('magic_link_email') or 'tu email'}**.")
            st.caption("Abrilo desde este mismo dispositivo para entrar a la fiesta.")
            if button("Usar otro email", key="link_back", variant=ButtonVariant.ghost):
                act(api.reset_auth)
            return

        if auth["state"] == "EMAIL_REQUIRED":
            is_admin = auth.get("pending_is_admin")
            st.markdown("### 🔐 Acceso de administrador" if is_admin else "### 📧 Validá tu email")
            st.caption(
                "Ingresá con tu email y contraseña."
                if is_admin
                else f"Tu código **{auth.get('pending_code')}** es válido. Te mandamos un link para entrar."
            )
            with st.form("email_form"):
                email = st.text_input("Email", placeholder="tu@email.com")
                password = st.text_input("Contraseña", type="password") if is_admin else None
                sent = st.form_submit_button("Ingresar" if is_admin else "Enviarme el link", type="primary", use_container_width=True)
            if sent:
                if not email.strip():
                    st.error("Ingresá tu email")
                elif is_admin and not password:
                    st.error("Ingresá una contraseña")
                else:
                    act(api.submit_email, email.strip(), password)
            if button("Volver", key="email_back", variant=ButtonVariant.ghost):
                act(api.reset_auth)
            return

        st.markdown("### 🎟️ Ingresá tu código")
        with st.form("code_form"):
            code = st.text_input("Código de invitación", placeholder="G15-J01")
            sent = st.form_submit_button("Entrar a la fiesta", type="primary", use_container_width=True)
        if sent:
            if not code.strip():
                st.error("Ingresá tu código")
            else:
                act(api.redeem_code, code.strip())


# 🙋 Vista: completar perfil
# ---------------------------------------------------------------------------------
def render_profile_setup() -> None:
    st.markdown('<h2 class="title-script">¡Hola!</h2>', unsafe_allow_html=True)
    st.write("Antes de empezar, contanos quién sos para que Gemma sepa que viniste.")
    with st.form("profile_form"):
        name = st.text_input("Nombre y Apellido", placeholder="Ej: Juan Pérez")
        is_celiac = st.checkbox("Soy Celíaco/a (necesito menú sin TACC)")
        sent = st.form_submit_button("¡Listo, a festejar!", type="primary", use_container_width=True)
    if sent:
        if not name.strip():
            st.error("Ingresá tu nombre")
        else:
            act(api.save_profile, name.strip(), is_celiac)


# 🏠 Vista: home del invitado
# ---------------------------------------------------------------------------------
def _event_card() -> None:
    cfg = snap["event_config"]
    details = snap.get("segment_details") or {}
    with card("La Fiesta", "📍"):
        st.metric("Falta", snap.get("countdown", ""))
        if cfg.get("welcome_message"):
            st.write(cfg["welcome_message"])
        st.write(f"**{cfg.get('location_name', '')}** · {cfg.get('location_address', '')}")
        if details:
            st.write(f"🕑 **Hora:** {details.get('time', '')}  ·  👗 **Dress code:** {details.get('dress_code', '')}")
            if details.get("rules"):
                st.caption(details["rules"])
            if details.get("checklist"):
                st.markdown("**No te olvides:**")
                for item in details["checklist"].split(","):
                    if item.strip():
                        st.markdown(f"- {item.strip()}")
        cols = st.columns(2)
        if cfg.get("location_maps_url"):
            cols[0].link_button("Cómo llegar", cfg["location_maps_url"], use_container_width=True)
        if cfg.get("spotify_playlist_url"):
            cols[1].link_button("🎵 Sugerí canciones", cfg["spotify_playlist_url"], use_container_width=True)


def _rsvp_card() -> None:
    rsvp = snap.get("rsvp") or {}
    with card("Asistencia", "✅"):
        if rsvp.get("status") == "CONFIRMED":
            st.success("¡Confirmado!")
            if button("Cambiar", key="rsvp_change", variant=ButtonVariant.ghost):
                act(api.update_rsvp, "DECLINED")
        else:
            st.caption("¿Venís a la fiesta?")
            if button("¡Sí, voy!", key="rsvp_yes", variant=ButtonVariant.success):
                act(api.update_rsvp, "CONFIRMED")
            if button("No puedo :(", key="rsvp_no", variant=ButtonVariant.ghost):
                act(api.update_rsvp, "DECLINED")


def _photo_card() -> None:
    with card("Subí tu Foto", "📸"):
        upload = st.file_uploader("Será parte del show", type=["jpg", "jpeg", "png", "webp", "heic"])
        if upload is not None and button("Enviar foto", key="photo_send"):
            act(api.upload_photo, upload.name, upload.getvalue(), upload.type or "image/jpeg")


def _chat_card() -> None:
    me = (snap.get("user") or {}).get("user_id")
    with card("Chat Invitados", "💬"):
        with st.container(height=320):
            for msg in snap.get("messages", []):
                author = html.escape(((msg.get("profiles") or {}).get("name")) or "?")
                text = html.escape(msg.get("text", ""))
                css = "chat-line mine" if msg.get("user_id") == me else "chat-line"
                st.markdown(
                    f'<div class="{css}"><span class="chat-bubble"><span class="chat-author">{author}</span>{text}</span></div>',
                    unsafe_allow_html=True,
                )
        with st.form("chat_form", clear_on_submit=True):
            cols = st.columns([5, 1])
            text = cols[0].text_input("Mensaje", placeholder="Escribí un mensaje...", label_visibility="collapsed")
            sent = cols[1].form_submit_button("➤")
        if sent and text.strip():
            act(api.send_message, text.strip())
        if button("Actualizar chat", key="chat_refresh", variant=ButtonVariant.ghost):
            st.rerun()


def _gallery_card() -> None:
    photos = snap.get("public_photos", [])
    if not photos:
        return
    with card("Galería", "🖼️"):
        cols = st.columns(3)
        for i, photo in enumerate(photos[:9]):
            name = (photo.get("profiles") or {}).get("name") or ""
            cols[i % 3].image(photo.get("url"), caption=name, use_container_width=True)


def render_home() -> None:
    user = snap.get("user") or {}
    head = st.columns([3, 1, 1])
    first = (user.get("name") or "").split(" ")[0]
    head[0].markdown(f"## Hola, {html.escape(first)} 👋")
    if snap.get("is_admin"):
        with head[1]:
            if button("Admin", key="go_admin", variant=ButtonVariant.secondary):
                act(api.enter_admin)
    with head[2]:
        if button("Salir", key="logout", variant=ButtonVariant.ghost):
            try:
                api.logout()
            except ApiError as e:
                st.session_state["flash"] = {"kind": "error", "message": e.message}
            st.session_state.pop("token", None)
            st.rerun()
    if snap["mock_mode"]:
        demo_banner()

    _event_card()
    cols = st.columns(2)
    with cols[0]:
        _rsvp_card()
    with cols[1]:
        _photo_card()
    _chat_card()
    _gallery_card()


# 🛠️ Vista: panel de admin
# ---------------------------------------------------------------------------------
def _guests_tab(options: dict) -> None:
    with card("Generar Códigos (Incremental)", "➕"):
        with st.form("invite_form"):
            cols = st.columns(2)
            count = cols[0].selectbox("Cantidad", options.get("invite_batch_sizes", [10, 50, 100]))
            segment = cols[1].selectbox("Segmento", options.get("segments", ["YOUNG", "ADULT"]))
            sent = st.form_submit_button("Generar", type="primary", use_container_width=True)
        if sent:
            try:
                result = api.generate_invites(segment, int(count))
            except ApiError as e:
                show_notice({"kind": "error", "message": e.message})
            else:
                show_notice(result.get("notice"))
                codes = [c["code"] for c in result.get("codes", [])]
                if codes:
                    st.code("\n".join(codes))

    try:
        guests = api.guests().get("guests", [])
    except ApiError as e:
        st.error(e.message)
        return

    with card(f"Invitados ({len(guests)})", "👥"):
        rows = [
            {
                "Nombre": g.get("name"),
                "Código": (g.get("invite") or {}).get("code") or "N/A",
                "Segmento": g.get("segment"),
                "Celíaco": "SI" if g.get("is_celiac") else "NO",
                "Mesa": g.get("table") or "-",
            }
            for g in guests
        ]
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
        try:
            csv_bytes = api.guests_csv()
        except ApiError:
            csv_bytes = b""
        st.download_button(
            "⬇️ Descargar CSV",
            data=csv_bytes,
            file_name="lista_gemma15.csv",
            mime="text/csv",
            disabled=not csv_bytes,
        )

        if guests:
            with st.form("table_form"):
                labels = {g["user_id"]: f"{g.get('name') or g['user_id']} (mesa {g.get('table') or '-'})" for g in guests}
                user_id = st.selectbox("Invitado", list(labels), format_func=labels.get)
                table = st.text_input("Mesa")
                sent = st.form_submit_button("Asignar mesa")
            if sent:
                act(api.update_table, user_id, table)


def _photos_tab() -> None:
    try:
        data = api.photos()
    except ApiError as e:
        st.error(e.message)
        return
    photos = data.get("photos", [])
    st.caption(f"Pendientes: {data.get('pending_count', 0)}")
    if not photos:
        st.info("Todavía no hay fotos.")
        return
    cols = st.columns(3)
    for i, photo in enumerate(photos):
        with cols[i % 3]:
            name = (photo.get("profiles") or {}).get("name") or ""
            st.image(photo.get("url"), caption=f"{name} · {photo.get('status')}", use_container_width=True)
            if button("Aprobar", key=f"ok_{photo['id']}", variant=ButtonVariant.success):
                act(api.moderate_photo, photo["id"], "APPROVED")
            if button("Rechazar", key=f"no_{photo['id']}", variant=ButtonVariant.danger):
                act(api.moderate_photo, photo["id"], "REJECTED")


def _theme_tab(options: dict) -> None:
    theme = snap["theme"]
    with st.form("theme_form"):
        cols = st.columns(5)
        colors = {
            key: cols[i].color_picker(label, theme.get(key))
            for i, (key, label) in enumerate(
                [
                    ("color_bg", "Fondo"),
                    ("color_card", "Tarjetas"),
                    ("color_text", "Texto"),
                    ("color_primary", "Primario"),
                    ("color_accent", "Acento"),
                ]
            )
        }
        font = st.text_input("Tipografía", theme.get("font_family", ""))
        levels = options.get("motion_levels", ["low", "medium", "high"])
        current = theme.get("motion_level", "medium")
        motion = st.selectbox("Movimiento", levels, index=levels.index(current) if current in levels else 0)
        sent = st.form_submit_button("Guardar tema", type="primary", use_container_width=True)
    if sent:
        act(api.update_theme, {**colors, "font_family": font, "motion_level": motion})


def render_admin() -> None:
    head = st.columns([3, 1])
    head[0].markdown("## Admin Panel")
    with head[1]:
        if button("Volver a Home", key="admin_exit", variant=ButtonVariant.ghost):
            act(api.exit_admin)
    try:
        options = load_options()
    except ApiError:
        options = {}
    tabs = st.tabs(["Invitados & Mesas", "Fotos", "Tema"])
    with tabs[0]:
        _guests_tab(options)
    with tabs[1]:
        _photos_tab()
    with tabs[2]:
        _theme_tab(options)


# 🧭 Router de vistas
# ---------------------------------------------------------------------------------
VIEWS = {
    "AUTH": render_auth,
    "PROFILE_SETUP": render_profile_setup,
    "HOME": render_home,
    "ADMIN": render_admin,
}

VIEWS.get(snap.get("view"), render_auth)()
