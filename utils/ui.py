# utils/ui.py
# =============================================================================
# Utilidades de UI compartidas (solo presentación visual, sin lógica de negocio)
# - Estilos globales a partir del tema en vivo (colores, tipografía, movimiento)
# - Variantes de botón cerradas (ButtonVariant) mapeadas a estilos fijos
# - Avisos transitorios (toasts) por tipo y tarjetas con título
# =============================================================================

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

import streamlit as st


# ─────────────────────────────────────────────────────────────────────────────
# 1) Variantes de botón (enumeración cerrada → registro de estilo fijo)
# ─────────────────────────────────────────────────────────────────────────────
class ButtonVariant(str, Enum):
    primary = "primary"
    secondary = "secondary"
    success = "success"
    danger = "danger"
    ghost = "ghost"


@dataclass(frozen=True)
class ButtonStyle:
    background: str
    color: str
    border: str


BUTTON_STYLES: dict[ButtonVariant, ButtonStyle] = {
    ButtonVariant.primary: ButtonStyle("var(--color-primary)", "#FFFFFF", "none"),
    ButtonVariant.secondary: ButtonStyle("var(--color-accent)", "#FFFFFF", "none"),
    ButtonVariant.success: ButtonStyle("#16a34a", "#FFFFFF", "none"),
    ButtonVariant.danger: ButtonStyle("#dc2626", "#FFFFFF", "none"),
    ButtonVariant.ghost: ButtonStyle("transparent", "var(--color-text)", "1px solid rgba(255,255,255,.15)"),
}

# Duración de transiciones por nivel de movimiento del tema.
MOTION_DURATIONS = {"low": "0s", "medium": ".2s", "high": ".4s"}

# Tipo de aviso → icono del toast.
NOTICE_ICONS = {"success": "✅", "error": "⚠️", "info": "📩"}


def _button_css() -> str:
    rules = []
    for variant, style in BUTTON_STYLES.items():
        rules.append(
            f'[class*="st-key-btn-{variant.value}-"] button{{'
            f"background:{style.background} !important; color:{style.color} !important;"
            f"border:{style.border} !important; border-radius:12px !important; font-weight:700 !important;}}"
        )
    return "\n".join(rules)


# ─────────────────────────────────────────────────────────────────────────────
# 2) Estilos globales desde el tema
# ─────────────────────────────────────────────────────────────────────────────
def apply_theme_styles(theme: dict) -> None:
    """Inyecta variables CSS del tema (se vuelve a llamar en cada rerun)."""
    motion = MOTION_DURATIONS.get(theme.get("motion_level", "medium"), ".2s")
    st.markdown(
        f"""
        <style>
          @import url('https://fonts.googleapis.com/css2?family=Inter:wght@300;400;600;800&family=Pacifico&display=swap');
          :root{{
            --color-bg:{theme.get("color_bg", "#0f172a")};
            --color-card:{theme.get("color_card", "#1e293b")};
            --color-text:{theme.get("color_text", "#f8fafc")};
            --color-primary:{theme.get("color_primary", "#ec4899")};
            --color-accent:{theme.get("color_accent", "#8b5cf6")};
            --font-family:{theme.get("font_family", "Inter, sans-serif")};
            --motion:{motion};
          }}
          .stApp{{ background:var(--color-bg); color:var(--color-text); }}
          [data-testid="stHeader"]{{ display:none; }}
          [data-testid="stSidebar"]{{ display:none !important; }}
          html, body, [class*="block-container"]{{ font-family:var(--font-family); }}
          h1, h2, h3{{ color:var(--color-primary) !important; font-weight:800; }}
          .title-script{{ font-family:'Pacifico', cursive; color:var(--color-primary); text-align:center; }}
          [data-testid="stVerticalBlockBorderWrapper"]{{
            background:var(--color-card); border-radius:20px; transition:all var(--motion) ease;
          }}
          .stButton > button{{ transition:all var(--motion) ease !important; }}
          .stButton > button:hover{{ filter:brightness(1.1); }}
          .demo-banner{{
            background:rgba(234,179,8,.2); color:#fef08a; padding:.5rem; border-radius:8px;
            font-size:.8rem; margin-bottom:1rem; text-align:center;
          }}
          .chat-line{{ margin:.25rem 0; }}
          .chat-line.mine{{ text-align:right; }}
          .chat-bubble{{ display:inline-block; padding:.5rem .8rem; border-radius:16px; background:rgba(255,255,255,.06); max-width:80%; }}
          .chat-line.mine .chat-bubble{{ background:var(--color-primary); color:#FFF; }}
          .chat-author{{ font-size:.65rem; font-weight:700; opacity:.7; display:block; }}
          {_button_css()}
        </style>
        """,
        unsafe_allow_html=True,
    )


# ─────────────────────────────────────────────────────────────────────────────
# 3) Componentes
# ─────────────────────────────────────────────────────────────────────────────
def button(
    label: str,
    key: str,
    variant: ButtonVariant = ButtonVariant.primary,
    disabled: bool = False,
) -> bool:
    """st.button con el estilo fijo de la variante (vía la clase st-key-*)."""
    with st.container(key=f"btn-{ButtonVariant(variant).value}-{key}"):
        return st.button(label, key=key, disabled=disabled, use_container_width=True)


def show_notice(notice: Optional[dict]) -> None:
    """Muestra un aviso transitorio (success/error/info)."""
    if not notice or not notice.get("message"):
        return
    st.toast(notice["message"], icon=NOTICE_ICONS.get(notice.get("kind"), "ℹ️"))


def demo_banner() -> None:
    st.markdown('<div class="demo-banner">⚡ Modo Demo Offline Activo</div>', unsafe_allow_html=True)


@contextmanager
def card(title: str, icon: str = "") -> Iterator[None]:
    with st.container(border=True):
        st.markdown(f"#### {icon} {title}".strip())
        yield
