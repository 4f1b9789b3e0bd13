# app/mock_data.py
# =================================================================================
# 🧪 DATOS DEL MODO DEMO OFFLINE
# ---------------------------------------------------------------------------------
# Valores canónicos que se muestran cuando no hay backend configurado y que
# además sirven de fallback si la lectura de configuración online falla.
# =================================================================================

from datetime import datetime, timezone

from app.models import ChatMessage, EventConfig, SenderProfile, ThemeConfig

DEFAULT_THEME = ThemeConfig(
    id=1,
    font_family="Inter, sans-serif",
    color_bg="#0f172a",
    color_card="#1e293b",
    color_text="#f8fafc",
    color_primary="#ec4899",
    color_accent="#8b5cf6",
    motion_level="medium",
)

MOCK_EVENT_CONFIG = EventConfig(
    id=1,
    event_date="2026-03-14T14:00:00-01:00",
    location_name="Espacio de Eventos Mamá Lidia",
    location_address="Roldán, Santa Fé, Argentina",
    location_maps_url="https://maps.app.goo.gl/dqdYRr1XNrJgosyb7",
    time_young="14:00",
    time_adult="19:00",
    spotify_playlist_url="https://open.spotify.com/",
    rules_young="Barra de tragos sin alcohol. Dress code: Semi-formal divertido.",
    rules_adult="Recepción 19hs. Dress code: Elegante Sport.",
    dress_code_young="Semi-formal",
    dress_code_adult="Elegante Sport",
    checklist_young="Traé traje de baño para la Pool-party!, Ropa para la Noche!",
    welcome_message="¡Estás invitado a la mejor noche del año, Gemma 15!",
)

MOCK_PHOTO_URL = "https://via.placeholder.com/300"


def welcome_messages() -> list[ChatMessage]:
    """Historial inicial del chat en modo demo."""
    return [
        ChatMessage(
            id=1,
            user_id="system",
            text="¡Bienvenid@s a la demo offline!",
            created_at=datetime.now(timezone.utc),
            profiles=SenderProfile(name="Bot"),
        )
    ]
