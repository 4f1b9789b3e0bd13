# app/meta.py  # Router de metadatos para el frontend.

from typing import Any, Dict

from fastapi import APIRouter

from app.config import settings
from app.models import MotionLevel, PhotoStatus, RsvpStatus, Segment

router = APIRouter(prefix="/api/meta", tags=["meta"])

INVITE_BATCH_SIZES = [10, 50, 100]


@router.get("/options")
def get_meta_options() -> Dict[str, Any]:
    """Catálogos cerrados que la UI usa para armar selects y etiquetas."""
    return {
        "event_title": settings.event_title,
        "mock_mode": settings.mock_mode,
        "segments": [s.value for s in Segment if s != Segment.ADMIN],
        "rsvp_statuses": [s.value for s in RsvpStatus],
        "photo_statuses": [s.value for s in PhotoStatus],
        "motion_levels": [m.value for m in MotionLevel],
        "invite_batch_sizes": INVITE_BATCH_SIZES,
        "invite_prefix": settings.invite_code_prefix,
    }
