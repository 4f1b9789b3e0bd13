# app/routers/guest.py  # Router de las tarjetas del invitado.

# =================================================================================
# 👤 Router: Endpoints del Invitado
# ---------------------------------------------------------------------------------
# Rutas PROTEGIDAS (token de sesión con perfil listo) para:
# - Completar el perfil (nombre + celíaco).
# - Confirmar asistencia (RSVP).
# - Subir fotos para moderación.
# - Leer y enviar mensajes del chat.
# =================================================================================

from fastapi import APIRouter, Depends, File, UploadFile
from loguru import logger

from app.core.security import require_user
from app.errors import ValidationFailed
from app.schemas import ChatIn, ChatOut, NoticeOut, ProfileIn, RsvpIn, SessionSnapshot
from app.session import SessionController

router = APIRouter(prefix="/api/guest", tags=["guest"])

MAX_PHOTO_BYTES = 10 * 1024 * 1024


@router.post("/profile", response_model=SessionSnapshot)
async def save_profile(payload: ProfileIn, controller: SessionController = Depends(require_user)):
    await controller.save_profile(payload.name, payload.is_celiac)
    return SessionSnapshot.from_state(controller.snapshot())


@router.post("/rsvp", response_model=SessionSnapshot)
async def update_rsvp(payload: RsvpIn, controller: SessionController = Depends(require_user)):
    await controller.update_rsvp(payload.status, payload.note)
    return SessionSnapshot.from_state(controller.snapshot())


@router.post("/photos", response_model=SessionSnapshot)
async def upload_photo(
    file: UploadFile = File(...),
    controller: SessionController = Depends(require_user),
):
    data = await file.read(MAX_PHOTO_BYTES + 1)
    if len(data) > MAX_PHOTO_BYTES:
        logger.warning("Foto rechazada por tamaño ({} bytes)", len(data))
        raise ValidationFailed("La foto supera los 10 MB")
    await controller.upload_photo(file.filename or "foto", data, file.content_type)
    return SessionSnapshot.from_state(controller.snapshot())


@router.get("/chat", response_model=ChatOut)
def list_chat(controller: SessionController = Depends(require_user)):
    return ChatOut(messages=controller.state.messages, notice=NoticeOut.from_notice(controller.take_notice()))


@router.post("/chat", response_model=ChatOut)
async def send_chat(payload: ChatIn, controller: SessionController = Depends(require_user)):
    await controller.send_message(payload.text)
    return ChatOut(messages=controller.state.messages, notice=NoticeOut.from_notice(controller.take_notice()))
