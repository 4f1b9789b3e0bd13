# app/routers/admin.py  # Router del panel de administración.

# =================================================================================
# 🛠️ Router: Panel de Admin
# ---------------------------------------------------------------------------------
# Rutas PROTEGIDAS (sesión con perfil de segmento ADMIN):
# - Entrar/salir de la vista de admin.
# - Invitados & mesas (listado, CSV, asignación de mesa).
# - Generación incremental de códigos.
# - Moderación de fotos y edición del tema.
# =================================================================================

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.admin_panel import CSV_FILENAME
from app.core.security import require_admin
from app.schemas import (
    GuestListOut,
    InviteBatchIn,
    InviteBatchOut,
    NoticeOut,
    PhotoListOut,
    PhotoStatusIn,
    SessionSnapshot,
    TableIn,
    ThemePatch,
)
from app.session import SessionController

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _notice(controller: SessionController):
    return NoticeOut.from_notice(controller.take_notice())


@router.post("/enter", response_model=SessionSnapshot)
def enter_admin(controller: SessionController = Depends(require_admin)):
    controller.enter_admin()
    return SessionSnapshot.from_state(controller.snapshot())


@router.post("/exit", response_model=SessionSnapshot)
async def exit_admin(controller: SessionController = Depends(require_admin)):
    await controller.exit_admin()
    return SessionSnapshot.from_state(controller.snapshot())


# 👥 Invitados & mesas
# ---------------------------------------------------------------------------------
@router.get("/guests", response_model=GuestListOut)
async def list_guests(controller: SessionController = Depends(require_admin)):
    guests = await controller.admin.list_guests()
    return GuestListOut(guests=guests, notice=_notice(controller))


@router.get("/guests.csv")
async def export_guests(controller: SessionController = Depends(require_admin)):
    await controller.admin.list_guests()
    content = controller.admin.export_guests_csv()
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{CSV_FILENAME}"'},
    )


@router.put("/guests/{user_id}/table", response_model=GuestListOut)
async def update_table(user_id: str, payload: TableIn, controller: SessionController = Depends(require_admin)):
    await controller.admin.update_table(user_id, payload.table)
    return GuestListOut(guests=controller.admin.guests, notice=_notice(controller))


# 🎟️ Códigos
# ---------------------------------------------------------------------------------
@router.post("/invites", response_model=InviteBatchOut)
async def generate_invites(payload: InviteBatchIn, controller: SessionController = Depends(require_admin)):
    codes = await controller.admin.generate_invites(payload.segment, payload.count)
    return InviteBatchOut(codes=codes, notice=_notice(controller))


# 📸 Moderación
# ---------------------------------------------------------------------------------
@router.get("/photos", response_model=PhotoListOut)
async def list_photos(controller: SessionController = Depends(require_admin)):
    photos = await controller.admin.list_photos()
    return PhotoListOut(photos=photos, pending_count=controller.admin.pending_count(), notice=_notice(controller))


@router.put("/photos/{photo_id}/status", response_model=PhotoListOut)
async def moderate_photo(photo_id: int, payload: PhotoStatusIn, controller: SessionController = Depends(require_admin)):
    await controller.admin.moderate_photo(photo_id, payload.status)
    panel = controller.admin
    return PhotoListOut(photos=panel.photos, pending_count=panel.pending_count(), notice=_notice(controller))


# 🎨 Tema
# ---------------------------------------------------------------------------------
@router.patch("/theme", response_model=SessionSnapshot)
async def update_theme(payload: ThemePatch, controller: SessionController = Depends(require_admin)):
    await controller.admin.update_theme(payload.model_dump(exclude_none=True))
    return SessionSnapshot.from_state(controller.snapshot())
