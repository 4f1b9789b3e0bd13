# app/admin_panel.py
# =================================================================================
# 🛠️ PANEL DE ADMINISTRACIÓN
# ---------------------------------------------------------------------------------
# Tarjetas del rol admin sobre la sesión actual:
# - Invitados & mesas: listado perfiles + invitación, asignación de mesa, CSV.
# - Generación incremental de códigos por segmento.
# - Moderación de fotos (PENDING -> APPROVED | REJECTED, repetible).
# - Edición del tema (fila única theme_config id=1).
# Toda escritura pasa por la reconciliación del SessionController.
# =================================================================================

from typing import TYPE_CHECKING, Any, Optional

import pandas as pd
from loguru import logger
from pydantic import ValidationError

from app.crud import invites_crud, profiles_crud
from app.errors import GuestAppError, NotAuthorized, ValidationFailed
from app.models import GuestRow, InviteCode, Photo, PhotoStatus, Segment, ThemeConfig
from app.session import NoticeKind

if TYPE_CHECKING:
    from app.session import SessionController

CSV_COLUMNS = ["Nombre", "Código", "Segmento", "Celíaco", "Mesa"]
CSV_FILENAME = "lista_gemma15.csv"
THEME_FIELDS = ("font_family", "color_bg", "color_card", "color_text", "color_primary", "color_accent", "motion_level")


class AdminPanel:
    def __init__(self, controller: "SessionController"):
        self.controller = controller
        self.guests: list[GuestRow] = []
        self.photos: list[Photo] = []
        self.generated: list[InviteCode] = []   # Códigos creados en modo demo.

    @property
    def backend(self):
        return self.controller.backend

    @property
    def mock(self) -> bool:
        return self.controller.mock

    def _check(self) -> None:
        if not self.controller.state.is_admin:
            raise NotAuthorized()

    # 👥 Invitados & mesas
    # -----------------------------------------------------------------------------
    async def list_guests(self) -> list[GuestRow]:
        self._check()
        if self.mock:
            if not self.guests and self.controller.state.user is not None:
                self.guests = [GuestRow.model_validate(self.controller.state.user.model_dump())]
            return self.guests
        try:
            self.guests = await profiles_crud.list_guests(self.backend)
        except GuestAppError as exc:
            logger.error("Error listando invitados: {}", exc.message)
            self.controller.notify(NoticeKind.error, "No se pudo cargar la lista de invitados")
        return self.guests

    async def update_table(self, user_id: str, table: Optional[str]) -> bool:
        self._check()
        if not user_id:
            raise ValidationFailed("Falta el invitado")
        table = (table or "").strip() or None
        previous = list(self.guests)

        def apply():
            self.guests = [g.model_copy(update={"table": table}) if g.user_id == user_id else g for g in previous]

        def rollback():
            self.guests = previous

        write = None
        if not self.mock:
            async def write():
                await profiles_crud.update_profile(self.backend, user_id, {"table": table})

        return await self.controller._reconcile(apply, rollback, write, ok="Mesa actualizada", fail="Error al actualizar")

    def export_guests_csv(self) -> bytes:
        """CSV de la lista actual (Nombre, Código, Segmento, Celíaco, Mesa)."""
        self._check()
        rows = [
            {
                "Nombre": g.name,
                "Código": g.invite.code if g.invite else "N/A",
                "Segmento": g.segment.value,
                "Celíaco": "SI" if g.is_celiac else "NO",
                "Mesa": g.table or "-",
            }
            for g in self.guests
        ]
        df = pd.DataFrame(rows, columns=CSV_COLUMNS)
        return df.to_csv(index=False).encode("utf-8")

    # 🎟️ Códigos
    # -----------------------------------------------------------------------------
    async def generate_invites(self, segment: Segment, count: int) -> list[InviteCode]:
        self._check()
        segment = Segment(segment)
        base = self.controller.settings.invite_code_prefix
        if self.mock:
            codes = invites_crud.allocate_codes(segment, count, [i.code for i in self.generated], base)
            created = [InviteCode(code=c, segment=segment) for c in codes]
            self.generated.extend(created)
            self.controller.notify(NoticeKind.success, f"Simulado: {count} códigos")
            return created
        prefix = invites_crud.prefix_for(segment, base)
        try:
            created = await invites_crud.create_batch(self.backend, segment, count, base)
        except ValidationFailed:
            raise
        except GuestAppError as exc:
            logger.error("Error generando códigos {}: {}", prefix, exc.message)
            self.controller.notify(NoticeKind.error, f"Error generando: {exc.message}")
            return []
        self.controller.notify(NoticeKind.success, f"Generados {len(created)} códigos ({prefix}...)")
        return created

    # 📸 Moderación
    # -----------------------------------------------------------------------------
    async def list_photos(self) -> list[Photo]:
        self._check()
        if self.mock:
            return self.photos
        try:
            rows = await self.backend.select("photos", "*, profiles(name)", order_by="created_at", descending=True)
            self.photos = [self.controller.with_url(Photo.model_validate(r)) for r in rows]
        except (GuestAppError, ValidationError) as exc:
            logger.error("Error listando fotos: {}", exc)
            self.controller.notify(NoticeKind.error, "No se pudieron cargar las fotos")
        return self.photos

    def pending_count(self) -> int:
        return sum(1 for p in self.photos if p.status == PhotoStatus.PENDING)

    async def moderate_photo(self, photo_id: int, status: PhotoStatus) -> bool:
        """Aprueba o rechaza; se puede repetir y el estado final es el último pedido."""
        self._check()
        status = PhotoStatus(status)
        if status == PhotoStatus.PENDING:
            raise ValidationFailed("Elegí aprobar o rechazar")
        previous = list(self.photos)

        def apply():
            self.photos = [p.model_copy(update={"status": status}) if p.id == photo_id else p for p in previous]

        def rollback():
            self.photos = previous

        write = None
        if not self.mock:
            async def write():
                await self.backend.update("photos", {"status": status.value}, eq={"id": photo_id})

        return await self.controller._reconcile(apply, rollback, write)

    # 🎨 Tema
    # -----------------------------------------------------------------------------
    async def update_theme(self, patch: dict[str, Any]) -> bool:
        self._check()
        patch = {k: v for k, v in patch.items() if k in THEME_FIELDS and v is not None}
        if not patch:
            raise ValidationFailed("No hay cambios de tema")
        previous = self.controller.state.theme
        try:
            updated = ThemeConfig.model_validate({**previous.model_dump(), **patch})
        except ValidationError as exc:
            raise ValidationFailed("Valores de tema inválidos") from exc
        patch = {k: getattr(updated, k) for k in patch}
        patch = {k: (v.value if hasattr(v, "value") else v) for k, v in patch.items()}

        def apply():
            self.controller.state.theme = updated

        def rollback():
            self.controller.state.theme = previous

        write = None
        if not self.mock:
            async def write():
                await self.backend.update("theme_config", patch, eq={"id": 1})

        return await self.controller._reconcile(apply, rollback, write, ok="Tema actualizado")
