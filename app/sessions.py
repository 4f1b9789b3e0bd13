# app/sessions.py
# =================================================================================
# 🗂️ REGISTRO DE SESIONES
# ---------------------------------------------------------------------------------
# Un SessionController por navegador, indexado por un id aleatorio que viaja
# como `sub` del token. Cada controlador recibe su propio cliente de Supabase
# (o ninguno en modo demo), así la identidad nunca se comparte entre invitados.
# - Una sesión sin uso durante SESSION_EXPIRE_MINUTES se descarta (y se cierran
#   su cliente y sus canales) en el siguiente acceso al registro.
# - El link del email se resuelve por su nonce, nunca por el id de la sesión.
# =================================================================================

import time
import uuid
from typing import Awaitable, Callable, Dict, Optional

from loguru import logger

from app.backend import SupabaseGateway
from app.config import Settings, settings
from app.session import SessionController

BackendFactory = Callable[[Settings], Awaitable[SupabaseGateway]]


class SessionRegistry:
    def __init__(
        self,
        settings: Settings,
        backend_factory: Optional[BackendFactory] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self._factory = backend_factory or SupabaseGateway.connect
        self._clock = clock                                               # Inyectable para los tests.
        self.ttl_s = settings.session_expire_minutes * 60                 # Misma vida que el token.
        self._sessions: Dict[str, SessionController] = {}
        self._touched: Dict[str, float] = {}                              # sid -> último acceso.

    def __len__(self) -> int:
        return len(self._sessions)

    def _expired(self, sid: str) -> bool:
        return self._clock() - self._touched.get(sid, 0.0) > self.ttl_s

    async def sweep(self) -> int:
        """Descarta las sesiones vencidas; devuelve cuántas se cerraron."""
        stale = [sid for sid in self._sessions if self._expired(sid)]
        for sid in stale:
            controller = self._sessions.pop(sid)
            self._touched.pop(sid, None)
            await controller.close()
        if stale:
            logger.info("Sesiones vencidas descartadas: {}", len(stale))
        return len(stale)

    async def create(self) -> SessionController:
        await self.sweep()
        sid = uuid.uuid4().hex
        backend = None if self.settings.mock_mode else await self._factory(self.settings)
        controller = SessionController(self.settings, backend, sid)
        self._sessions[sid] = controller
        self._touched[sid] = self._clock()
        await controller.bootstrap()
        logger.info("Sesión {} creada ({})", sid, "demo" if controller.mock else "online")
        return controller

    def get(self, sid: Optional[str]) -> Optional[SessionController]:
        """Controlador vivo para `sid` (renueva su último acceso); None si no existe o venció."""
        if not sid or sid not in self._sessions or self._expired(sid):
            return None
        self._touched[sid] = self._clock()
        return self._sessions[sid]

    def find_link(self, nonce: Optional[str]) -> Optional[SessionController]:
        """Sesión que pidió el magic link identificado por `nonce`."""
        if not nonce:
            return None
        for sid, controller in self._sessions.items():
            if controller.flow.link_nonce == nonce:
                return self.get(sid)
        return None

    async def drop(self, sid: str) -> None:
        controller = self._sessions.pop(sid, None)
        self._touched.pop(sid, None)
        if controller is None:
            return
        await controller.logout()
        await controller.close()

    async def close_all(self) -> None:
        for sid in list(self._sessions):
            controller = self._sessions.pop(sid)
            self._touched.pop(sid, None)
            await controller.close()


registry = SessionRegistry(settings)
