# app/rate_limit.py

# =================================================================================
# 🚦 Rate limit ligero en memoria
# ---------------------------------------------------------------------------------
# - Ventana deslizante en memoria por clave (IP + ruta).
# - Alcanza para un único proceso uvicorn; con varias instancias hace falta un
#   limitador compartido (reverse-proxy o Redis).
# - Se usa para frenar la fuerza bruta de códigos de invitación.
# =================================================================================

import time
from collections import deque
from typing import Callable, Dict

from loguru import logger


class SlidingWindowLimiter:
    """Permite `max_req` intentos por clave dentro de `window_s` segundos."""

    def __init__(self, max_req: int, window_s: int, clock: Callable[[], float] = time.time):
        self.max_req = max_req                                            # Intentos permitidos por ventana.
        self.window_s = window_s                                          # Largo de la ventana en segundos.
        self._clock = clock                                               # Inyectable para los tests.
        self._buckets: Dict[str, deque] = {}                              # clave -> timestamps recientes.

    def is_allowed(self, key: str) -> bool:
        if self.max_req <= 0:  # Límite 0 o negativo = sin límite.
            return True

        bucket = self._buckets.setdefault(key, deque())                   # Bucket de la clave (IP + ruta).
        now = self._clock()                                               # Marca de tiempo actual.

        # Purga timestamps fuera de la ventana [now - window_s, now].
        cutoff = now - self.window_s
        while bucket and bucket[0] <= cutoff:
            bucket.popleft()

        if len(bucket) >= self.max_req:
            logger.warning("Rate limit para '{}' ({}/{} en {}s)", key, len(bucket), self.max_req, self.window_s)
            return False

        bucket.append(now)                                                # Cuenta este intento.
        return True                                                       # Intento permitido.

    def reset(self) -> None:
        self._buckets.clear()                                             # Olvida todos los intentos.
