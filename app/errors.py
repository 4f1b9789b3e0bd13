# app/errors.py
# =================================================================================
# 🚨 TAXONOMÍA DE ERRORES DE LA APP
# ---------------------------------------------------------------------------------
# Todos los fallos que llegan al usuario heredan de GuestAppError y traen:
# - `message`: texto corto y legible para mostrar en la UI.
# - `status_code`: código HTTP con el que la API lo devuelve.
# Ninguno es fatal: la acción que los inicia los captura, los registra y la UI
# vuelve al formulario que los disparó.
# =================================================================================

from typing import Optional


class GuestAppError(Exception):
    """Base de los errores visibles para el invitado."""

    status_code: int = 400
    default_message: str = "Ocurrió un error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCode(GuestAppError):
    status_code = 404
    default_message = "Código inválido"


class AlreadyUsed(GuestAppError):
    status_code = 409
    default_message = "Este código ya fue activado. Ingresá con tu email."


class AuthRejected(GuestAppError):
    status_code = 401
    default_message = "Email o contraseña incorrectos"


class AnonymousDisabled(GuestAppError):
    """El backend no acepta sesiones anónimas; dispara el paso de email (no se muestra)."""

    status_code = 403
    default_message = "Necesitamos validar tu email"


class ConfirmationPending(GuestAppError):
    status_code = 202
    default_message = "Verificá tu email."


class ValidationFailed(GuestAppError):
    status_code = 422
    default_message = "Revisá los datos ingresados"


class NotAuthorized(GuestAppError):
    status_code = 403
    default_message = "No tenés permiso para esta acción"


class RateLimited(GuestAppError):
    status_code = 429
    default_message = "Demasiados intentos. Probá de nuevo en un minuto."


class NetworkOrBackendError(GuestAppError):
    """Cualquier fallo inesperado del backend o de la red."""

    status_code = 502
    default_message = "Error de conexión"


class RowNotFound(NetworkOrBackendError):
    """Una lectura de fila única no encontró coincidencias."""

    status_code = 404
    default_message = "No se encontró el registro"


class MultipleRowsFound(NetworkOrBackendError):
    """Una lectura de fila única encontró más de una coincidencia."""

    default_message = "Se esperaba un único registro"
