# utils/api_client.py
# =============================================================================
# Cliente HTTP de la UI hacia la API (requests)
# - Un único token Bearer por navegador (el de la sesión del servidor).
# - Los errores de la API llegan como ApiError con el mensaje listo para mostrar.
# =============================================================================

import os
from typing import Any, Optional

import requests
from dotenv import load_dotenv

load_dotenv()

API_BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:8000").rstrip("/")
CONNECTION_ERROR = "Error de conexión"


class ApiError(Exception):
    def __init__(self, message: str, status_code: int = 0):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _detail(resp: requests.Response) -> str:
    """Extrae el mensaje de error ({"detail": ...}); FastAPI manda listas en los 422."""
    try:
        data = resp.json()
    except ValueError:
        return f"{CONNECTION_ERROR} (HTTP {resp.status_code})"
    detail = (data or {}).get("detail") if isinstance(data, dict) else None
    if isinstance(detail, list):
        msgs = [str(d.get("msg", "")) for d in detail if isinstance(d, dict)]
        return "Revisá los datos ingresados: " + "; ".join(m for m in msgs if m)
    return str(detail) if detail else f"{CONNECTION_ERROR} (HTTP {resp.status_code})"


class ApiClient:
    def __init__(self, token: Optional[str] = None, base_url: str = API_BASE_URL, timeout: int = 12):
        self.token = token
        self.base_url = base_url
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            resp = requests.request(
                method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.exceptions.RequestException:
            raise ApiError(CONNECTION_ERROR)
        if resp.status_code >= 400:
            raise ApiError(_detail(resp), resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return None
        if resp.headers.get("content-type", "").startswith("text/csv"):
            return resp.content
        return resp.json()

    # --- Sesión y auth ---
    def create_session(self) -> dict:
        data = self._request("POST", "/api/session")
        self.token = data["token"]
        return data["snapshot"]

    def snapshot(self) -> dict:
        return self._request("GET", "/api/session")

    def logout(self) -> None:
        self._request("DELETE", "/api/session")
        self.token = None

    def redeem_code(self, code: str) -> dict:
        return self._request("POST", "/api/auth/code", json={"code": code})

    def submit_email(self, email: str, password: Optional[str] = None) -> dict:
        return self._request("POST", "/api/auth/email", json={"email": email, "password": password})

    def reset_auth(self) -> dict:
        return self._request("POST", "/api/auth/reset")

    # --- Invitado ---
    def save_profile(self, name: str, is_celiac: bool) -> dict:
        return self._request("POST", "/api/guest/profile", json={"name": name, "is_celiac": is_celiac})

    def update_rsvp(self, status: str) -> dict:
        return self._request("POST", "/api/guest/rsvp", json={"status": status})

    def upload_photo(self, filename: str, data: bytes, content_type: str) -> dict:
        files = {"file": (filename, data, content_type)}
        return self._request("POST", "/api/guest/photos", files=files)

    def chat(self) -> dict:
        return self._request("GET", "/api/guest/chat")

    def send_message(self, text: str) -> dict:
        return self._request("POST", "/api/guest/chat", json={"text": text})

    # --- Admin ---
    def enter_admin(self) -> dict:
        return self._request("POST", "/api/admin/enter")

    def exit_admin(self) -> dict:
        return self._request("POST", "/api/admin/exit")

    def guests(self) -> dict:
        return self._request("GET", "/api/admin/guests")

    def guests_csv(self) -> bytes:
        return self._request("GET", "/api/admin/guests.csv")

    def generate_invites(self, segment: str, count: int) -> dict:
        return self._request("POST", "/api/admin/invites", json={"segment": segment, "count": count})

    def update_table(self, user_id: str, table: str) -> dict:
        return self._request("PUT", f"/api/admin/guests/{user_id}/table", json={"table": table})

    def photos(self) -> dict:
        return self._request("GET", "/api/admin/photos")

    def moderate_photo(self, photo_id: int, status: str) -> dict:
        return self._request("PUT", f"/api/admin/photos/{photo_id}/status", json={"status": status})

    def update_theme(self, patch: dict) -> dict:
        return self._request("PATCH", "/api/admin/theme", json=patch)

    def meta_options(self) -> dict:
        return self._request("GET", "/api/meta/options")
