"""
Dashboard API Client
====================
HTTP client for the lab dashboard REST API, plus the fetch -> aggregate ->
filter -> classify flow that turns a collection into a dashboard view.

Example:
    client = DashboardClient("http://localhost:5000")
    client.login("admin@lab.local", "admin")

    view = client.load_view("equipment", {"status": "maintenance-due"})
    print(view.stats["maintenance_due"], view.showing)

Failed requests are not retried; ``load_view`` returns a view with
``error`` set instead of raising.
"""

import os
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from .dashboard import build_view, failed_view, parse_record
from .exceptions import (
    APIError,
    AuthenticationError,
    PermissionDenied,
    NotFoundError,
    ValidationError,
    ConnectionError,
    ServerError,
)

logger = logging.getLogger(__name__)

# dashboard tab -> collection path under /api
COLLECTION_PATHS = {
    "equipment": "equipment",
    "maintenance": "equipment",
    "maintenance_records": "maintenance/records",
    "contacts": "maintenance/contacts",
    "manufacturers": "maintenance/manufacturers",
    "consumables": "consumables",
    "consumable_wish_lists": "consumables/wish-lists",
    "reservations": "reservations",
    "procurement": "procurement/requests",
    "wish_lists": "procurement/wish-lists",
    "documents": "documents",
    "alerts": "alerts",
}

# the maintenance tab is the equipment list seen through its schedule
RECORD_KINDS = {"maintenance": "equipment"}


class DashboardClient:
    """
    Client for the lab dashboard REST API.

    Authentication is the server's session cookie, kept on the
    ``requests.Session`` after ``login``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: int = 30,
        verify_ssl: bool = True,
    ):
        """Initialize the client.

        Args:
            base_url: API server base URL. Defaults to LABDASH_API_URL env var
                     or http://localhost:5000
            timeout: Request timeout in seconds
            verify_ssl: Whether to verify SSL certificates
        """
        self.base_url = (base_url or os.environ.get("LABDASH_API_URL", "http://localhost:5000")).rstrip("/")
        self.timeout = timeout
        self.verify_ssl = verify_ssl

        self.session = requests.Session()
        self.session.headers["Accept"] = "application/json"

    def _build_url(self, path: str) -> str:
        """Build full URL from path."""
        if path.startswith("/"):
            path = path[1:]
        return f"{self.base_url}/{path}"

    def _handle_response(self, response: requests.Response) -> Any:
        """Handle API response and raise appropriate exceptions."""
        try:
            data = response.json()
        except ValueError:
            data = {"message": response.text}

        if 200 <= response.status_code < 300:
            return data

        error_info = data.get("error", {}) if isinstance(data, dict) else {}
        message = error_info.get("message") or (data.get("message") if isinstance(data, dict) else None) or "Unknown error"
        code = error_info.get("code", "ERROR")
        details = error_info.get("details", {})

        if response.status_code == 401:
            raise AuthenticationError(message, code, response.status_code, details)
        elif response.status_code == 403:
            raise PermissionDenied(message, code, response.status_code, details)
        elif response.status_code == 404:
            raise NotFoundError(message, code, response.status_code, details)
        elif response.status_code in (400, 422):
            raise ValidationError(message, code, response.status_code, details)
        elif response.status_code >= 500:
            raise ServerError(message, code, response.status_code, details)
        else:
            raise APIError(message, code, response.status_code, details)

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict] = None,
        json: Optional[Dict] = None,
        **kwargs
    ) -> Any:
        """Make an API request.

        Raises:
            APIError: On API errors
            ConnectionError: On connection errors and timeouts
        """
        url = self._build_url(path)
        logger.debug("%s %s params=%s", method, url, params)

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json,
                timeout=self.timeout,
                verify=self.verify_ssl,
                **kwargs
            )
        except requests.exceptions.ConnectionError as e:
            raise ConnectionError(
                f"Failed to connect to API server at {self.base_url}: {e}",
                code="CONNECTION_ERROR"
            )
        except requests.exceptions.Timeout as e:
            raise ConnectionError(
                f"Request timed out after {self.timeout}s: {e}",
                code="TIMEOUT"
            )
        except requests.exceptions.RequestException as e:
            raise APIError(f"Request failed: {e}", code="REQUEST_ERROR")
        return self._handle_response(response)

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> Any:
        return self.request("GET", path, params=params, **kwargs)

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> Any:
        return self.request("POST", path, json=json, **kwargs)

    def put(self, path: str, json: Optional[Dict] = None, **kwargs) -> Any:
        return self.request("PUT", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> Any:
        return self.request("DELETE", path, **kwargs)

    # --- session ---

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """Open a session; the cookie is kept for later calls."""
        user = self.post("/auth/login", json={"email": email, "password": password})
        logger.info("Logged in to %s as %s", self.base_url, user.get("email"))
        return user

    def logout(self) -> None:
        self.post("/auth/logout")

    def health_check(self) -> Dict[str, Any]:
        return self.get("/health")

    # --- collections ---

    @staticmethod
    def collection_path(kind: str) -> str:
        try:
            return f"/api/{COLLECTION_PATHS[kind]}"
        except KeyError:
            raise ValueError(f"unknown collection: {kind}")

    def list(self, kind: str, **filters) -> List[Dict[str, Any]]:
        """Raw JSON rows of a collection; filters go to the query string."""
        return self.get(self.collection_path(kind), params=filters or None)

    def get_item(self, kind: str, item_id: int) -> Dict[str, Any]:
        return self.get(f"{self.collection_path(kind)}/{item_id}")

    def create(self, kind: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.post(self.collection_path(kind), json=data)

    def update(self, kind: str, item_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.put(f"{self.collection_path(kind)}/{item_id}", json=data)

    def remove(self, kind: str, item_id: int) -> Dict[str, Any]:
        return self.delete(f"{self.collection_path(kind)}/{item_id}")

    def stats(self, kind: str) -> Dict[str, Any]:
        """Tile numbers as computed by the server."""
        return self.get(f"/api/{kind}/stats")

    def fetch(self, kind: str) -> List[Dict[str, Any]]:
        """Whole collection with ISO strings parsed into dates and datetimes."""
        record_kind = RECORD_KINDS.get(kind, kind)
        return [parse_record(record_kind, raw) for raw in self.list(kind)]

    def load_view(self, kind: str, criteria: Optional[Dict[str, Any]] = None, reference: Optional[datetime] = None):
        """Fetch ``kind`` and build its dashboard view locally.

        A failed fetch or an unparseable record gives a view with ``error`` set and ``retry`` true.
        """
        reference = reference or datetime.now().astimezone()
        try:
            items = self.fetch(kind)
        except (APIError, ValueError) as e:
            return failed_view(kind, reference, e, criteria)
        return build_view(kind, items, criteria or {}, reference)

    # --- uploads ---

    def upload_document(self, filename: str, data: bytes, mime_type: str = "application/octet-stream",
                        **fields) -> Dict[str, Any]:
        """Multipart upload to the document repository; ``tags`` may be a list."""
        if isinstance(fields.get("tags"), (list, tuple)):
            fields["tags"] = ",".join(fields["tags"])
        return self.request("POST", "/api/documents", data=fields, files={"file": (filename, data, mime_type)})

    def upload_equipment_image(self, equipment_id: int, filename: str, data: bytes,
                               mime_type: str = "image/jpeg", is_primary: bool = False) -> Dict[str, Any]:
        return self.request(
            "POST", f"/api/equipment/{equipment_id}/images",
            data={"is_primary": "true" if is_primary else "false"},
            files={"file": (filename, data, mime_type)},
        )

    def check_out(self, reservation_id: int, condition: Optional[str] = None, notes: Optional[str] = None):
        return self.post(f"/api/reservations/{reservation_id}/check-out", json={"condition": condition, "notes": notes})

    def check_in(self, reservation_id: int, condition: Optional[str] = None, notes: Optional[str] = None):
        return self.post(f"/api/reservations/{reservation_id}/check-in", json={"condition": condition, "notes": notes})

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
