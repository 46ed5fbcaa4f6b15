"""Small HTTP client for the Savings Tracker API.

The bearer token is never global state: every request asks the injected
``TokenProvider`` for the current token. When the server answers 401 the
client asks the provider to refresh once and replays the request; a second
401 raises :class:`AuthenticationRequired` so the caller can send the user
back to sign in.

Example::

    tokens = StaticTokenProvider(access_token, refresh=lambda: renew())
    client = SavingsClient("https://savings.example.com", tokens)
    for share in client.list_shares(tracker_id):
        print(share["sharedWithEmail"], share["permission"])
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class TokenProvider(Protocol):
    def get_token(self) -> Optional[str]: ...

    def refresh(self) -> Optional[str]: ...


class StaticTokenProvider:
    """Holds one access token and an optional callable that renews it."""

    def __init__(self, token: Optional[str], refresh: Optional[Callable[[], Optional[str]]] = None) -> None:
        self._token = token
        self._refresh = refresh

    def get_token(self) -> Optional[str]:
        return self._token

    def refresh(self) -> Optional[str]:
        if self._refresh is None:
            return None
        self._token = self._refresh()
        return self._token


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, details: Any = None) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.details = details


class AuthenticationRequired(ApiError):
    pass


class SavingsClient:
    def __init__(
        self,
        base_url: str,
        tokens: TokenProvider,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.tokens = tokens
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self, token: Optional[str]) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _send(self, method: str, path: str, token: Optional[str], **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}/api/{path.lstrip('/')}"
        return self.session.request(method, url, headers=self._headers(token), timeout=self.timeout, **kwargs)

    @staticmethod
    def _error_from(response: requests.Response) -> ApiError:
        try:
            body = response.json()
        except ValueError:
            body = {"error": response.text or f"HTTP {response.status_code}"}
        if not isinstance(body, dict):
            body = {"error": str(body)}
        message = body.get("error") or f"HTTP {response.status_code}"
        cls = AuthenticationRequired if response.status_code == 401 else ApiError
        return cls(response.status_code, message, body.get("details"))

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        response = self._send(method, path, self.tokens.get_token(), params=params, json=json)
        if response.status_code == 401:
            logger.info("Got 401 for %s %s, refreshing token", method, path)
            token = self.tokens.refresh()
            if token:
                response = self._send(method, path, token, params=params, json=json)
        if not response.ok:
            raise self._error_from(response)
        if not response.content:
            return None
        return response.json()

    # ---- trackers

    def list_trackers(self) -> List[Dict[str, Any]]:
        return self.request("GET", "trackers")

    def create_tracker(self, name: Optional[str] = None, description: Optional[str] = None) -> Dict[str, Any]:
        return self.request("POST", "trackers", json={"name": name, "description": description})

    def update_tracker(self, tracker_id: str, name: str, description: Optional[str] = None) -> Dict[str, Any]:
        return self.request("PUT", "trackers", json={"id": tracker_id, "name": name, "description": description})

    def delete_tracker(self, tracker_id: str) -> Dict[str, Any]:
        return self.request("DELETE", "trackers", params={"id": tracker_id})

    def transfer_tracker(
        self,
        tracker_id: str,
        *,
        new_owner_id: Optional[str] = None,
        new_owner_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = {"id": tracker_id, "newOwnerId": new_owner_id, "newOwnerEmail": new_owner_email}
        return self.request("PATCH", "trackers", json=body)

    # ---- shares

    def list_shares(self, tracker_id: str) -> List[Dict[str, Any]]:
        return self.request("GET", "tracker-shares", params={"trackerId": tracker_id})

    def share_tracker(
        self,
        tracker_id: str,
        *,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        permission: str = "read",
    ) -> Dict[str, Any]:
        body = {
            "trackerId": tracker_id,
            "sharedWithUserId": user_id,
            "sharedWithEmail": email,
            "permission": permission,
        }
        return self.request("POST", "tracker-shares", json=body)

    def update_share(self, share_id: str, permission: str) -> Dict[str, Any]:
        return self.request("PUT", "tracker-shares", json={"shareId": share_id, "permission": permission})

    def delete_share(self, share_id: str) -> Dict[str, Any]:
        return self.request("DELETE", "tracker-shares", params={"shareId": share_id})

    def delete_all_shares(self, tracker_id: str) -> Dict[str, Any]:
        return self.request("DELETE", "tracker-shares", params={"trackerId": tracker_id})


__all__ = [
    "ApiError",
    "AuthenticationRequired",
    "SavingsClient",
    "StaticTokenProvider",
    "TokenProvider",
]
