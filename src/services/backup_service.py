"""
Remote backup of cases and reports to a Supabase (PostgREST) table
"""

import logging
from typing import Any, Dict, Optional

import httpx

from utils.errors import NotFoundError, RemoteError

logger = logging.getLogger(__name__)


class SupabaseBackupClient:
    """
    One backup row per user: {user_id, data}. Upload replaces the row
    wholesale, download fetches it wholesale. Failures are not retried.
    """

    def __init__(
        self,
        base_url: Optional[str],
        anon_key: Optional[str],
        table: str = "user_backups",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.anon_key = anon_key
        self.table = table
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.anon_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def _headers(self, access_token: Optional[str]) -> Dict[str, str]:
        return {
            "apikey": self.anon_key or "",
            "Authorization": f"Bearer {access_token or self.anon_key}",
            "Content-Type": "application/json",
        }

    def _require_configured(self) -> None:
        if not self.configured:
            raise RemoteError("Cloud backup is not configured")

    async def upload(self, user_id: str, payload: Dict[str, Any], access_token: Optional[str] = None) -> None:
        """Upsert the user's backup row"""
        self._require_configured()
        headers = self._headers(access_token)
        headers["Prefer"] = "resolution=merge-duplicates,return=minimal"
        response = await self._send(
            "POST",
            headers=headers,
            params={"on_conflict": "user_id"},
            json={"user_id": user_id, "data": payload},
        )
        logger.info(f"Uploaded backup for user {user_id} (status {response.status_code})")

    async def download(self, user_id: str, access_token: Optional[str] = None) -> Any:
        """
        Fetch the user's backup document

        Raises:
            NotFoundError: no backup exists for the user
            RemoteError: network, timeout, auth or server failure
        """
        self._require_configured()
        response = await self._send(
            "GET",
            headers=self._headers(access_token),
            params={"select": "data", "user_id": f"eq.{user_id}", "limit": "1"},
        )
        try:
            rows = response.json()
        except ValueError as e:
            raise RemoteError("Backup service returned a non-JSON response") from e
        if not rows:
            raise NotFoundError(f"No cloud backup found for user: {user_id}", {"user_id": user_id})
        logger.info(f"Downloaded backup for user {user_id}")
        return rows[0].get("data")

    async def _send(self, method: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, self.endpoint, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteError("Backup service timed out") from e
        except httpx.HTTPError as e:
            raise RemoteError(f"Backup service unreachable: {e}") from e

        if response.status_code in (401, 403):
            raise RemoteError(
                "Backup service rejected the credentials",
                {"status_code": response.status_code},
            )
        if response.status_code >= 400:
            raise RemoteError(
                f"Backup service error: {response.status_code}",
                {"status_code": response.status_code, "body": response.text[:200]},
            )
        return response

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
