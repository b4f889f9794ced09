"""
Shared Supabase client for PostgREST and Storage calls.
"""
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from loguru import logger


class SupabaseError(Exception):
    """A Supabase request failed or returned an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SupabaseClient:
    """
    Thin HTTP client for a Supabase project.

    Only the calls the reel pipeline needs are exposed: point selects and
    updates on tables, object upload, and public URL construction.
    """

    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not url:
            raise ValueError("Supabase URL is required")
        if not key:
            raise ValueError("Supabase key is required")
        self.url = url.rstrip("/")
        self._http = httpx.Client(
            base_url=self.url,
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
            },
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "SupabaseClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise SupabaseError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            detail = response.text[:300]
            try:
                body = response.json()
                if isinstance(body, dict):
                    detail = body.get("message") or body.get("error") or detail
            except ValueError:
                pass
            raise SupabaseError(
                f"{method} {path} returned {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        return response

    def select_one(
        self,
        table: str,
        match: Dict[str, Any],
        columns: str = "*",
    ) -> Optional[Dict[str, Any]]:
        """Return the first row matching every column=value pair, or None."""
        params = {column: f"eq.{value}" for column, value in match.items()}
        params["select"] = columns
        params["limit"] = "1"
        response = self._request("GET", f"/rest/v1/{table}", params=params)
        rows: List[Dict[str, Any]] = response.json()
        return rows[0] if rows else None

    def update(self, table: str, match: Dict[str, Any], values: Dict[str, Any]) -> None:
        params = {column: f"eq.{value}" for column, value in match.items()}
        self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=params,
            json=values,
            headers={"Prefer": "return=minimal"},
        )

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> str:
        """Upload bytes to a storage bucket; returns the object key."""
        response = self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{quote(path)}",
            content=data,
            headers={
                "Content-Type": content_type,
                "Cache-Control": f"max-age={cache_control}",
                "x-upsert": "true" if upsert else "false",
            },
        )
        try:
            key = response.json().get("Key")
        except ValueError:
            key = None
        logger.debug(f"Uploaded {len(data)} bytes to {bucket}/{path}")
        return key or f"{bucket}/{path}"

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{quote(path)}"
