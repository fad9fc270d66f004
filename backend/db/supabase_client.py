"""Minimal Supabase PostgREST client used by backend repositories only."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from backend.errors import TransactionStoreError


QueryParams = dict[str, str | int] | list[tuple[str, str | int]]


@dataclass(slots=True)
class SupabaseSettings:
    url: str
    service_role_key: str


class SupabaseClient:
    def __init__(self, settings: SupabaseSettings) -> None:
        self.settings = settings

    def _build_request(
        self,
        *,
        method: str,
        table: str,
        query: QueryParams | None,
        prefer: str,
        payload: object | None = None,
    ) -> Request:
        api_key = self.settings.service_role_key
        if not api_key:
            raise ValueError("Missing Supabase service role key")

        url = f"{self.settings.url.rstrip('/')}/rest/v1/{table}"
        if query:
            url = f"{url}?{urlencode(query, doseq=True)}"

        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
            "Prefer": prefer,
        }
        data: bytes | None = None
        if payload is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(payload, default=str).encode("utf-8")

        return Request(url=url, headers=headers, data=data, method=method)

    @staticmethod
    def _send(request: Request) -> tuple[list[dict[str, Any]], str | None]:
        try:
            with urlopen(request) as response:  # noqa: S310 - URL comes from trusted env config
                raw_body = response.read().decode("utf-8")
                rows = json.loads(raw_body) if raw_body.strip() else []
                return rows, response.headers.get("content-range")
        except HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")[:500]
            raise TransactionStoreError(
                f"Supabase request failed with status {exc.code}: {body}"
            ) from exc
        except URLError as exc:
            raise TransactionStoreError(f"Supabase request failed: {exc.reason}") from exc

    def get_rows(
        self,
        *,
        table: str,
        query: QueryParams,
        with_count: bool,
    ) -> tuple[list[dict[str, Any]], int | None]:
        """Fetch rows from PostgREST and optionally parse exact row count."""

        request = self._build_request(
            method="GET",
            table=table,
            query=query,
            prefer="count=exact" if with_count else "return=representation",
        )
        rows, content_range = self._send(request)
        total: int | None = None
        if with_count and content_range and "/" in content_range:
            _, total_str = content_range.split("/", maxsplit=1)
            if total_str.strip().isdigit():
                total = int(total_str)
        return rows, total

    def post_rows(
        self,
        *,
        table: str,
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Insert one row and return its stored representation."""

        request = self._build_request(
            method="POST",
            table=table,
            query=None,
            prefer="return=representation",
            payload=payload,
        )
        rows, _ = self._send(request)
        return rows

    def patch_rows(
        self,
        *,
        table: str,
        query: QueryParams,
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows matching the query and return their stored representation."""

        request = self._build_request(
            method="PATCH",
            table=table,
            query=query,
            prefer="return=representation",
            payload=payload,
        )
        rows, _ = self._send(request)
        return rows

    def delete_rows(self, *, table: str, query: QueryParams) -> list[dict[str, Any]]:
        """Delete rows matching the query and return the removed rows."""

        request = self._build_request(
            method="DELETE",
            table=table,
            query=query,
            prefer="return=representation",
        )
        rows, _ = self._send(request)
        return rows
