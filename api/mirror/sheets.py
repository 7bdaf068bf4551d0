"""
Google Sheets HTTP client helpers (Sheets REST API v4).

Used endpoints:
- GET  /v4/spreadsheets/{id}?fields=sheets.properties   -> worksheet titles/ids
- POST /v4/spreadsheets/{id}:batchUpdate                 -> addSheet, deleteDimension
- GET  /v4/spreadsheets/{id}/values/{range}              -> {"values": [[...], ...]}
- PUT  /v4/spreadsheets/{id}/values/{range}              -> overwrite a row
- POST /v4/spreadsheets/{id}/values/{range}:append       -> add a row

Auth is a service-account OAuth token: a RS256 JWT assertion signed with the
account's private key, exchanged at the account's token URI.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx
import jwt

from core.errors import SyncError

from .base import HEADER, MirrorTarget

SHEETS_BASE_URL = "https://sheets.googleapis.com"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"

# Refresh the access token this many seconds before it expires.
TOKEN_REFRESH_MARGIN_S = 60


def column_letter(index: int) -> str:
    """
    1 -> "A", 26 -> "Z", 27 -> "AA".
    """
    if index < 1:
        raise ValueError("Column index starts at 1.")
    letters = ""
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


LAST_COLUMN = column_letter(len(HEADER))


@dataclass(frozen=True)
class ServiceAccount:
    client_email: str
    private_key: str
    token_uri: str = DEFAULT_TOKEN_URI

    @classmethod
    def from_file(cls, path: str | Path) -> "ServiceAccount":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise SyncError(f"Cannot read service account file {path}: {exc}") from exc

        email = str(data.get("client_email") or "").strip()
        key = str(data.get("private_key") or "")
        if not email or not key:
            raise SyncError("Service account file needs client_email and private_key.")
        return cls(
            client_email=email,
            private_key=key,
            token_uri=str(data.get("token_uri") or DEFAULT_TOKEN_URI),
        )

    def build_assertion(self, *, now: int | None = None) -> str:
        issued_at = int(time.time()) if now is None else now
        payload = {
            "iss": self.client_email,
            "scope": SHEETS_SCOPE,
            "aud": self.token_uri,
            "iat": issued_at,
            "exp": issued_at + 3600,
        }
        return jwt.encode(payload, self.private_key, algorithm="RS256")


class SheetsClient(MirrorTarget):
    def __init__(
        self,
        *,
        spreadsheet_id: str,
        worksheet: str,
        account: ServiceAccount,
        base_url: str = SHEETS_BASE_URL,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        spreadsheet_id = (spreadsheet_id or "").strip()
        if not spreadsheet_id:
            raise SyncError("Spreadsheet id is empty.")
        self.spreadsheet_id = spreadsheet_id
        self.worksheet = (worksheet or "").strip() or "Issues"
        self.account = account
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport

        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._sheet_id: int | None = None
        # Row numbers are shared state: locate-then-write must not interleave.
        self._lock = asyncio.Lock()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout_s,
            transport=self._transport,
        )

    def _range(self, a1: str) -> str:
        title = self.worksheet.replace("'", "''")
        return quote(f"'{title}'!{a1}", safe="")

    async def _token(self, client: httpx.AsyncClient) -> str:
        if self._access_token and time.time() < self._token_expires_at - TOKEN_REFRESH_MARGIN_S:
            return self._access_token

        resp = await client.post(
            self.account.token_uri,
            data={
                "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
                "assertion": self.account.build_assertion(),
            },
        )
        if resp.status_code != 200:
            raise SyncError(f"Token request failed: {resp.status_code} {resp.text[:300]}")

        data: dict[str, Any] = resp.json()
        token = str(data.get("access_token") or "")
        if not token:
            raise SyncError("Token response had no access_token.")
        self._access_token = token
        self._token_expires_at = time.time() + float(data.get("expires_in") or 3600)
        return token

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        token = await self._token(client)
        headers = {"Authorization": f"Bearer {token}"}
        resp = await client.request(method, path, headers=headers, **kwargs)
        if resp.status_code >= 300:
            # Avoid dumping huge bodies; include a small snippet.
            raise SyncError(f"Sheets {method} {path} failed: {resp.status_code} {resp.text[:300]}")
        if not resp.content:
            return {}
        return resp.json()

    async def _batch_update(self, client: httpx.AsyncClient, requests: list[dict[str, Any]]) -> dict[str, Any]:
        return await self._request(
            client,
            "POST",
            f"/v4/spreadsheets/{self.spreadsheet_id}:batchUpdate",
            json={"requests": requests},
        )

    async def _get_values(self, client: httpx.AsyncClient, a1: str) -> list[list[str]]:
        data = await self._request(
            client,
            "GET",
            f"/v4/spreadsheets/{self.spreadsheet_id}/values/{self._range(a1)}",
        )
        values = data.get("values")
        return values if isinstance(values, list) else []

    async def _put_values(self, client: httpx.AsyncClient, a1: str, rows: list[list[str]]) -> None:
        await self._request(
            client,
            "PUT",
            f"/v4/spreadsheets/{self.spreadsheet_id}/values/{self._range(a1)}",
            params={"valueInputOption": "RAW"},
            json={"values": rows},
        )

    async def _resolve_sheet_id(self, client: httpx.AsyncClient) -> int:
        if self._sheet_id is not None:
            return self._sheet_id

        data = await self._request(
            client,
            "GET",
            f"/v4/spreadsheets/{self.spreadsheet_id}",
            params={"fields": "sheets.properties"},
        )
        for sheet in data.get("sheets") or []:
            props = sheet.get("properties") or {}
            if props.get("title") == self.worksheet:
                self._sheet_id = int(props.get("sheetId") or 0)
                return self._sheet_id

        reply = await self._batch_update(
            client,
            [{"addSheet": {"properties": {"title": self.worksheet}}}],
        )
        try:
            self._sheet_id = int(reply["replies"][0]["addSheet"]["properties"]["sheetId"])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise SyncError("addSheet reply had no sheetId.") from exc
        return self._sheet_id

    async def ensure_initialized(self) -> None:
        async with self._lock, self._client() as client:
            await self._resolve_sheet_id(client)
            header = await self._get_values(client, f"A1:{LAST_COLUMN}1")
            if not header or not any(cell for cell in header[0]):
                await self._put_values(client, f"A1:{LAST_COLUMN}1", [list(HEADER)])

    async def _row_numbers(self, client: httpx.AsyncClient, key: str) -> list[int]:
        """
        1-based sheet row numbers whose column A equals `key` (header excluded).
        """
        keys = await self._get_values(client, "A:A")
        return [
            i
            for i, row in enumerate(keys, start=1)
            if i > 1 and row and str(row[0]).strip() == key
        ]

    async def upsert_row(self, key: str, values: list[str]) -> None:
        async with self._lock, self._client() as client:
            rows = await self._row_numbers(client, key)
            if rows:
                n = rows[0]
                await self._put_values(client, f"A{n}:{LAST_COLUMN}{n}", [values])
                return None

            await self._request(
                client,
                "POST",
                f"/v4/spreadsheets/{self.spreadsheet_id}/values/{self._range(f'A:{LAST_COLUMN}')}:append",
                params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
                json={"values": [values]},
            )

    async def delete_row(self, key: str) -> None:
        async with self._lock, self._client() as client:
            rows = await self._row_numbers(client, key)
            if not rows:
                return None

            sheet_id = await self._resolve_sheet_id(client)
            # Bottom-up so earlier deletions don't shift later row numbers.
            requests = [
                {
                    "deleteDimension": {
                        "range": {
                            "sheetId": sheet_id,
                            "dimension": "ROWS",
                            "startIndex": n - 1,
                            "endIndex": n,
                        }
                    }
                }
                for n in sorted(rows, reverse=True)
            ]
            await self._batch_update(client, requests)
