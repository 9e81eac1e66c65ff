"""Minimal HTTP client for a Parseable server.

Each leaf command gets the resolved Profile and talks to the server through
this client. No retries: a failed request raises ClientError and the command
fails.
"""
from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from pb.errors import ClientError
from pb.models import Profile

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
TIMEOUT_SECONDS = 10


class ParseableClient:
    def __init__(self, profile: Profile, timeout: float = TIMEOUT_SECONDS) -> None:
        self.profile = profile
        self.timeout = timeout

    def request(self, method: str, path: str, body: Any = None) -> Any:
        """Send one request and return the decoded JSON (or text) response."""
        url = self.profile.url.rstrip("/") + API_PREFIX + path
        headers = {"User-Agent": "pb-cli"}
        if self.profile.username:
            token = f"{self.profile.username}:{self.profile.password}".encode("utf-8")
            headers["Authorization"] = "Basic " + base64.b64encode(token).decode("ascii")
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"

        logger.debug("%s %s", method, url)
        try:
            req = urllib.request.Request(url, data=data, headers=headers, method=method)
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                payload = resp.read().decode("utf-8")
                content_type = resp.headers.get("Content-Type", "")
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace")[:200] if hasattr(e, "read") else ""
            raise ClientError(f"{method} {url} failed: HTTP {e.code} {detail}".rstrip()) from e
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise ClientError(f"{method} {url} failed: {e}") from e

        if not payload:
            return None
        if "json" in content_type:
            try:
                return json.loads(payload)
            except json.JSONDecodeError as e:
                raise ClientError(f"{method} {url} returned invalid JSON: {e}") from e
        return payload

    # ── Streams ───────────────────────────────────────────────────────

    def list_streams(self) -> list[str]:
        return [_field(item, "name", "stream") for item in self._list("GET", "/logstream", "streams")]

    def create_stream(self, name: str) -> None:
        self.request("PUT", f"/logstream/{_quote(name)}")

    def delete_stream(self, name: str) -> None:
        self.request("DELETE", f"/logstream/{_quote(name)}")

    def stream_stats(self, name: str) -> dict[str, Any]:
        data = self.request("GET", f"/logstream/{_quote(name)}/stats")
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ClientError(f"unexpected stats response for stream '{name}': {_excerpt(data)}")
        return data

    # ── Users ─────────────────────────────────────────────────────────

    def list_users(self) -> list[str]:
        return [_field(item, "id", "user") for item in self._list("GET", "/user", "users")]

    def create_user(self, name: str, roles: list[str] | None = None) -> str:
        """Create a user and return the password the server generated for it."""
        data = self.request("POST", f"/user/{_quote(name)}", list(roles) if roles else None)
        if not isinstance(data, str):
            raise ClientError(f"unexpected response creating user '{name}': {_excerpt(data)}")
        return data.strip()

    def delete_user(self, name: str) -> None:
        self.request("DELETE", f"/user/{_quote(name)}")

    def set_user_roles(self, name: str, roles: list[str]) -> None:
        self.request("PUT", f"/user/{_quote(name)}/role", list(roles))

    # ── Roles ─────────────────────────────────────────────────────────

    def list_roles(self) -> list[str]:
        return [_field(item, "name", "role") for item in self._list("GET", "/role", "roles")]

    def create_role(self, name: str, privileges: list[dict[str, Any]]) -> None:
        self.request("PUT", f"/role/{_quote(name)}", privileges)

    def delete_role(self, name: str) -> None:
        self.request("DELETE", f"/role/{_quote(name)}")

    # ── Queries ───────────────────────────────────────────────────────

    def query(self, sql: str, start: str, end: str) -> Any:
        return self.request("POST", "/query", {"query": sql, "startTime": start, "endTime": end})

    def list_saved_queries(self) -> list[tuple[str, str]]:
        """Return (name, sql) for every saved SQL filter visible to this user."""
        saved = []
        for item in self._list("GET", "/filters", "saved queries"):
            if not isinstance(item, dict):
                raise ClientError(f"unexpected saved query entry: {_excerpt(item)}")
            query = item.get("query")
            if not isinstance(query, dict) or query.get("filter_type") != "sql":
                continue
            saved.append((str(item.get("filter_name", "")), str(query.get("filter_query", ""))))
        return saved

    def _list(self, method: str, path: str, what: str) -> list[Any]:
        data = self.request(method, path)
        if data is None:
            return []
        if not isinstance(data, list):
            raise ClientError(f"unexpected response listing {what}: {_excerpt(data)}")
        return data


def _field(item: Any, key: str, what: str) -> str:
    """Pull ``key`` out of one list entry; bare strings are taken as-is."""
    if isinstance(item, str):
        return item
    if isinstance(item, dict) and isinstance(item.get(key), str):
        return item[key]
    raise ClientError(f"unexpected {what} entry: {_excerpt(item)}")


def _excerpt(data: Any) -> str:
    text = data if isinstance(data, str) else json.dumps(data)
    return text[:80]


def _quote(segment: str) -> str:
    return urllib.parse.quote(segment, safe="")
