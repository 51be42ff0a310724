# ==============================
# Gerrit REST Client
# ==============================
"""
Minimal Gerrit REST client used to cast review votes.

Notes:
- Authenticated endpoints live under "<url>/a/..." with HTTP basic auth
- JSON responses start with the ")]}'" XSSI guard, which is stripped
- Any transport or HTTP failure raises GerritError
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

import requests
from requests.auth import HTTPBasicAuth

from githooks.contracts.errors import GerritError

XSSI_PREFIX = ")]}'"


class GerritClient:
    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = HTTPBasicAuth(username, password)

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}/a{path}"
        try:
            resp = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise GerritError(f"error talking to Gerrit at {url}: {exc}") from exc

        if not resp.ok:
            raise GerritError(f"Gerrit request {method} {path} failed with HTTP {resp.status_code}: {resp.text.strip()}")

        return parse_body(resp.text)

    def post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("POST", path, payload)

    def get(self, path: str) -> Any:
        return self._request("GET", path)


def parse_body(text: str) -> Any:
    if text.startswith(XSSI_PREFIX):
        text = text[len(XSSI_PREFIX):]
    text = text.strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text
