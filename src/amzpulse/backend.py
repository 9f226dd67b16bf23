"""Client for the AmzPulse backend REST API (auth, watchlist, billing, products)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from .http import DEFAULT_TIMEOUT, ParseError, request_json

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3001"


@dataclass
class Session:
    token: str
    user: dict[str, Any] = field(default_factory=dict)
    plan: str = "free"
    role: str = "user"

    @property
    def is_pro(self) -> bool:
        return self.plan == "pro"


@dataclass(frozen=True)
class WatchlistItem:
    id: str
    product_id: str


def _session_from(body: Any, token: str | None = None) -> Session:
    if not isinstance(body, dict):
        raise ParseError(f"Expected an auth object, got {type(body).__name__}")
    token = body.get("token") or token
    if not token:
        raise ParseError("Auth response carried no token")
    return Session(
        token=token,
        user=body.get("user") or {},
        plan=body.get("plan") or "free",
        role=body.get("role") or "user",
    )


class BackendClient:
    """
    Thin wrapper over the backend endpoints.

    A bearer token is attached to every request once set; endpoints that do
    not need a session (product lookup, batch) work without one.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._http = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _call(self, method: str, path: str, json: Any = None) -> Any:
        return request_json(
            method,
            f"{self.base_url}{path}",
            json=json,
            headers=self._headers(),
            timeout=self.timeout,
            session=self._http,
        )

    # ── Auth ─────────────────────────────────────────────────────────────────

    def register(self, email: str, password: str, name: str | None = None) -> Session:
        payload: dict[str, Any] = {"email": email, "password": password}
        if name:
            payload["name"] = name
        session = _session_from(self._call("POST", "/api/auth/register", payload))
        self.token = session.token
        logger.info("Registered account %s (plan=%s)", email, session.plan)
        return session

    def login(self, email: str, password: str) -> Session:
        session = _session_from(self._call("POST", "/api/auth/login", {"email": email, "password": password}))
        self.token = session.token
        logger.info("Logged in as %s (plan=%s)", email, session.plan)
        return session

    def me(self) -> Session:
        return _session_from(self._call("GET", "/api/auth/me"), token=self.token)

    # ── Billing ──────────────────────────────────────────────────────────────

    def usage(self) -> Any:
        return self._call("GET", "/api/billing/usage")

    # ── Watchlist ────────────────────────────────────────────────────────────

    def list_watchlist(self) -> list[WatchlistItem]:
        body = self._call("GET", "/api/watchlist") or []
        if isinstance(body, dict):
            body = body.get("items") or body.get("watchlist") or []
        if not isinstance(body, list):
            raise ParseError(f"Expected a watchlist array, got {type(body).__name__}")
        return [
            WatchlistItem(id=str(item.get("id")), product_id=str(item.get("productId") or item.get("asin") or ""))
            for item in body
            if isinstance(item, dict)
        ]

    def add_watchlist(self, asin: str) -> WatchlistItem:
        body = self._call("POST", "/api/watchlist", {"asin": asin})
        item = body.get("watchlistItem") if isinstance(body, dict) else None
        if not isinstance(item, dict) or item.get("id") is None:
            raise ParseError("Watchlist response carried no watchlistItem.id")
        return WatchlistItem(id=str(item["id"]), product_id=str(item.get("productId") or asin))

    def remove_watchlist(self, id_or_asin: str) -> None:
        self._call("DELETE", f"/api/watchlist/{quote(id_or_asin, safe='')}")

    # ── Products ─────────────────────────────────────────────────────────────

    def fetch_product(self, asin: str) -> Any:
        """Raw product-like payload; see ``normalize.normalize_product``."""
        return self._call("GET", f"/api/products/{quote(asin, safe='')}")

    def analyze_batch(self, asins: list[str]) -> Any:
        return self._call("POST", "/api/batch/analyze", {"asins": asins})
