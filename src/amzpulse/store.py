"""
Application state for one dashboard session.

``Dashboard`` owns the catalog, the saved-id set, the filter criteria and the
session, and is the only place they change.  It runs on a single asyncio
loop: blocking backend and Gemini calls go through ``asyncio.to_thread``
with a timeout, and every failure decays to a local fallback plus a message
in ``messages``.  Nothing here raises into the caller except programming
errors (unknown product id).
"""
from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any, TypeVar

from .assessment import FALLBACK_ANALYSIS, Assessment, AssessmentClient, AssessmentStatus
from .backend import BackendClient, Session, WatchlistItem
from .filters import filter_products, is_asin_query
from .http import AuthError
from .mock import fallback_product, generate_mock_product, initial_products
from .models import AnalysisResult, FilterState, Product, ViewMode
from .normalize import ProductValidationError, normalize_product, normalize_products
from .profit import FinancialContext
from .storage import MemoryStorage, TokenStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0
_ASIN_SEPARATORS = re.compile(r"[\n,]+")


@dataclass(frozen=True)
class Message:
    level: str  # "info", "warning" or "error"
    text: str


def parse_asin_list(text: str) -> list[str]:
    """Split newline- or comma-separated ASINs, trimming blanks."""
    return [part.strip() for part in _ASIN_SEPARATORS.split(text or "") if part.strip()]


def _row_asin(item: Any) -> str:
    if not isinstance(item, Mapping):
        return ""
    value = item.get("asin") or item.get("id")
    return value.strip() if isinstance(value, str) else ""


class Dashboard:
    def __init__(
        self,
        backend: BackendClient,
        assessor: AssessmentClient,
        storage: TokenStorage | MemoryStorage | None = None,
        catalog: Iterable[Product] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.backend = backend
        self.assessor = assessor
        self.storage = storage or MemoryStorage()
        self.timeout = timeout

        self.catalog: list[Product] = list(catalog) if catalog is not None else initial_products()
        self.saved_ids: set[str] = set()
        self.filters = FilterState()
        self.view = ViewMode.DASHBOARD

        self.session: Session | None = None
        self.usage: Any = None
        self.auth_prompt_open = False
        self.auth_error: str | None = None
        self.messages: list[Message] = []

        self.batch_results: list[Product] = []
        self.batch_error: str | None = None
        self.analysis_status: dict[str, AssessmentStatus] = {}

        self._lookups: dict[str, asyncio.Task[Product]] = {}
        self._claimed: set[str] = set()  # lookups awaited by an explicit caller
        self._search_lookup: str | None = None
        self._analyses: dict[str, asyncio.Task[AnalysisResult]] = {}
        self._toggles: set[str] = set()  # product ids with a watchlist call in flight
        self._watchlist_ids: dict[str, str] = {}  # asin -> backend watchlist item id

    # ── Mutation entry points ────────────────────────────────────────────────

    def set_catalog(self, products: Iterable[Product]) -> None:
        self.catalog = list(products)

    def set_saved_ids(self, ids: Iterable[str]) -> None:
        self.saved_ids = set(ids)

    def set_filters(self, filters: FilterState) -> None:
        self.filters = filters

    def update_filters(self, **changes: Any) -> FilterState:
        """Change individual criteria; changing the category clears the sub-category."""
        self.filters = self.filters.updated(**changes)
        return self.filters

    def reset_filters(self) -> None:
        self.filters = FilterState()

    def set_view(self, view: ViewMode | str) -> None:
        self.view = ViewMode(view)

    def close_auth_prompt(self) -> None:
        self.auth_prompt_open = False
        self.auth_error = None

    def dismiss_messages(self) -> None:
        self.messages.clear()

    # ── Derived state ────────────────────────────────────────────────────────

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    def visible_products(self) -> list[Product]:
        return filter_products(self.catalog, self.view, self.filters, self.saved_ids)

    def find(self, product_id: str) -> Product | None:
        return next((p for p in self.catalog if p.id == product_id), None)

    def find_by_asin(self, asin: str) -> Product | None:
        return next((p for p in self.catalog if p.asin == asin), None)

    def is_lookup_pending(self, asin: str) -> bool:
        task = self._lookups.get(asin)
        return task is not None and not task.done()

    # ── Internals ────────────────────────────────────────────────────────────

    def _notify(self, level: str, text: str) -> None:
        self.messages.append(Message(level=level, text=text))

    async def _blocking(self, fn: Callable[..., T], *args: Any) -> T:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.timeout)

    def _merge(self, product: Product) -> Product:
        """Prepend *product* unless its id is already in the catalog."""
        existing = self.find(product.id)
        if existing is not None:
            return existing
        self.catalog = [product, *self.catalog]
        return product

    def _replace(self, product: Product) -> None:
        self.catalog = [product if p.id == product.id else p for p in self.catalog]

    # ── ASIN lookup ──────────────────────────────────────────────────────────

    async def _fetch(self, asin: str) -> Product:
        try:
            payload = await self._blocking(self.backend.fetch_product, asin)
            product = normalize_product(payload, asin=asin)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Lookup for %s failed, generating placeholder: %s", asin, exc)
            self._notify("warning", f"Could not fetch {asin} from the backend; showing estimated data.")
            product = generate_mock_product(asin)
        return self._merge(product)

    def _lookup_task(self, asin: str) -> asyncio.Task[Product]:
        task = self._lookups.get(asin)
        if task is not None and not task.done():
            return task
        task = asyncio.create_task(self._fetch(asin), name=f"lookup:{asin}")
        self._lookups[asin] = task

        def _done(finished: asyncio.Task[Product], key: str = asin) -> None:
            if self._lookups.get(key) is finished:
                del self._lookups[key]
                self._claimed.discard(key)

        task.add_done_callback(_done)
        return task

    async def lookup(self, asin: str) -> Product:
        """
        Return the catalog record for *asin*, fetching it if absent.

        At most one fetch per ASIN is outstanding; concurrent callers share
        it.  A failed fetch yields a generated record instead of an error.
        Once awaited here, a fetch is no longer cancelled by a search change.
        """
        asin = asin.strip()
        existing = self.find_by_asin(asin)
        if existing is not None:
            return existing
        task = self._lookup_task(asin)
        self._claimed.add(asin)
        return await task

    def set_search(self, term: str) -> asyncio.Task[Product] | None:
        """
        Update the search term and, for an unknown full ASIN, start a lookup.

        A lookup started by an earlier search term is cancelled when the term
        changes before it completes, unless an explicit ``lookup`` call is
        waiting on it.  Must be called from the running loop.
        """
        self.filters = replace(self.filters, search=term)

        pending = self._search_lookup
        if pending is not None and pending != term and pending not in self._claimed:
            task = self._lookups.get(pending)
            if task is not None and not task.done():
                task.cancel()
                logger.info("Cancelled lookup for %s (search changed)", pending)
        self._search_lookup = None

        if not is_asin_query(term) or self.find_by_asin(term) is not None:
            return None
        self._search_lookup = term
        return self._lookup_task(term)

    # ── Watchlist ────────────────────────────────────────────────────────────

    def _apply_watchlist(self, items: list[WatchlistItem]) -> None:
        saved = set()
        self._watchlist_ids = {}
        for item in items:
            product = self.find_by_asin(item.product_id) or self.find(item.product_id)
            saved.add(product.id if product else item.product_id)
            self._watchlist_ids[product.asin if product else item.product_id] = item.id
        self.saved_ids = saved

    async def toggle_save(self, product_id: str) -> bool:
        """
        Add or remove *product_id* from the watchlist.

        Without a session the auth prompt opens and nothing changes.  With one,
        the local set changes first and is reverted if the backend call fails.
        A toggle arriving while one is in flight for the same product is
        ignored.  Returns True when the change was committed.
        """
        if self.session is None:
            self.auth_prompt_open = True
            return False
        if product_id in self._toggles:
            logger.info("Watchlist update for %s already in flight, ignoring toggle", product_id)
            return False

        self._toggles.add(product_id)
        try:
            return await self._toggle(product_id)
        finally:
            self._toggles.discard(product_id)

    async def _toggle(self, product_id: str) -> bool:
        product = self.find(product_id)
        asin = product.asin if product else product_id
        adding = product_id not in self.saved_ids
        if adding:
            self.saved_ids.add(product_id)
        else:
            self.saved_ids.discard(product_id)

        try:
            if adding:
                item = await self._blocking(self.backend.add_watchlist, asin)
                self._watchlist_ids[asin] = item.id
            else:
                await self._blocking(self.backend.remove_watchlist, self._watchlist_ids.get(asin, asin))
                self._watchlist_ids.pop(asin, None)
        except Exception as exc:  # noqa: BLE001
            if adding:
                self.saved_ids.discard(product_id)
            else:
                self.saved_ids.add(product_id)
            logger.warning("Watchlist update for %s failed, reverted: %s", asin, exc)
            self._notify("error", f"Could not update watchlist for {asin}.")
            if isinstance(exc, AuthError):
                self.auth_prompt_open = True
            return False
        return True

    # ── Session ──────────────────────────────────────────────────────────────

    async def _load_account(self) -> None:
        try:
            self._apply_watchlist(await self._blocking(self.backend.list_watchlist))
            self.usage = await self._blocking(self.backend.usage)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not load watchlist/usage: %s", exc)
            self._notify("warning", "Signed in, but the watchlist could not be loaded.")

    async def _authenticate(self, call: Callable[..., Session], *args: Any) -> bool:
        self.auth_error = None
        try:
            session = await self._blocking(call, *args)
        except Exception as exc:  # noqa: BLE001
            logger.info("Authentication failed: %s", exc)
            self.auth_error = str(exc) or "Authentication failed"
            return False
        self.session = session
        self.backend.token = session.token
        self.storage.save(session.token)
        self.auth_prompt_open = False
        await self._load_account()
        return True

    async def login(self, email: str, password: str) -> bool:
        return await self._authenticate(self.backend.login, email, password)

    async def register(self, email: str, password: str, name: str | None = None) -> bool:
        return await self._authenticate(self.backend.register, email, password, name)

    async def bootstrap(self) -> bool:
        """
        Restore a stored session token: load profile, watchlist and usage.

        The session becomes active only when all three succeed; any failure
        logs out and clears the stored token.
        """
        token = self.storage.load()
        if not token:
            return False
        self.backend.token = token
        try:
            session = await self._blocking(self.backend.me)
            items = await self._blocking(self.backend.list_watchlist)
            usage = await self._blocking(self.backend.usage)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Session bootstrap failed, logging out: %s", exc)
            self.logout()
            return False
        self.session = replace(session, token=token)
        self._apply_watchlist(items)
        self.usage = usage
        logger.info("Session restored (plan=%s)", self.session.plan)
        return True

    def logout(self) -> None:
        self.session = None
        self.usage = None
        self.backend.token = None
        self.storage.clear()
        self.saved_ids = set()
        self._watchlist_ids = {}

    # ── Batch ────────────────────────────────────────────────────────────────

    async def run_batch(self, text: str) -> list[Product]:
        """
        Analyse a list of ASINs with one backend batch request.

        Requires a pro session (otherwise the auth prompt opens).  When the
        request fails, every ASIN gets a local placeholder row; no per-ASIN
        requests are made.  A single unreadable row is replaced by a
        placeholder and the rest of the response is kept.
        """
        if self.session is None or not self.session.is_pro:
            self.auth_prompt_open = True
            return []
        asins = parse_asin_list(text)
        if not asins:
            return []

        def bad_row(index: int, item: Any, exc: ProductValidationError) -> Product:
            asin = _row_asin(item) or (asins[index] if index < len(asins) else f"row {index + 1}")
            logger.warning("Batch row %d (%s) unreadable, using placeholder: %s", index, asin, exc)
            self._notify("warning", f"Could not read batch result for {asin}; showing a placeholder.")
            return fallback_product(asin)

        self.batch_error = None
        try:
            payload = await self._blocking(self.backend.analyze_batch, asins)
            results = normalize_products(payload, on_error=bad_row)
        except Exception as exc:  # noqa: BLE001
            logger.error("Batch analyze failed, using fallback list: %s", exc)
            self.batch_error = str(exc) or "Batch analyze failed"
            results = [fallback_product(asin) for asin in asins]
        self.batch_results = results
        return results

    def clear_batch(self) -> None:
        self.batch_results = []
        self.batch_error = None

    # ── AI assessment ────────────────────────────────────────────────────────

    async def _assess(self, product: Product, context: FinancialContext | None) -> AnalysisResult:
        try:
            assessment = await self._blocking(self.assessor.assess, product, context)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Assessment for %s did not complete: %s", product.asin, exc)
            assessment = Assessment(status=AssessmentStatus.FAILED, result=FALLBACK_ANALYSIS, error=str(exc))

        self.analysis_status[product.id] = assessment.status
        current = self.find(product.id)
        if current is not None:
            self._replace(current.with_analysis(assessment.result))
        if not assessment.ok:
            self._notify("warning", f"AI analysis unavailable for {product.asin}.")
        return assessment.result

    async def request_analysis(
        self,
        product_id: str,
        context: FinancialContext | None = None,
        refresh: bool = False,
    ) -> AnalysisResult:
        """
        Attach an AI assessment to a catalog product and return it.

        An existing assessment is reused unless *refresh* is set.  One request
        per product is outstanding at a time.

        Raises:
            KeyError: *product_id* is not in the catalog.
        """
        product = self.find(product_id)
        if product is None:
            raise KeyError(product_id)
        if product.analysis is not None and not refresh:
            return product.analysis

        task = self._analyses.get(product_id)
        if task is None or task.done():
            self.analysis_status[product_id] = AssessmentStatus.REQUESTING
            task = asyncio.create_task(self._assess(product, context), name=f"assess:{product_id}")
            self._analyses[product_id] = task
        return await task
