"""Shared fakes for the backend and the assessment service."""

import threading
import time

import pytest

from amzpulse.assessment import Assessment, AssessmentStatus
from amzpulse.backend import Session, WatchlistItem
from amzpulse.http import AuthError, NetworkError
from amzpulse.models import AnalysisResult

GOOD_ANALYSIS = AnalysisResult(
    grade="A",
    score=88,
    summary="Strong seller.",
    pros=("High demand",),
    cons=("Many sellers",),
    competition_level="Medium",
    demand_level="High",
    suggested_action="Buy 20 units.",
    fba_analysis="FBA viable",
    fbm_analysis="FBM marginal",
)


class FakeBackend:
    """In-memory stand-in for BackendClient; set ``fail_*`` attributes to inject errors."""

    def __init__(self, plan="free", products=None, batch=None, delay=0.0):
        self.token = None
        self.plan = plan
        self.products = products or {}
        self.batch = batch
        self.delay = delay
        self.calls = []
        self.fail_me = None
        self.fail_login = None
        self.fail_fetch = None
        self.fail_add = None
        self.fail_remove = None
        self.fail_batch = None
        self.watchlist = []
        self._lock = threading.Lock()
        self._next_id = 100

    def _record(self, name, *args):
        with self._lock:
            self.calls.append((name, *args))

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)

    def _session(self, token):
        return Session(token=token, user={"email": "seller@example.com"}, plan=self.plan)

    def register(self, email, password, name=None):
        self._record("register", email)
        return self._session("tok-new")

    def login(self, email, password):
        self._record("login", email)
        if self.fail_login:
            raise self.fail_login
        return self._session("tok-123")

    def me(self):
        self._record("me")
        if self.fail_me:
            raise self.fail_me
        return self._session(self.token)

    def usage(self):
        self._record("usage")
        return {"analyses": 3, "limit": 50}

    def list_watchlist(self):
        self._record("list_watchlist")
        return list(self.watchlist)

    def add_watchlist(self, asin):
        self._record("add_watchlist", asin)
        if self.fail_add:
            raise self.fail_add
        self._next_id += 1
        return WatchlistItem(id=f"w{self._next_id}", product_id=asin)

    def remove_watchlist(self, id_or_asin):
        self._record("remove_watchlist", id_or_asin)
        if self.fail_remove:
            raise self.fail_remove

    def fetch_product(self, asin):
        self._record("fetch_product", asin)
        if self.delay:
            time.sleep(self.delay)
        if self.fail_fetch:
            raise self.fail_fetch
        if asin not in self.products:
            raise NetworkError("Not found", status_code=404)
        return self.products[asin]

    def analyze_batch(self, asins):
        self._record("analyze_batch", list(asins))
        if self.fail_batch:
            raise self.fail_batch
        return self.batch if self.batch is not None else [{"asin": a, "title": f"Item {a}", "price": 10} for a in asins]


class FakeAssessor:
    def __init__(self, result=GOOD_ANALYSIS, delay=0.0, error=None):
        self.result = result
        self.delay = delay
        self.error = error
        self.calls = []

    @property
    def is_enabled(self):
        return True

    def assess(self, product, context=None):
        self.calls.append((product.id, context))
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return Assessment(status=AssessmentStatus.SUCCEEDED, result=self.result)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def pro_backend():
    return FakeBackend(plan="pro")


@pytest.fixture
def assessor():
    return FakeAssessor()


@pytest.fixture
def auth_error():
    return AuthError("Invalid token", status_code=401)


@pytest.fixture
def good_analysis():
    return GOOD_ANALYSIS


@pytest.fixture
def make_assessor():
    return FakeAssessor
