import pytest
from typer.testing import CliRunner
from pathlib import Path
from typing import Any, Dict, List, Optional

from shopmon.domain.interfaces.transport import GraphQLTransport
from shopmon.infrastructure.config import settings as settings_module


class FakeClock:
    """Manually advanced clock for TTL and bucketing tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport(GraphQLTransport):
    """Replays queued bodies/exceptions and records every post."""

    def __init__(self, outcomes: Optional[List[Any]] = None, endpoint: str = "https://test-shop.myshopify.com/api/2025-04/graphql.json"):
        self.outcomes = list(outcomes or [])
        self.calls: List[Dict[str, Any]] = []
        self.closed = False
        self._endpoint = endpoint

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def api_version(self) -> str:
        return "2025-04"

    def queue(self, *outcomes: Any) -> None:
        self.outcomes.extend(outcomes)

    async def post(self, query: str, variables=None) -> Dict[str, Any]:
        self.calls.append({"query": query, "variables": variables})
        if not self.outcomes:
            raise AssertionError("FakeTransport has no queued outcome")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        self.closed = True


def graphql_body(
    data: Any = None,
    errors: Optional[List[Dict[str, Any]]] = None,
    requested: float = 10,
    actual: float = 8,
    maximum: float = 1000,
    current: float = 992,
    restore: float = 50,
    with_cost: bool = True,
) -> Dict[str, Any]:
    """Builds a Storefront response body with a cost extension."""
    body: Dict[str, Any] = {"data": data if data is not None else {"products": {"edges": []}}}
    if errors:
        body["errors"] = errors
    if with_cost:
        body["extensions"] = {
            "cost": {
                "requestedQueryCost": requested,
                "actualQueryCost": actual,
                "throttleStatus": {
                    "maximumAvailable": maximum,
                    "currentlyAvailable": current,
                    "restoreRate": restore,
                },
            }
        }
    return body


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def fake_transport():
    return FakeTransport()

@pytest.fixture
def make_body():
    """Factory fixture for Storefront response bodies."""
    return graphql_body

@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays instead of waiting."""
    delays: List[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays
    return _sleep

@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch):
    """Points configuration at an empty temp dir and clears SHOPIFY_* variables."""
    monkeypatch.setattr(settings_module, "DEFAULT_CONFIG_FILE", tmp_path / "config.yaml")
    monkeypatch.chdir(tmp_path)
    for key in list(settings_module.os.environ):
        if key.startswith("SHOPIFY_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SHOPIFY_HISTORY_FILE", str(tmp_path / "usage_history.json"))
    return tmp_path

@pytest.fixture
def sample_query_file(tmp_path: Path) -> Path:
    path = tmp_path / "products.graphql"
    path.write_text("query Products($first: Int!) {\n  products(first: $first) { edges { node { id title } } }\n}\n", encoding="utf-8")
    return path
