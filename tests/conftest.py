"""Configure test environment for Authbound."""

from __future__ import annotations
import sys
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
import pytest


ROOT = Path(__file__).resolve().parents[1]
for source in (ROOT / "src", ROOT / "apps" / "backend" / "src"):
    if str(source) not in sys.path:
        sys.path.insert(0, str(source))

from authbound.ledger import (  # noqa: E402
    BaseTokenLedger,
    InMemoryTokenLedger,
    SqliteTokenLedger,
)
from authbound.store import (  # noqa: E402
    BaseAuthConfigStore,
    InMemoryAuthConfigStore,
    SqliteAuthConfigStore,
)


class FrozenClock:
    """Manually advanced clock for deterministic token lifetimes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    """Return a clock frozen at a fixed instant."""
    return FrozenClock()


@pytest.fixture(params=["inmemory", "sqlite"])
def ledger(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[BaseTokenLedger]:
    """Yield each token ledger backend."""
    if request.param == "sqlite":
        yield SqliteTokenLedger(tmp_path / "ledger.sqlite")
    else:
        yield InMemoryTokenLedger()


@pytest.fixture
def store(ledger: BaseTokenLedger, tmp_path: Path) -> BaseAuthConfigStore:
    """Return a configuration store on the same backend as ``ledger``."""
    if isinstance(ledger, SqliteTokenLedger):
        return SqliteAuthConfigStore(tmp_path / "configs.sqlite", ledger=ledger)
    return InMemoryAuthConfigStore(ledger=ledger)


def _machine_fields(**overrides: object) -> dict[str, object]:
    fields: dict[str, object] = {
        "access_token_ttl": 3600,
        "access_token_max_ttl": 7200,
        "access_token_num_uses_limit": 0,
        "access_token_trusted_ips": [],
        "allowed_service_accounts": ["svc@proj.iam.gserviceaccount.com"],
        "allowed_projects": ["proj"],
        "is_active": True,
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def machine_fields() -> Callable[..., dict[str, object]]:
    """Return a builder for valid machine identity payloads."""
    return _machine_fields
