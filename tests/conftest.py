from __future__ import annotations

import pytest

from odm_api.store import InMemoryStore
from tests.common import FakeClock, build_ownership_store


@pytest.fixture()
def ownership_store() -> InMemoryStore:
    return build_ownership_store()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
