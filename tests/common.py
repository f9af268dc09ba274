"""Shared builders for the test suite."""
from __future__ import annotations

from odm_api.errors import StoreUnavailable
from odm_api.models import Controversy
from odm_api.store import InMemoryStore

MAYBELLINE, GARNIER, KITKAT, NESPRESSO = 1, 2, 3, 4
LOREAL, NESTLE, BLACKROCK = 10, 20, 30


def build_ownership_store(store: InMemoryStore | None = None) -> InMemoryStore:
    """Maybelline -> L'Oréal -> Nestlé -> BlackRock."""
    store = store if store is not None else InMemoryStore()
    store.add_brand(MAYBELLINE, "Maybelline", boycott_tip="Préférez une marque indépendante")
    store.add_brand(GARNIER, "Garnier")
    store.add_brand(KITKAT, "KitKat")
    store.add_brand(NESPRESSO, "Nespresso")

    store.add_beneficiary(
        LOREAL,
        "L'Oréal",
        type="groupe",
        generic_impact="Tests sur les animaux",
        controversies=[Controversy(id=1, title="Tests animaux en Chine", date="2019-03-01", source_url="https://example.org/1")],
    )
    store.add_beneficiary(NESTLE, "Nestlé", type="groupe")
    store.add_beneficiary(BLACKROCK, "BlackRock", type="fonds")

    store.link(MAYBELLINE, LOREAL, "Marque du groupe L'Oréal")
    store.link(GARNIER, LOREAL, "Marque du groupe L'Oréal")
    store.link(KITKAT, NESTLE, "Marque du groupe Nestlé")
    store.link(NESPRESSO, NESTLE, "Marque du groupe Nestlé")

    store.relate(LOREAL, NESTLE, "Nestlé détient 23% de L'Oréal")
    store.relate(NESTLE, BLACKROCK, "BlackRock détient 5% de Nestlé")
    return store


class FailingStore(InMemoryStore):
    """In-memory store whose calls fail for selected (method, id) pairs."""

    def __init__(self):
        super().__init__()
        self.failures: set[tuple[str, int]] = set()

    def _check(self, method: str, key: int) -> None:
        if (method, key) in self.failures:
            raise StoreUnavailable(f"{method}({key}) timed out")

    async def get_brand_beneficiary_links(self, brand_id):
        self._check("links", brand_id)
        return await super().get_brand_beneficiary_links(brand_id)

    async def get_beneficiary(self, beneficiary_id):
        self._check("beneficiary", beneficiary_id)
        return await super().get_beneficiary(beneficiary_id)

    async def get_outgoing_relations(self, beneficiary_id):
        self._check("outgoing", beneficiary_id)
        return await super().get_outgoing_relations(beneficiary_id)

    async def get_incoming_relations(self, beneficiary_id):
        self._check("incoming", beneficiary_id)
        return await super().get_incoming_relations(beneficiary_id)

    async def get_brands_for_beneficiary(self, beneficiary_id):
        self._check("brands", beneficiary_id)
        return await super().get_brands_for_beneficiary(beneficiary_id)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now
