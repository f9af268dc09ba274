from __future__ import annotations

import pytest

from odm_api.chain import (
    RELATION_LINK_DEFAULT,
    ROOT_LINK_DEFAULT,
    build_chain,
    chain_depth,
    collation_key,
)
from odm_api.errors import StoreUnavailable
from odm_api.store import InMemoryStore
from tests.common import BLACKROCK, LOREAL, MAYBELLINE, NESTLE, FailingStore, build_ownership_store


def _ids(nodes):
    return [n.beneficiary.id for n in nodes]


def _levels(nodes):
    return {n.beneficiary.id: n.level for n in nodes}


@pytest.mark.asyncio
async def test_chain_follows_outgoing_relations(ownership_store):
    nodes = await build_chain(ownership_store, MAYBELLINE, 5)

    assert _ids(nodes) == [LOREAL, NESTLE, BLACKROCK]
    assert _levels(nodes) == {LOREAL: 0, NESTLE: 1, BLACKROCK: 2}
    assert nodes[0].financial_link == "Marque du groupe L'Oréal"
    assert nodes[1].financial_link == "Nestlé détient 23% de L'Oréal"
    assert nodes[2].financial_link == "BlackRock détient 5% de Nestlé"
    assert [r.target_id for r in nodes[0].next_relations] == [NESTLE]
    assert nodes[0].beneficiary.type == "group"
    assert nodes[0].beneficiary.controversies[0].title == "Tests animaux en Chine"
    assert chain_depth(nodes) == 2


@pytest.mark.asyncio
async def test_brand_without_links_yields_empty_chain(ownership_store):
    ownership_store.add_brand(99, "Marque indépendante")
    assert await build_chain(ownership_store, 99, 5) == []


@pytest.mark.asyncio
async def test_max_depth_zero_returns_direct_beneficiaries_only(ownership_store):
    nodes = await build_chain(ownership_store, MAYBELLINE, 0)
    assert _ids(nodes) == [LOREAL]
    assert nodes[0].level == 0


@pytest.mark.asyncio
async def test_depth_bound_cuts_long_chains():
    store = InMemoryStore()
    store.add_brand(1, "Brand")
    for i in range(1, 9):
        store.add_beneficiary(i, f"B{i}")
    store.link(1, 1)
    for i in range(1, 8):
        store.relate(i, i + 1)

    nodes = await build_chain(store, 1, 3)
    assert _levels(nodes) == {1: 0, 2: 1, 3: 2}

    nodes = await build_chain(store, 1, 1)
    assert _levels(nodes) == {1: 0}


@pytest.mark.asyncio
async def test_cycles_terminate():
    store = InMemoryStore()
    store.add_brand(1, "Brand")
    for i, name in ((1, "A"), (2, "B"), (3, "C")):
        store.add_beneficiary(i, name)
    store.link(1, 1)
    store.relate(1, 2)
    store.relate(2, 3)
    store.relate(3, 1)
    store.relate(2, 2)  # self loop

    nodes = await build_chain(store, 1, 50)

    assert _levels(nodes) == {1: 0, 2: 1, 3: 2}
    assert max(n.level for n in nodes) < 50


@pytest.mark.asyncio
async def test_diamond_keeps_shared_target_once():
    # X -> A, X -> B, A -> C, B -> C, C -> D
    store = InMemoryStore()
    store.add_brand(1, "X")
    for i, name in ((1, "A"), (2, "B"), (3, "C"), (4, "D")):
        store.add_beneficiary(i, name)
    store.link(1, 1)
    store.link(1, 2)
    store.relate(1, 3, "A détient C")
    store.relate(2, 3, "B détient C")
    store.relate(3, 4)

    nodes = await build_chain(store, 1, 5)

    assert _ids(nodes) == [1, 2, 3, 4]
    assert _levels(nodes) == {1: 0, 2: 0, 3: 1, 4: 2}
    c = next(n for n in nodes if n.beneficiary.id == 3)
    assert c.financial_link == "A détient C"
    d = next(n for n in nodes if n.beneficiary.id == 4)
    assert d.financial_link == RELATION_LINK_DEFAULT


@pytest.mark.asyncio
async def test_duplicate_keeps_lowest_level():
    # A is linked first and leads to B at level 1, but B is also a direct beneficiary.
    store = InMemoryStore()
    store.add_brand(1, "X")
    store.add_beneficiary(1, "A")
    store.add_beneficiary(2, "B")
    store.link(1, 1)
    store.link(1, 2, None)
    store.relate(1, 2, "A détient B")

    nodes = await build_chain(store, 1, 5)

    assert _levels(nodes) == {1: 0, 2: 0}
    b = next(n for n in nodes if n.beneficiary.id == 2)
    assert b.financial_link == ROOT_LINK_DEFAULT


@pytest.mark.asyncio
async def test_sorted_by_level_then_locale_aware_name():
    store = InMemoryStore()
    store.add_brand(1, "X")
    for i, name in ((1, "Zeta"), (2, "élan"), (3, "alpha"), (4, "Omega")):
        store.add_beneficiary(i, name)
    for i in (1, 2, 3):
        store.link(1, i)
    store.relate(1, 4)

    nodes = await build_chain(store, 1, 5)
    assert [n.beneficiary.name for n in nodes] == ["alpha", "élan", "Zeta", "Omega"]


def test_collation_key_ignores_accents_and_case():
    assert collation_key("Élan") == collation_key("elan")
    assert collation_key("Nestlé") < collation_key("Nike")


@pytest.mark.asyncio
async def test_failed_branch_is_a_dead_end():
    store = build_ownership_store(FailingStore())
    store.failures.add(("beneficiary", NESTLE))
    errors: list[str] = []

    nodes = await build_chain(store, MAYBELLINE, 5, errors=errors)

    assert _ids(nodes) == [LOREAL]
    assert errors == [f"beneficiary({NESTLE}) timed out"]


@pytest.mark.asyncio
async def test_failed_relations_keep_the_node():
    store = build_ownership_store(FailingStore())
    store.failures.add(("outgoing", NESTLE))
    errors: list[str] = []

    nodes = await build_chain(store, MAYBELLINE, 5, errors=errors)

    assert _ids(nodes) == [LOREAL, NESTLE]
    assert len(errors) == 1


@pytest.mark.asyncio
async def test_missing_beneficiary_is_skipped(ownership_store):
    ownership_store.relate(LOREAL, 404, "orphan relation")
    nodes = await build_chain(ownership_store, MAYBELLINE, 5)
    assert 404 not in _ids(nodes)


@pytest.mark.asyncio
async def test_links_failure_propagates():
    store = build_ownership_store(FailingStore())
    store.failures.add(("links", MAYBELLINE))
    with pytest.raises(StoreUnavailable):
        await build_chain(store, MAYBELLINE, 5)


@pytest.mark.asyncio
async def test_chain_is_deterministic(ownership_store):
    ownership_store.relate(BLACKROCK, LOREAL, "BlackRock détient 6% de L'Oréal")
    first = await build_chain(ownership_store, MAYBELLINE, 5)
    second = await build_chain(ownership_store, MAYBELLINE, 5)
    assert [n.model_dump() for n in first] == [n.model_dump() for n in second]
    assert len(set(_ids(first))) == len(first)
