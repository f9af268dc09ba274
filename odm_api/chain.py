"""
Chain builder.

Starting from a brand's directly linked beneficiaries, follow outgoing
beneficiary relations recursively and return the flat, deduplicated list of
beneficiaries that profit from the brand.

The relation graph may contain cycles. Each branch carries the set of ids on
its own path (a frozenset, so every fork works on its own copy): a cycle is
cut as soon as it closes, while a beneficiary reached via two different paths
(diamond) is still explored from both.
"""
import unicodedata

from .errors import StoreUnavailable
from .logging_utils import get_logger
from .models import ChainNode
from .store import RecordStore

logger = get_logger(__name__)

DEFAULT_MAX_DEPTH = 5
ROOT_LINK_DEFAULT = "Lien financier direct"
RELATION_LINK_DEFAULT = "Participation financière"


def collation_key(name: str) -> str:
    """Accent- and case-insensitive sort key ("Élan" sorts with "elan")."""
    decomposed = unicodedata.normalize("NFKD", name or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def dedupe_chain(nodes: list[ChainNode]) -> list[ChainNode]:
    """Keep one node per beneficiary: the lowest level, first discovered on ties."""
    best: dict[int, ChainNode] = {}
    for node in nodes:
        current = best.get(node.beneficiary.id)
        if current is None or node.level < current.level:
            best[node.beneficiary.id] = node
    return list(best.values())


def sort_chain(nodes: list[ChainNode]) -> list[ChainNode]:
    return sorted(nodes, key=lambda n: (n.level, collation_key(n.beneficiary.name), n.beneficiary.id))


def chain_depth(nodes: list[ChainNode]) -> int:
    return max((n.level for n in nodes), default=0)


async def _walk(
    store: RecordStore,
    beneficiary_id: int,
    level: int,
    visited: frozenset[int],
    bound: int,
    financial_link: str,
    errors: list[str],
) -> list[ChainNode]:
    if level >= bound or beneficiary_id in visited:
        return []
    visited = visited | {beneficiary_id}

    # 1. The beneficiary itself
    try:
        beneficiary = await store.get_beneficiary(beneficiary_id)
    except StoreUnavailable as e:
        logger.warning("chain: beneficiary %s unavailable, branch dropped: %s", beneficiary_id, e)
        errors.append(str(e))
        return []
    if beneficiary is None:
        logger.warning("chain: beneficiary %s not found, branch dropped", beneficiary_id)
        return []

    # 2. Where its money goes next
    try:
        relations = await store.get_outgoing_relations(beneficiary_id)
    except StoreUnavailable as e:
        logger.warning("chain: relations of %s unavailable, treated as leaf: %s", beneficiary_id, e)
        errors.append(str(e))
        relations = []

    nodes = [ChainNode(
        beneficiary=beneficiary,
        level=level,
        financial_link=financial_link,
        next_relations=relations,
    )]

    # 3. Recurse; every branch gets its own copy of the path
    for rel in relations:
        if rel.target_id in visited:
            continue
        nodes.extend(await _walk(
            store,
            rel.target_id,
            level + 1,
            visited,
            bound,
            rel.description or RELATION_LINK_DEFAULT,
            errors,
        ))
    return nodes


async def build_chain(
    store: RecordStore,
    brand_id: int,
    max_depth: int = DEFAULT_MAX_DEPTH,
    errors: list[str] | None = None,
) -> list[ChainNode]:
    """Unenriched chain for a brand, sorted by (level, name).

    Nodes at ``level >= max_depth`` are not emitted, but direct beneficiaries
    (level 0) always are, so ``max_depth=0`` returns them without expansion.
    Failures below the brand's own links only cut the affected branch; their
    messages are appended to ``errors`` when given.
    """
    if errors is None:
        errors = []

    # Not guarded: without the brand's links there is no chain at all.
    links = await store.get_brand_beneficiary_links(brand_id)
    if not links:
        return []

    bound = max(max_depth, 1)
    merged: list[ChainNode] = []
    for link in links:
        merged.extend(await _walk(
            store,
            link.beneficiary_id,
            0,
            frozenset(),
            bound,
            link.financial_link or ROOT_LINK_DEFAULT,
            errors,
        ))

    return sort_chain(dedupe_chain(merged))
