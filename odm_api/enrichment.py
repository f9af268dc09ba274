"""
Enrichment pass: attach direct and indirect brands to every chain node.

Nodes are resolved concurrently. Each resolution writes only to its own
result slot; results are merged once every resolution has completed.
"""
import asyncio

from .cache import TTLCache
from .errors import StoreUnavailable
from .logging_utils import get_logger
from .models import ChainNode
from .store import RecordStore
from .transitive import render_indirect, resolve_brands

logger = get_logger(__name__)


async def enrich(
    store: RecordStore,
    nodes: list[ChainNode],
    exclude_brand_id: int,
    max_depth: int = 5,
    cache: TTLCache | None = None,
    errors: list[str] | None = None,
) -> list[ChainNode]:
    """Return enriched copies of ``nodes``, in the same order."""

    async def _enrich_one(node: ChainNode) -> tuple[ChainNode, list[str]]:
        node_errors: list[str] = []
        try:
            brands = await resolve_brands(
                store,
                node.beneficiary.id,
                exclude_brand_id,
                max_depth,
                cache=cache,
                errors=node_errors,
            )
        except StoreUnavailable as e:
            logger.warning("enrich: brands of %s unavailable: %s", node.beneficiary.id, e)
            node_errors.append(str(e))
            return node.model_copy(update={"marques_directes": [], "marques_indirectes": {}}), node_errors

        return node.model_copy(update={
            "marques_directes": list(brands.direct),
            "marques_indirectes": render_indirect(brands),
        }), node_errors

    results = await asyncio.gather(*(_enrich_one(n) for n in nodes))

    if errors is not None:
        for _, node_errors in results:
            errors.extend(node_errors)
    return [node for node, _ in results]
