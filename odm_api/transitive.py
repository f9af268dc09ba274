"""
Transitive brand resolver.

For one beneficiary, list the brands it profits from:

- direct: brands linked to it through a brand/beneficiary link;
- indirect: brands of every beneficiary that feeds it (incoming relations),
  followed recursively and grouped by the path of intermediaries.

Example: BlackRock <- Nestlé <- L'Oréal. BlackRock's indirect groups are
``Nestlé`` (KitKat, ...) and ``Nestlé → L'Oréal`` (L'Oréal's brands).

Groups are keyed by tuples of beneficiary ids so two beneficiaries sharing a
name never collide; labels are only rendered by ``render_indirect``.
"""
from .cache import TTLCache
from .errors import StoreUnavailable
from .logging_utils import get_logger
from .models import BrandRef, IncomingRelation, TransitiveBrands
from .store import RecordStore

logger = get_logger(__name__)

CACHE_NAMESPACE = "marques_transitives"
PATH_SEPARATOR = " → "


def dedupe_brands(brands) -> list[BrandRef]:
    seen: set[int] = set()
    unique = []
    for b in brands:
        if b.id not in seen:
            seen.add(b.id)
            unique.append(b)
    return unique


async def _source_name(store: RecordStore, rel: IncomingRelation, errors: list[str]) -> str:
    if rel.source_name:
        return rel.source_name
    try:
        source = await store.get_beneficiary(rel.source_id)
    except StoreUnavailable as e:
        logger.warning("transitive: name of %s unavailable: %s", rel.source_id, e)
        errors.append(str(e))
        source = None
    return source.name if source else f"#{rel.source_id}"


async def _resolve(
    store: RecordStore,
    beneficiary_id: int,
    exclude_brand_id: int | None,
    depth: int,
    path: frozenset[int],
    errors: list[str],
) -> TransitiveBrands:
    path = path | {beneficiary_id}

    linked = await store.get_brands_for_beneficiary(beneficiary_id)
    direct = dedupe_brands(b for b in linked if b.id != exclude_brand_id)
    if depth <= 0:
        return TransitiveBrands(direct=direct)

    try:
        incoming = await store.get_incoming_relations(beneficiary_id)
    except StoreUnavailable as e:
        logger.warning("transitive: incoming relations of %s unavailable: %s", beneficiary_id, e)
        errors.append(str(e))
        return TransitiveBrands(direct=direct)

    groups: dict[tuple[int, ...], list[BrandRef]] = {}
    names: dict[int, str] = {}
    for rel in incoming:
        if rel.source_id in path:
            continue
        try:
            inner = await _resolve(store, rel.source_id, exclude_brand_id, depth - 1, path, errors)
        except StoreUnavailable as e:
            logger.warning("transitive: branch via %s dropped: %s", rel.source_id, e)
            errors.append(str(e))
            continue

        if not (inner.direct or inner.indirect):
            continue
        names[rel.source_id] = await _source_name(store, rel, errors)
        names.update(inner.names)

        if inner.direct:
            groups.setdefault((rel.source_id,), []).extend(inner.direct)
        for inner_path, brands in inner.indirect.items():
            groups.setdefault((rel.source_id, *inner_path), []).extend(brands)

    return TransitiveBrands(
        direct=direct,
        indirect={p: dedupe_brands(brands) for p, brands in groups.items() if brands},
        names=names,
    )


async def resolve_brands(
    store: RecordStore,
    beneficiary_id: int,
    exclude_brand_id: int | None,
    max_depth: int = 5,
    cache: TTLCache | None = None,
    errors: list[str] | None = None,
) -> TransitiveBrands:
    """Direct and indirect brands of a beneficiary, without ``exclude_brand_id``.

    ``max_depth`` is the number of incoming-relation hops followed. Results
    are cached per (beneficiary, excluded brand, depth) unless a branch
    failed. A failure fetching the beneficiary's own brands propagates.
    """
    params = {
        "beneficiary_id": beneficiary_id,
        "exclude_brand_id": exclude_brand_id,
        "max_depth": max_depth,
    }
    if cache is not None:
        cached = cache.get(CACHE_NAMESPACE, params)
        if cached is not None:
            return cached

    local_errors: list[str] = []
    result = await _resolve(store, beneficiary_id, exclude_brand_id, max_depth, frozenset(), local_errors)

    if cache is not None and not local_errors:
        cache.set(CACHE_NAMESPACE, result, params)
    if errors is not None:
        errors.extend(local_errors)
    return result


def render_label(path: tuple[int, ...], names: dict[int, str]) -> str:
    return PATH_SEPARATOR.join(names.get(i, f"#{i}") for i in path)


def render_indirect(brands: TransitiveBrands) -> dict[str, list[BrandRef]]:
    """Indirect groups keyed by intermediary names, e.g. ``"Nestlé → L'Oréal"``.

    Distinct paths rendering to the same label are merged.
    """
    rendered: dict[str, list[BrandRef]] = {}
    for path, group in brands.indirect.items():
        label = render_label(path, brands.names)
        rendered[label] = dedupe_brands([*rendered.get(label, []), *group])
    return rendered
