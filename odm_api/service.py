"""
Request-level composition: validation, caching, chain building, enrichment.
"""
import asyncio

from .cache import TTLCache
from .chain import build_chain, chain_depth
from .config import Settings
from .enrichment import enrich
from .errors import InvalidRequest, NotFound, StoreUnavailable
from .logging_utils import get_logger
from .models import BeneficiaryDetail, BrandBeneficiary, ChainResponse
from .store import RecordStore
from .transitive import dedupe_brands

logger = get_logger(__name__)

CHAIN_NAMESPACE = "beneficiaires_chaine"
BENEFICIARY_NAMESPACE = "beneficiaires"
IMPACT_FALLBACK = "Impact à définir"


class ChainService:
    def __init__(self, store: RecordStore, cache: TTLCache, settings: Settings):
        self.store = store
        self.cache = cache
        self.settings = settings

    def effective_depth(self, max_depth: int | None) -> int:
        if max_depth is None:
            return self.settings.default_max_depth
        if max_depth < 0:
            raise InvalidRequest("profondeur must be >= 0")
        return min(max_depth, self.settings.max_depth_ceiling)

    async def brand_chain(self, brand_id: int, max_depth: int | None = None) -> tuple[ChainResponse, bool]:
        """Enriched chain for a brand. Returns (response, served_from_cache)."""
        depth = self.effective_depth(max_depth)
        params = {"brand_id": brand_id, "max_depth": depth}

        cached = self.cache.get(CHAIN_NAMESPACE, params)
        if cached is not None:
            logger.info("Cache hit for brand %s", brand_id)
            return cached, True

        brand = await self.store.get_brand(brand_id)
        if brand is None:
            raise NotFound(f"brand {brand_id} not found")

        errors: list[str] = []
        nodes = await build_chain(self.store, brand.id, depth, errors=errors)
        if nodes:
            nodes = await enrich(self.store, nodes, brand.id, depth, cache=self.cache, errors=errors)

        response = ChainResponse(
            brand_name=brand.name,
            brand_id=brand.id,
            chain=nodes,
            max_depth_reached=chain_depth(nodes),
        )

        if errors:
            logger.warning(
                "Partial chain for %s (%d branch failures), not cached", brand.name, len(errors)
            )
        else:
            self.cache.set(CHAIN_NAMESPACE, response, params)

        logger.info(
            "Chain built for %s: %d nodes, depth %d",
            brand.name, len(nodes), response.max_depth_reached,
        )
        return response, False

    async def beneficiary_detail(self, beneficiary_id: int) -> BeneficiaryDetail:
        params = {"beneficiary_id": beneficiary_id}
        cached = self.cache.get(BENEFICIARY_NAMESPACE, params)
        if cached is not None:
            return cached

        beneficiary = await self.store.get_beneficiary(beneficiary_id)
        if beneficiary is None:
            raise NotFound(f"beneficiary {beneficiary_id} not found")
        brands = await self.store.get_brands_for_beneficiary(beneficiary_id)

        detail = BeneficiaryDetail(**beneficiary.model_dump(), marques=dedupe_brands(brands))
        self.cache.set(BENEFICIARY_NAMESPACE, detail, params)
        return detail

    async def brand_beneficiaries(self, brand_id: int) -> list[BrandBeneficiary]:
        """Direct beneficiaries of a brand, each with every brand it is linked to."""
        brand = await self.store.get_brand(brand_id)
        if brand is None:
            raise NotFound(f"brand {brand_id} not found")
        links = await self.store.get_brand_beneficiary_links(brand_id)

        async def _one(link) -> BrandBeneficiary | None:
            try:
                beneficiary = await self.store.get_beneficiary(link.beneficiary_id)
            except StoreUnavailable as e:
                logger.warning("beneficiary %s unavailable, link %s skipped: %s", link.beneficiary_id, link.id, e)
                return None
            if beneficiary is None:
                return None
            try:
                all_brands = await self.store.get_brands_for_beneficiary(beneficiary.id)
            except StoreUnavailable as e:
                logger.warning("brands of beneficiary %s unavailable: %s", beneficiary.id, e)
                all_brands = []
            return BrandBeneficiary(
                id=link.id,
                beneficiary_id=beneficiary.id,
                beneficiary_name=beneficiary.name,
                type=beneficiary.type,
                controversies=beneficiary.controversies,
                financial_link=link.financial_link,
                impact_description=link.impact_override or beneficiary.generic_impact or IMPACT_FALLBACK,
                brand_id=brand.id,
                toutes_marques=dedupe_brands(all_brands),
            )

        results = await asyncio.gather(*(_one(link) for link in links))
        return [r for r in results if r is not None]
