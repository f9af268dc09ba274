"""
ODM beneficiary API
Serves the ownership chain of a brand: who profits from it, through which
holdings, and which other brands feed the same beneficiaries.
"""
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .cache import TTLCache
from .config import Settings
from .errors import ChainError, InvalidRequest
from .logging_utils import configure_logging, get_logger
from .models import BeneficiaryDetail, BrandBeneficiary, ChainResponse
from .service import ChainService
from .store import InMemoryStore, RecordStore, SupabaseStore, UnconfiguredStore

logger = get_logger(__name__)


def make_store(settings: Settings) -> RecordStore:
    if settings.supabase_url and settings.supabase_key:
        return SupabaseStore(settings.supabase_url, settings.supabase_key, timeout=settings.store_timeout)
    if settings.store_fixture:
        logger.info("Using in-memory store from %s", settings.store_fixture)
        return InMemoryStore.from_json_file(settings.store_fixture)
    logger.error("Missing Supabase configuration")
    return UnconfiguredStore()


def _parse_int(raw: str | None, name: str, required: bool = False) -> int | None:
    if raw is None or not raw.strip():
        if required:
            raise InvalidRequest(f"{name} is required")
        return None
    try:
        return int(raw)
    except ValueError:
        raise InvalidRequest(f"{name} must be an integer") from None


def _performance_grade(hit_rate: float) -> str:
    if hit_rate >= 70:
        return "excellent"
    if hit_rate >= 50:
        return "good"
    if hit_rate >= 30:
        return "fair"
    return "poor"


def create_app(
    settings: Settings | None = None,
    store: RecordStore | None = None,
    cache: TTLCache | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    if cache is None:
        cache = TTLCache(ttls=settings.cache_ttls, max_entries=settings.cache_max_entries)
    service = ChainService(store if store is not None else make_store(settings), cache, settings)

    app = FastAPI(
        title="ODM API",
        description="Ownership chains of brands: beneficiaries, holdings and the brands they profit from.",
        version=__version__,
    )
    app.state.settings = settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(ChainError)
    async def chain_error_handler(request: Request, exc: ChainError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
            message = str(exc) if settings.debug else "Erreur serveur"
        else:
            message = str(exc)
        return JSONResponse(status_code=exc.status_code, content={"error": message})

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "service": "odm-api",
            "version": __version__,
            "environment": settings.environment,
        }

    @app.get("/beneficiaires/chaine", response_model=ChainResponse)
    async def beneficiary_chain(
        response: Response,
        marqueId: str | None = None,
        profondeur: str | None = None,
    ):
        brand_id = _parse_int(marqueId, "marqueId", required=True)
        depth = _parse_int(profondeur, "profondeur")
        result, hit = await service.brand_chain(brand_id, depth)
        response.headers["X-Cache"] = "HIT" if hit else "MISS"
        return result

    @app.get("/beneficiaires/{beneficiary_id}", response_model=BeneficiaryDetail)
    async def beneficiary_detail(beneficiary_id: int):
        return await service.beneficiary_detail(beneficiary_id)

    @app.get("/marques/{brand_id}/beneficiaires", response_model=list[BrandBeneficiary])
    async def brand_beneficiaries(brand_id: int):
        return await service.brand_beneficiaries(brand_id)

    @app.get("/cache/metrics")
    async def cache_metrics():
        metrics = cache.metrics()
        return {
            "cache_metrics": metrics,
            "performance": _performance_grade(metrics["hit_rate"]),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("odm_api.main:app", host="0.0.0.0", port=8000)
