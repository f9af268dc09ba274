"""
Runtime settings, read from environment variables.
"""
import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return int(v)


@dataclass(frozen=True)
class Settings:
    supabase_url: str | None = None
    supabase_key: str | None = None
    store_timeout: float = 15.0
    store_fixture: str | None = None  # JSON file for the in-memory store

    debug: bool = False
    environment: str = "production"
    log_level: str = "INFO"

    default_max_depth: int = 5
    max_depth_ceiling: int = 10

    # Seconds
    chain_cache_ttl: int = 15 * 60
    transitive_cache_ttl: int = 30 * 60
    beneficiary_cache_ttl: int = 30 * 60
    cache_max_entries: int = 200

    @property
    def cache_ttls(self) -> dict[str, int]:
        return {
            "beneficiaires_chaine": self.chain_cache_ttl,
            "marques_transitives": self.transitive_cache_ttl,
            "beneficiaires": self.beneficiary_cache_ttl,
        }

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_key=os.getenv("SUPABASE_ANON_KEY") or None,
            store_timeout=float(os.getenv("STORE_TIMEOUT", "15") or "15"),
            store_fixture=os.getenv("STORE_FIXTURE") or None,
            debug=_env_bool("DEBUG", False),
            environment=os.getenv("ENVIRONMENT", "production"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            default_max_depth=_env_int("DEFAULT_MAX_DEPTH", 5),
            max_depth_ceiling=_env_int("MAX_DEPTH_CEILING", 10),
            chain_cache_ttl=_env_int("CHAIN_CACHE_TTL", 15 * 60),
            transitive_cache_ttl=_env_int("TRANSITIVE_CACHE_TTL", 30 * 60),
            beneficiary_cache_ttl=_env_int("BENEFICIARY_CACHE_TTL", 30 * 60),
            cache_max_entries=_env_int("CACHE_MAX_ENTRIES", 200),
        )
