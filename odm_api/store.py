"""
Record store adapters (read-only).

The chain engine only talks to the ``RecordStore`` protocol. Two adapters:

- ``SupabaseStore``: Supabase PostgREST API over httpx.
  Docs: https://postgrest.org/en/stable/references/api/tables_views.html
- ``InMemoryStore``: dict-backed store for tests and local runs from a JSON
  fixture.

Every adapter method raises ``StoreUnavailable`` when the underlying call
fails. Lookups of a single record return None when it does not exist.
"""
import json
from typing import Protocol

import httpx

from .errors import StoreUnavailable
from .logging_utils import get_logger
from .models import (
    BENEFICIARY_TYPES,
    Beneficiary,
    Brand,
    BrandBeneficiaryLink,
    BrandRef,
    Controversy,
    IncomingRelation,
    OutgoingRelation,
)

logger = get_logger(__name__)


class RecordStore(Protocol):
    async def get_brand(self, brand_id: int) -> Brand | None: ...

    async def get_brand_beneficiary_links(self, brand_id: int) -> list[BrandBeneficiaryLink]: ...

    async def get_beneficiary(self, beneficiary_id: int) -> Beneficiary | None: ...

    async def get_outgoing_relations(self, beneficiary_id: int) -> list[OutgoingRelation]: ...

    async def get_incoming_relations(self, beneficiary_id: int) -> list[IncomingRelation]: ...

    async def get_brands_for_beneficiary(self, beneficiary_id: int) -> list[BrandRef]: ...


# Store values (French, from the back office) -> public type tags
_TYPE_ALIASES = {
    "individu": "individual",
    "groupe": "group",
    "fonds": "fund",
    "autre": "other",
}


def normalize_beneficiary_type(raw: str | None) -> str:
    if not raw:
        return "individual"
    value = raw.strip().lower()
    value = _TYPE_ALIASES.get(value, value)
    return value if value in BENEFICIARY_TYPES else "other"


# ---------------------------------------------------------------------------
# Supabase / PostgREST
# ---------------------------------------------------------------------------

BENEFICIARY_SELECT = (
    "id,nom,impact_generique,type_beneficiaire,"
    "controverses:controverse_beneficiaire(id,titre,date,source_url)"
)


def _beneficiary_from_row(row: dict) -> Beneficiary:
    controversies = [
        Controversy(
            id=c["id"],
            title=c.get("titre") or "",
            date=str(c["date"]) if c.get("date") else None,
            source_url=c.get("source_url"),
        )
        for c in (row.get("controverses") or [])
    ]
    return Beneficiary(
        id=row["id"],
        name=row.get("nom") or "Unknown",
        type=normalize_beneficiary_type(row.get("type_beneficiaire")),
        generic_impact=row.get("impact_generique"),
        controversies=controversies,
    )


class SupabaseStore:
    """Reads the ODM tables through the Supabase REST endpoint."""

    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base = f"{url.rstrip('/')}/rest/v1"
        self.headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Accept": "application/json",
            "User-Agent": "odm-api/0.1",
        }
        self.timeout = timeout
        self._transport = transport

    async def _select(self, table: str, params: dict) -> list[dict]:
        """GET /rest/v1/{table} and return the row list."""
        try:
            async with httpx.AsyncClient(
                headers=self.headers, timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.get(f"{self.base}/{table}", params=params)
        except httpx.HTTPError as e:
            raise StoreUnavailable(f"{table}: {e.__class__.__name__}: {e}") from e

        if resp.status_code != 200:
            raise StoreUnavailable(f"{table}: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise StoreUnavailable(f"{table}: invalid JSON payload") from e
        return data if isinstance(data, list) else []

    async def get_brand(self, brand_id: int) -> Brand | None:
        rows = await self._select("Marque", {
            "select": "id,nom,secteur_marque_id,message_boycott_tips",
            "id": f"eq.{brand_id}",
        })
        if not rows:
            return None
        row = rows[0]
        return Brand(
            id=row["id"],
            name=row.get("nom") or "Unknown",
            sector_id=row.get("secteur_marque_id"),
            boycott_tip=row.get("message_boycott_tips"),
        )

    async def get_brand_beneficiary_links(self, brand_id: int) -> list[BrandBeneficiaryLink]:
        rows = await self._select("Marque_beneficiaire", {
            "select": "id,beneficiaire_id,lien_financier,impact_specifique",
            "marque_id": f"eq.{brand_id}",
        })
        return [
            BrandBeneficiaryLink(
                id=r["id"],
                beneficiary_id=r["beneficiaire_id"],
                financial_link=r.get("lien_financier"),
                impact_override=r.get("impact_specifique"),
            )
            for r in rows
            if r.get("beneficiaire_id") is not None
        ]

    async def get_beneficiary(self, beneficiary_id: int) -> Beneficiary | None:
        rows = await self._select("Beneficiaires", {
            "select": BENEFICIARY_SELECT,
            "id": f"eq.{beneficiary_id}",
        })
        return _beneficiary_from_row(rows[0]) if rows else None

    async def get_outgoing_relations(self, beneficiary_id: int) -> list[OutgoingRelation]:
        rows = await self._select("beneficiaire_relation", {
            "select": "id,beneficiaire_cible_id,description_relation",
            "beneficiaire_source_id": f"eq.{beneficiary_id}",
        })
        return [
            OutgoingRelation(
                id=r["id"],
                target_id=r["beneficiaire_cible_id"],
                description=r.get("description_relation"),
            )
            for r in rows
            if r.get("beneficiaire_cible_id") is not None
        ]

    async def get_incoming_relations(self, beneficiary_id: int) -> list[IncomingRelation]:
        rows = await self._select("beneficiaire_relation", {
            "select": (
                "id,beneficiaire_source_id,description_relation,"
                "beneficiaire_source:Beneficiaires!beneficiaire_relation_beneficiaire_source_id_fkey(id,nom)"
            ),
            "beneficiaire_cible_id": f"eq.{beneficiary_id}",
        })
        relations = []
        for r in rows:
            if r.get("beneficiaire_source_id") is None:
                continue
            source = r.get("beneficiaire_source") or {}
            relations.append(IncomingRelation(
                id=r["id"],
                source_id=r["beneficiaire_source_id"],
                description=r.get("description_relation"),
                source_name=source.get("nom"),
            ))
        return relations

    async def get_brands_for_beneficiary(self, beneficiary_id: int) -> list[BrandRef]:
        rows = await self._select("Marque_beneficiaire", {
            "select": "Marque!marque_id(id,nom)",
            "beneficiaire_id": f"eq.{beneficiary_id}",
        })
        brands = []
        for r in rows:
            m = r.get("Marque")
            if m and m.get("id") is not None:
                brands.append(BrandRef(id=m["id"], name=m.get("nom") or "Unknown"))
        return brands


class UnconfiguredStore:
    """Stands in when no store settings are present; every call fails."""

    def __getattr__(self, name: str):
        if not name.startswith("get_"):
            raise AttributeError(name)

        async def _fail(*_args, **_kwargs):
            raise StoreUnavailable("record store not configured (set SUPABASE_URL and SUPABASE_ANON_KEY)")

        return _fail


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class InMemoryStore:
    """Dict-backed store. ``calls`` counts every adapter round-trip."""

    def __init__(self):
        self.brands: dict[int, Brand] = {}
        self.beneficiaries: dict[int, Beneficiary] = {}
        self.links: list[tuple[int, BrandBeneficiaryLink]] = []
        self.relations: list[tuple[int, int, int, str | None]] = []  # (id, source, target, description)
        self.calls = 0

    # -- building -----------------------------------------------------------

    def add_brand(self, brand_id: int, name: str, **fields) -> Brand:
        self.brands[brand_id] = Brand(id=brand_id, name=name, **fields)
        return self.brands[brand_id]

    def add_beneficiary(self, beneficiary_id: int, name: str, type: str = "group", **fields) -> Beneficiary:
        self.beneficiaries[beneficiary_id] = Beneficiary(
            id=beneficiary_id, name=name, type=normalize_beneficiary_type(type), **fields
        )
        return self.beneficiaries[beneficiary_id]

    def link(
        self,
        brand_id: int,
        beneficiary_id: int,
        financial_link: str | None = None,
        impact_override: str | None = None,
    ) -> BrandBeneficiaryLink:
        link = BrandBeneficiaryLink(
            id=len(self.links) + 1,
            beneficiary_id=beneficiary_id,
            financial_link=financial_link,
            impact_override=impact_override,
        )
        self.links.append((brand_id, link))
        return link

    def relate(self, source_id: int, target_id: int, description: str | None = None) -> None:
        self.relations.append((len(self.relations) + 1, source_id, target_id, description))

    @classmethod
    def from_dict(cls, data: dict) -> "InMemoryStore":
        """Build a store from a fixture document.

        Expected keys: ``brands``, ``beneficiaries`` (with optional
        ``controversies``), ``links`` and ``relations``.
        """
        store = cls()
        for b in data.get("brands", []):
            store.add_brand(b["id"], b["name"], sector_id=b.get("sector_id"), boycott_tip=b.get("boycott_tip"))
        for b in data.get("beneficiaries", []):
            store.add_beneficiary(
                b["id"],
                b["name"],
                type=b.get("type") or "individual",
                generic_impact=b.get("generic_impact"),
                controversies=[Controversy(**c) for c in b.get("controversies", [])],
            )
        for link in data.get("links", []):
            store.link(link["brand_id"], link["beneficiary_id"], link.get("financial_link"), link.get("impact_override"))
        for rel in data.get("relations", []):
            store.relate(rel["source_id"], rel["target_id"], rel.get("description"))
        return store

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryStore":
        with open(path, encoding="utf-8") as fh:
            return cls.from_dict(json.load(fh))

    # -- RecordStore --------------------------------------------------------

    async def get_brand(self, brand_id: int) -> Brand | None:
        self.calls += 1
        return self.brands.get(brand_id)

    async def get_brand_beneficiary_links(self, brand_id: int) -> list[BrandBeneficiaryLink]:
        self.calls += 1
        return [link for b, link in self.links if b == brand_id]

    async def get_beneficiary(self, beneficiary_id: int) -> Beneficiary | None:
        self.calls += 1
        return self.beneficiaries.get(beneficiary_id)

    async def get_outgoing_relations(self, beneficiary_id: int) -> list[OutgoingRelation]:
        self.calls += 1
        return [
            OutgoingRelation(id=rid, target_id=target, description=desc)
            for rid, source, target, desc in self.relations
            if source == beneficiary_id
        ]

    async def get_incoming_relations(self, beneficiary_id: int) -> list[IncomingRelation]:
        self.calls += 1
        relations = []
        for rid, source, target, desc in self.relations:
            if target != beneficiary_id:
                continue
            src = self.beneficiaries.get(source)
            relations.append(IncomingRelation(
                id=rid, source_id=source, description=desc, source_name=src.name if src else None
            ))
        return relations

    async def get_brands_for_beneficiary(self, beneficiary_id: int) -> list[BrandRef]:
        self.calls += 1
        return [
            BrandRef(id=self.brands[b].id, name=self.brands[b].name)
            for b, link in self.links
            if link.beneficiary_id == beneficiary_id and b in self.brands
        ]
