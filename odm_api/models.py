from pydantic import BaseModel


BENEFICIARY_TYPES = ("individual", "group", "fund", "other")


class BrandRef(BaseModel):
    id: int
    name: str


class Brand(BrandRef):
    sector_id: int | None = None
    boycott_tip: str | None = None


class Controversy(BaseModel):
    id: int
    title: str
    date: str | None = None
    source_url: str | None = None


class Beneficiary(BaseModel):
    id: int
    name: str
    type: str = "individual"          # individual | group | fund | other
    generic_impact: str | None = None
    controversies: list[Controversy] = []


class BrandBeneficiaryLink(BaseModel):
    id: int
    beneficiary_id: int
    financial_link: str | None = None
    impact_override: str | None = None


class OutgoingRelation(BaseModel):
    id: int
    target_id: int
    description: str | None = None


class IncomingRelation(BaseModel):
    id: int
    source_id: int
    description: str | None = None
    source_name: str | None = None    # embedded by the store when available


class TransitiveBrands(BaseModel):
    """Brands attributed to one beneficiary.

    ``indirect`` is keyed by the path of intermediary beneficiary ids, closest
    intermediary first. ``names`` maps every id appearing in a path to the
    beneficiary name used when the groups are rendered.
    """

    direct: list[BrandRef] = []
    indirect: dict[tuple[int, ...], list[BrandRef]] = {}
    names: dict[int, str] = {}


class ChainNode(BaseModel):
    beneficiary: Beneficiary
    level: int                        # 0 = directly linked to the brand
    financial_link: str
    next_relations: list[OutgoingRelation] = []
    marques_directes: list[BrandRef] = []
    marques_indirectes: dict[str, list[BrandRef]] = {}


class ChainResponse(BaseModel):
    brand_name: str
    brand_id: int
    chain: list[ChainNode] = []
    max_depth_reached: int = 0


class BeneficiaryDetail(Beneficiary):
    marques: list[BrandRef] = []


class BrandBeneficiary(BaseModel):
    """One beneficiary of a brand, as listed by ``/marques/{id}/beneficiaires``."""

    id: int                           # link id
    beneficiary_id: int
    beneficiary_name: str
    type: str
    controversies: list[Controversy] = []
    financial_link: str | None = None
    impact_description: str
    brand_id: int
    toutes_marques: list[BrandRef] = []
