"""Property recommendation models."""

from pydantic import Field, model_validator

from core.models.base import CamelModel


class BudgetRange(CamelModel):
    """Buyer's acceptable price range, inclusive."""

    min: float = Field(..., ge=0)
    max: float = Field(..., ge=0)

    @model_validator(mode="after")
    def check_order(self) -> "BudgetRange":
        if self.max < self.min:
            raise ValueError("budget max must be greater than or equal to min")
        return self


class BuyerPreferences(CamelModel):
    """What a buyer is looking for. Every field is optional."""

    budget: BudgetRange | None = None
    locations: list[str] = Field(default_factory=list)
    property_types: list[str] = Field(default_factory=list)
    bedrooms: int | None = Field(None, ge=0)
    amenities: list[str] = Field(default_factory=list)
    min_area: float | None = Field(None, ge=0)


class PropertyListing(CamelModel):
    """The slice of a catalog property the matcher reads."""

    id: str
    name: str | None = None
    price: float = Field(..., ge=0)
    location: str | None = None
    type: str | None = None
    bedrooms: int | None = Field(None, ge=0)
    area: float | None = Field(None, ge=0)
    amenities: list[str] = Field(default_factory=list)
    is_featured: bool = False
    views: int = Field(0, ge=0)
    inquiries: int = Field(0, ge=0)
    days_on_market: int | None = Field(None, ge=0)


class PropertyMatch(CamelModel):
    """Score of one listing against one preference set."""

    property_id: str
    score: int = Field(..., ge=0, le=100)
    reasons: list[str]
    confidence: float
    conversion_probability: float
    used_model: bool = False


class RecommendationRequest(CamelModel):
    """Body of POST /recommendations."""

    preferences: BuyerPreferences = Field(default_factory=BuyerPreferences)
    properties: list[PropertyListing] = Field(..., max_length=500)
