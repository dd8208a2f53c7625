from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

OptionType = Literal["call", "put"]

# Warning codes attached to results instead of raising.
MISSING_DELTA = "missing_delta"
MISSING_MARK_PRICE = "missing_mark_price"
INVALID_SPOT = "invalid_spot"
EMPTY_POINT_SET = "empty_point_set"
COLLAPSED_DOMAIN = "collapsed_domain"
EMPTY_VIEWPORT = "empty_viewport"
NON_FINITE_POINTS_DROPPED = "non_finite_points_dropped"


class Contract(BaseModel):
    """One option contract after normalization. Replaced wholesale on every refresh."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    symbol: str
    strike: float = Field(gt=0.0)
    mark_price: float | None = Field(default=None, ge=0.0, alias="markPrice")
    iv: float | None = None
    delta: float | None = None
    gamma: float | None = None
    theta: float | None = None
    bid: float | None = None
    ask: float | None = None
    volume: float = Field(default=0.0, ge=0.0)
    open_interest: float = Field(default=0.0, ge=0.0, alias="openInterest")
    option_type: OptionType = Field(alias="type")
    expiry: date
    volume_change: float = Field(default=0.0, alias="volumeChange")
    oi_change: float = Field(default=0.0, alias="oiChange")


CONTRACT_FIELDS = frozenset(Contract.model_fields)


class ContractAlerts(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_in_decision_zone: bool = Field(default=False, alias="isInDecisionZone")
    is_underpriced: bool = Field(default=False, alias="isUnderpriced")
    is_overpriced: bool = Field(default=False, alias="isOverpriced")
    has_volume_spike: bool = Field(default=False, alias="hasVolumeSpike")
    has_oi_spike: bool = Field(default=False, alias="hasOiSpike")
    has_imbalance: bool = Field(default=False, alias="hasImbalance")

    def active(self) -> list[str]:
        return [name for name, value in self.model_dump().items() if value]


class ScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    distance: float = Field(ge=0.0, le=100.0)
    delta: float = Field(ge=0.0, le=100.0)
    premium: float = Field(ge=0.0, le=100.0)
    volume: float = Field(ge=0.0, le=100.0)


class EnrichedContract(Contract):
    fair_premium: float = Field(ge=0.0, alias="fairPremium")
    premium_anomaly: float = Field(ge=-100.0, le=100.0, alias="premiumAnomaly")
    buy_score: int = Field(ge=0, le=100, alias="buyScore")
    alerts: ContractAlerts = Field(default_factory=ContractAlerts)
    score_breakdown: ScoreBreakdown = Field(alias="scoreBreakdown")
    warnings: list[str] = Field(default_factory=list)

    def base_contract(self) -> Contract:
        return Contract(**self.model_dump(include=CONTRACT_FIELDS))


class Margins(BaseModel):
    model_config = ConfigDict(frozen=True)

    top: float = Field(default=60.0, ge=0.0)
    right: float = Field(default=60.0, ge=0.0)
    bottom: float = Field(default=80.0, ge=0.0)
    left: float = Field(default=80.0, ge=0.0)


class Viewport(BaseModel):
    """Rendering surface in pixels; the drawable area is what the margins leave over."""

    model_config = ConfigDict(frozen=True)

    width: float = Field(default=960.0, ge=0.0)
    height: float = Field(default=600.0, ge=0.0)
    margins: Margins = Field(default_factory=Margins)

    @property
    def inner_width(self) -> float:
        return self.width - self.margins.left - self.margins.right

    @property
    def inner_height(self) -> float:
        return self.height - self.margins.top - self.margins.bottom


class GridResolution(BaseModel):
    model_config = ConfigDict(frozen=True)

    cols: int = Field(default=24, ge=1, le=500)
    rows: int = Field(default=15, ge=1, le=500)


class AxisDomains(BaseModel):
    model_config = ConfigDict(frozen=True)

    strike: tuple[float, float]
    premium: tuple[float, float]
    is_fallback: bool = False

    @model_validator(mode="after")
    def _validate_order(self) -> "AxisDomains":
        if self.strike[0] > self.strike[1] or self.premium[0] > self.premium[1]:
            raise ValueError("axis domain min must be <= max")
        return self
