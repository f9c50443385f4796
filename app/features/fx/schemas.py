"""Pydantic schemas for FX rates."""

import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Currency = Literal["GBP", "USD", "EUR"]


class FxRates(BaseModel):
    """Multipliers converting each supported currency into the user's currency.

    Consumed by pricing: ``amount_in_user = amount * <ccy>_to_user``.
    """

    gbp_to_user: float = Field(..., gt=0, description="Multiply GBP amounts by this.")
    usd_to_user: float = Field(..., gt=0, description="Multiply USD amounts by this.")
    eur_to_user: float = Field(..., gt=0, description="Multiply EUR amounts by this.")
    user_currency: Currency = Field(..., description="Currency all amounts convert into.")
    timestamp: datetime.datetime | None = Field(
        None, description="When the underlying rates were captured."
    )

    def rate_for(self, currency: Currency) -> float:
        """Multiplier for one currency."""
        return {
            "GBP": self.gbp_to_user,
            "USD": self.usd_to_user,
            "EUR": self.eur_to_user,
        }[currency]


class FxRateUpsert(BaseModel):
    """Request body for storing a day's rates.

    Either rate may be omitted; it is carried forward from the most recent
    earlier day, or from configured fallbacks when no history exists.
    """

    gbp_per_usd: Decimal | None = Field(None, gt=0, description="Pounds per one US dollar.")
    gbp_per_eur: Decimal | None = Field(None, gt=0, description="Pounds per one euro.")
    source: str = Field("manual", max_length=50, description="Rate provenance.")
    meta: dict[str, Any] = Field(default_factory=dict, description="Free-form metadata.")


class FxRateResponse(BaseModel):
    """A stored day of rates."""

    model_config = ConfigDict(from_attributes=True)

    as_of: datetime.date
    gbp_per_usd: Decimal
    gbp_per_eur: Decimal
    usd_per_gbp: Decimal
    eur_per_gbp: Decimal
    source: str


class FxConversionResponse(BaseModel):
    """Rate between two currencies on a date."""

    date: datetime.date
    from_currency: Currency
    to_currency: Currency
    rate: Decimal = Field(..., description="Multiply from-currency amounts by this.")
