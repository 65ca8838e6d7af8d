# src/karpenter_ovhcloud/models/pricing.py

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PricingModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PricingLocale(PricingModel):
    currency_code: str = Field("", alias="currencyCode")
    subsidiary: str = ""


class PricingDetail(PricingModel):
    capacities: List[str] = Field(default_factory=list)
    description: str = ""
    duration: str = ""
    interval: int = 0
    minimum_repeat: int = Field(0, alias="minimumRepeat")
    maximum_repeat: Optional[int] = Field(None, alias="maximumRepeat")
    price: int = Field(0, description="Price in fixed-point micro-units")
    price_in_ucents: int = Field(0, alias="priceInUcents")
    tax: int = 0


class PricingPlan(PricingModel):
    plan_code: str = Field("", alias="planCode")
    invoice_name: str = Field("", alias="invoiceName")
    pricings: List[PricingDetail] = Field(default_factory=list)


class PricingAddon(PricingPlan):
    """Catalog addon. Instance flavors are listed as addons."""

    pass


class PricingCatalog(PricingModel):
    catalog_id: int = Field(0, alias="catalogId")
    locale: PricingLocale = Field(default_factory=PricingLocale)
    plans: List[PricingPlan] = Field(default_factory=list)
    addons: List[PricingAddon] = Field(default_factory=list)
