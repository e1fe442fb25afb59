from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class CouponIn(BaseModel):
    code: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=200)
    discount_type: Literal["percentage", "fixed"] | None = None
    discount_value: float | None = Field(default=None, ge=0)
    min_order_value: float | None = Field(default=None, ge=0)
    max_uses: int | None = Field(default=None, ge=1)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    is_active: bool | None = None


class ManageCouponsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["validate", "create", "list", "update", "delete"]
    code: str | None = None
    order_total: float = Field(default=0, ge=0, alias="orderTotal")
    coupon_id: int | None = Field(default=None, alias="couponId")
    coupon: CouponIn | None = None
