from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field


class CartItem(BaseModel):
    id: int | str
    name: str = Field(min_length=1, max_length=200)
    price: float = Field(gt=0, le=1_000_000)  # reais, como vem do carrinho
    quantity: int = Field(ge=1, le=100)
    image: str | None = Field(default=None, max_length=500)
    category: str | None = Field(default=None, max_length=100)


class Customer(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=20)
    document: str | None = Field(
        default=None, max_length=20, validation_alias=AliasChoices("document", "cpf", "cpfCnpj")
    )


class CouponRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str
    discount_amount: float = Field(default=0, alias="discountAmount")


class OrderRequest(BaseModel):
    items: list[CartItem] = Field(min_length=1, max_length=50)
    customer: Customer
    coupon: CouponRef | None = None


class PixOrderRequest(OrderRequest):
    pass


class BoletoOrderRequest(OrderRequest):
    model_config = ConfigDict(populate_by_name=True)

    description: str | None = Field(default=None, max_length=200)
    external_reference: str | None = Field(default=None, alias="externalReference")


class PaymentLinkRequest(OrderRequest):
    model_config = ConfigDict(populate_by_name=True)

    redirect_url: str | None = Field(default=None, alias="redirectUrl")
    action: str | None = None


class OrderNsuRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_nsu: str | None = Field(default=None, alias="orderNsu")
