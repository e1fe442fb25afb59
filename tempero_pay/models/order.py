from datetime import datetime

from sqlalchemy import String, Integer, DateTime, JSON, func
from sqlalchemy.orm import Mapped, mapped_column

from tempero_pay.database.base import Base


class OrderStatus:
    PENDING = "pending"
    PENDING_PIX = "pending_pix"
    PENDING_BOLETO = "pending_boleto"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# pedidos aguardando pagamento
AWAITING_STATUSES = (OrderStatus.PENDING, OrderStatus.PENDING_PIX, OrderStatus.PENDING_BOLETO)


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_nsu: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.PENDING, index=True, nullable=False)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)  # centavos
    paid_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    discount_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    coupon_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    customer_name: Mapped[str] = mapped_column(String(120), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    customer_document: Mapped[str | None] = mapped_column(String(18), nullable=True)
    items: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    payment_method: Mapped[str | None] = mapped_column(String(30), nullable=True)
    installments: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payment_link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    transaction_nsu: Mapped[str | None] = mapped_column(String(120), nullable=True)
    invoice_ref: Mapped[str | None] = mapped_column(String(120), nullable=True)
    receipt_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    confirmation_mode: Mapped[str | None] = mapped_column(String(40), nullable=True)
    confirmation_source: Mapped[str | None] = mapped_column(String(40), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
