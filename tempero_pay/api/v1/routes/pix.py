# tempero_pay/api/v1/routes/pix.py
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from tempero_pay.core.security import require_admin
from tempero_pay.database.session import get_db
from tempero_pay.models.order import AWAITING_STATUSES, Order, OrderStatus
from tempero_pay.schemas.checkout import PixOrderRequest
from tempero_pay.schemas.statement import VerifyPixRequest
from tempero_pay.services import orders as order_service
from tempero_pay.services import reconciliation, settings_store
from tempero_pay.services.notifications import Notifier, get_notifier
from tempero_pay.services.pix_code import PixPaymentData, generate_pix_code

logger = logging.getLogger(__name__)

router = APIRouter()

STALE_AFTER = timedelta(hours=24)


@router.post("/create-pix-order")
def create_pix_order(
    body: PixOrderRequest,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    pix = settings_store.load_pix_settings(db)
    priced = order_service.price_cart(db, body.items, body.coupon)

    order = order_service.create_order(
        db,
        prefix="PIX",
        items=body.items,
        customer=body.customer,
        priced=priced,
        status=OrderStatus.PENDING_PIX,
        payment_method="pix",
    )
    db.commit()
    db.refresh(order)

    tx_id = order_service.tx_id_from_nsu(order.order_nsu)
    pix_code = generate_pix_code(
        PixPaymentData(
            pix_key=pix.pix_key,
            pix_key_type=pix.pix_key_type,
            merchant_name=pix.merchant_name,
            merchant_city=pix.merchant_city,
            amount=Decimal(order.total_amount) / 100,
            tx_id=tx_id,
        )
    )
    logger.info("pedido PIX criado: %s (%s centavos)", order.order_nsu, order.total_amount)
    background.add_task(notifier.new_order, order_service.snapshot(order))

    return {
        "success": True,
        "orderNsu": order.order_nsu,
        "txId": tx_id,
        "totalAmount": order_service.to_reais(order.total_amount),
        "pixSettings": {
            "pixKey": pix.pix_key,
            "pixKeyType": pix.pix_key_type,
            "merchantName": pix.merchant_name,
            "merchantCity": pix.merchant_city,
        },
        "pixCode": pix_code,
    }


@router.post("/verify-pix-payment")
def verify_pix_payment(
    background: BackgroundTasks,
    body: VerifyPixRequest | None = None,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    _admin: dict = Depends(require_admin),
):
    conn = settings_store.active_connection(db)
    if conn is None:
        return {"success": True, "message": "Nenhuma conexão bancária ativa", "verified": 0}

    if body is not None and body.transactions:
        outcome = reconciliation.reconcile(db, body.transactions, auto_confirm=True, payment_method="pix")
        for snap in outcome.confirmed:
            background.add_task(notifier.order_paid, snap)
        return {**outcome.body, "bank_id": conn.bank_id, "verified": outcome.body["confirmed"]}

    pending = db.scalars(
        select(Order)
        .where(Order.status.in_(AWAITING_STATUSES), Order.payment_method == "pix")
        .order_by(Order.created_at.desc())
        .limit(50)
    ).all()

    now = datetime.now(timezone.utc)
    results = []
    for order in pending:
        created = order.created_at
        if created is not None and created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        stale = created is not None and now - created > STALE_AFTER
        if stale:
            logger.warning("pedido PIX %s pendente há mais de 24h", order.order_nsu)
        results.append(
            {
                "orderNsu": order.order_nsu,
                "totalAmount": order_service.to_reais(order.total_amount),
                "status": "stale" if stale else "pending",
            }
        )

    return {
        "success": True,
        "bank_id": conn.bank_id,
        "last_sync": conn.last_sync,
        "checked": len(results),
        "verified": 0,
        "results": results,
    }
