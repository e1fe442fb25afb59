# tempero_pay/api/v1/routes/boleto.py
import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from tempero_pay.core.errors import ServiceError
from tempero_pay.database.session import get_db
from tempero_pay.models.order import OrderStatus
from tempero_pay.models.payment_title import PaymentTitle
from tempero_pay.schemas.checkout import BoletoOrderRequest
from tempero_pay.services import boleto as boleto_service
from tempero_pay.services import orders as order_service
from tempero_pay.services import settings_store
from tempero_pay.services.gateways import GatewayClient, get_gateway_client
from tempero_pay.services.notifications import Notifier, get_notifier
from tempero_pay.services.tax_id import check_tax_id, only_digits

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_tax_id(body: BoletoOrderRequest) -> None:
    check = check_tax_id(body.customer.document)
    if not check.valid:
        raise ServiceError(check.message)
    body.customer.document = only_digits(body.customer.document)


@router.post("/create-boleto-order")
def create_boleto_order(
    body: BoletoOrderRequest,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    _require_tax_id(body)
    cfg = settings_store.load_boleto_settings(db)
    priced = order_service.price_cart(db, body.items, body.coupon)
    due = boleto_service.due_date(cfg.days_to_expire)

    order = order_service.create_order(
        db,
        prefix="BOL",
        items=body.items,
        customer=body.customer,
        priced=priced,
        status=OrderStatus.PENDING_BOLETO,
        payment_method="boleto",
    )
    db.add(PaymentTitle(order_id=order.id, provider="manual", status="issued", due_date=due))
    db.commit()
    db.refresh(order)

    logger.info("pedido boleto criado: %s vence em %s", order.order_nsu, due)
    background.add_task(notifier.new_order, order_service.snapshot(order))

    return {
        "success": True,
        "orderNsu": order.order_nsu,
        "totalAmount": order_service.to_reais(order.total_amount),
        "dueDate": due,
        "boletoData": boleto_service.boleto_data(cfg),
    }


@router.post("/create-asaas-boleto")
async def create_asaas_boleto(
    body: BoletoOrderRequest,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    gateways: GatewayClient = Depends(get_gateway_client),
    notifier: Notifier = Depends(get_notifier),
):
    _require_tax_id(body)
    reg = settings_store.registered_boleto_settings(db)
    priced = order_service.price_cart(db, body.items, body.coupon)
    due = boleto_service.due_date(reg["days_to_expire"])

    order_nsu = body.external_reference or order_service.new_order_nsu("BOL")
    if order_service.get_order_by_nsu(db, order_nsu) is not None:
        raise ServiceError("Pedido já existe para esta referência")

    payment = await gateways.create_asaas_boleto(
        access_token=reg["access_token"],
        environment=reg["environment"],
        customer=body.customer,
        value_cents=priced.total,
        due_date=due,
        description=body.description or f"Pedido {order_nsu}",
        external_reference=order_nsu,
    )
    boleto_url = payment.get("bankSlipUrl") or payment.get("invoiceUrl") or ""
    digitable_line = payment.get("identificationField") or ""
    barcode = payment.get("barcode") or ""

    order = order_service.create_order(
        db,
        prefix="BOL",
        items=body.items,
        customer=body.customer,
        priced=priced,
        status=OrderStatus.PENDING_BOLETO,
        payment_method="boleto",
        order_nsu=order_nsu,
        payment_link=boleto_url,
    )
    db.add(
        PaymentTitle(
            order_id=order.id,
            provider="asaas",
            provider_title_id=str(payment["id"]),
            status="pending",
            due_date=due,
            boleto_url=boleto_url,
            digitable_line=digitable_line,
            barcode=barcode,
        )
    )
    db.commit()
    db.refresh(order)

    logger.info("boleto Asaas %s emitido para %s", payment["id"], order.order_nsu)
    background.add_task(notifier.new_order, order_service.snapshot(order))

    return {
        "success": True,
        "orderNsu": order.order_nsu,
        "totalAmount": order_service.to_reais(order.total_amount),
        "dueDate": due,
        "boletoUrl": boleto_url,
        "digitableLine": digitable_line,
        "barcode": barcode,
        "providerTitleId": str(payment["id"]),
    }
