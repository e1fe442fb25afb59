# tempero_pay/api/v1/routes/payments.py
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import ValidationError
from sqlalchemy.orm import Session

from tempero_pay.core.config import settings
from tempero_pay.core.errors import ServiceError
from tempero_pay.core.security import admin_claims, optional_bearer
from tempero_pay.database.session import get_db
from tempero_pay.models.order import OrderStatus
from tempero_pay.schemas.checkout import OrderNsuRequest, PaymentLinkRequest
from tempero_pay.schemas.settings import CardGatewayRequest, CardGatewaySettings
from tempero_pay.services import orders as order_service
from tempero_pay.services import settings_store
from tempero_pay.services.gateways import GatewayClient, get_gateway_client
from tempero_pay.services.notifications import Notifier, get_notifier

logger = logging.getLogger(__name__)

router = APIRouter()


def _redirect_url(body: PaymentLinkRequest) -> str:
    return body.redirect_url or f"{settings.STORE_URL}/pagamento/confirmacao"


@router.post("/check-payment")
def check_payment(body: OrderNsuRequest, db: Session = Depends(get_db)):
    if not body.order_nsu:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Missing orderNsu")
    order = order_service.require_order(db, body.order_nsu)
    return {"success": True, "order": order_service.order_public(order)}


@router.post("/create-payment-link")
async def create_payment_link(
    body: PaymentLinkRequest,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    gateways: GatewayClient = Depends(get_gateway_client),
    notifier: Notifier = Depends(get_notifier),
):
    priced = order_service.price_cart(db, body.items, body.coupon)
    order_nsu = order_service.new_order_nsu("ORDER")

    url = await gateways.create_infinitepay_link(
        order_nsu=order_nsu, items=body.items, customer=body.customer, redirect_url=_redirect_url(body)
    )

    order = order_service.create_order(
        db,
        prefix="ORDER",
        items=body.items,
        customer=body.customer,
        priced=priced,
        status=OrderStatus.PENDING,
        payment_method="credit_card",
        order_nsu=order_nsu,
        payment_link=url,
    )
    db.commit()
    db.refresh(order)

    background.add_task(notifier.new_order, order_service.snapshot(order))
    return {"success": True, "paymentUrl": url, "orderNsu": order.order_nsu}


@router.post("/create-pagseguro-payment")
async def create_pagseguro_payment(
    body: dict,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    gateways: GatewayClient = Depends(get_gateway_client),
    notifier: Notifier = Depends(get_notifier),
):
    if body.get("action") == "check_config":
        return {"configured": gateways.pagseguro_configured()}

    try:
        req = PaymentLinkRequest.model_validate(body)
    except ValidationError as e:
        raise RequestValidationError(e.errors())
    if not req.customer.phone:
        raise ServiceError("Telefone do cliente é obrigatório")

    priced = order_service.price_cart(db, req.items, req.coupon)
    order_nsu = order_service.new_order_nsu("PS")
    url = await gateways.create_pagseguro_checkout(
        order_nsu=order_nsu, items=req.items, customer=req.customer, redirect_url=_redirect_url(req)
    )

    order = order_service.create_order(
        db,
        prefix="PS",
        items=req.items,
        customer=req.customer,
        priced=priced,
        status=OrderStatus.PENDING,
        payment_method="credit_card",
        order_nsu=order_nsu,
        payment_link=url,
    )
    db.commit()
    db.refresh(order)

    background.add_task(notifier.new_order, order_service.snapshot(order))
    return {"success": True, "paymentUrl": url, "orderNsu": order.order_nsu}


@router.post("/card-gateway-settings")
def card_gateway_settings(
    body: CardGatewayRequest,
    db: Session = Depends(get_db),
    creds: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
    gateways: GatewayClient = Depends(get_gateway_client),
):
    if body.action == "get_settings":
        cfg = settings_store.load_card_gateway(db, body.gateway)
        # segredo do webhook não sai para o navegador
        return {"settings": cfg.model_dump(exclude={"webhook_secret"})}

    if body.action == "check_config":
        if body.gateway == "pagseguro":
            configured = gateways.pagseguro_configured()
        else:
            configured = gateways.infinitepay_configured()
        return {"configured": configured}

    claims, err = admin_claims(creds)
    if claims is None:
        raise HTTPException(status.HTTP_403_FORBIDDEN, err)
    incoming = body.settings or CardGatewaySettings()
    if incoming.webhook_secret is None:
        current = settings_store.load_card_gateway(db, body.gateway)
        incoming = incoming.model_copy(update={"webhook_secret": current.webhook_secret})
    saved = settings_store.save_card_gateway(db, body.gateway, incoming)
    return {"success": True, "settings": saved.model_dump(exclude={"webhook_secret"})}


@router.post("/send-order-emails")
def send_order_emails(
    body: OrderNsuRequest,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    if not body.order_nsu:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Missing orderNsu")
    order = order_service.require_order(db, body.order_nsu)
    if order.status != OrderStatus.PAID:
        raise ServiceError("Pedido ainda não está pago")

    if not order_service.claim_paid_notification(db, order.id):
        logger.info("aviso de pagamento de %s já disparado", order.order_nsu)
        return {"success": True, "orderNsu": order.order_nsu, "alreadySent": True}
    db.commit()

    background.add_task(notifier.order_paid, order_service.snapshot(order))
    return {"success": True, "orderNsu": order.order_nsu, "alreadySent": False}
