# tempero_pay/services/reconciliation.py
"""
Conciliação de extrato bancário contra pedidos aguardando pagamento.

Pontuação (0-100) de um par pedido x transação:

    valor exato (|Δ| <= 1 centavo) ........ 60
    valor próximo (dentro da tolerância) .. 20
    data: mesmo dia +20, 1 dia +15, até 3 dias +10, dentro da janela +5
    descrição: NSU do pedido +15, nome do cliente +10, "pix" +5

Só valor exato vira `matched`; valor próximo vira `amount_mismatch` e nunca
confirma pedido.
"""
from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from tempero_pay.core.config import settings
from tempero_pay.core.errors import ServiceError
from tempero_pay.models.order import AWAITING_STATUSES, Order
from tempero_pay.schemas.statement import BankTransaction, MatchedTransaction, ReconciliationResult
from tempero_pay.services import orders as order_service
from tempero_pay.services.orders import OrderSnapshot

logger = logging.getLogger(__name__)

EXACT_BASE = 60
NEAR_BASE = 20
NSU_BONUS = 15
NAME_BONUS = 10
PIX_BONUS = 5

CONFIRMATION_MODE = "bank_statement"
CONFIRMATION_SOURCE = "extrato_bancario"


@dataclass(frozen=True)
class PendingOrder:
    id: int
    order_nsu: str
    total_amount: int  # centavos
    created_on: date
    customer_name: str = ""


@dataclass(frozen=True)
class Score:
    exact: bool
    confidence: int


def _fold(text: str) -> str:
    nfd = unicodedata.normalize("NFD", text or "")
    return "".join(c for c in nfd if not unicodedata.combining(c)).lower()


def _alnum(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", _fold(text))


def date_bonus(days: int) -> int:
    if days == 0:
        return 20
    if days <= 1:
        return 15
    if days <= 3:
        return 10
    return 5


def name_in_description(customer_name: str, description: str) -> bool:
    tokens = [t for t in re.split(r"\s+", _fold(customer_name).strip()) if len(t) > 2]
    if not tokens:
        return False
    desc = _fold(description)
    # nome completo, ou primeiro e último nome
    return _fold(customer_name).strip() in desc or (tokens[0] in desc and tokens[-1] in desc)


def score_candidate(
    order: PendingOrder,
    tx: BankTransaction,
    *,
    window_days: int | None = None,
    tolerance: float | None = None,
) -> Score | None:
    """Pontua o par; None quando fora da janela de datas ou do valor tolerado."""
    window_days = settings.RECONCILIATION_WINDOW_DAYS if window_days is None else window_days
    tolerance = settings.RECONCILIATION_MISMATCH_TOLERANCE if tolerance is None else tolerance

    if tx.type != "credit" or tx.amount <= 0:
        return None

    days = (date.fromisoformat(tx.date) - order.created_on).days
    if days < 0 or days > window_days:
        return None

    tx_cents = order_service.to_cents(tx.amount)
    diff = abs(tx_cents - order.total_amount)
    if diff <= 1:
        exact, confidence = True, EXACT_BASE
    elif diff <= Decimal(str(tolerance)) * order.total_amount:
        exact, confidence = False, NEAR_BASE
    else:
        return None

    confidence += date_bonus(days)

    desc = tx.description or ""
    haystack = _alnum(f"{desc} {tx.reference or ''}")
    nsu = _alnum(order.order_nsu)
    if nsu and nsu in haystack:
        confidence += NSU_BONUS
    if order.customer_name and name_in_description(order.customer_name, desc):
        confidence += NAME_BONUS
    if "pix" in _fold(desc):
        confidence += PIX_BONUS

    return Score(exact=exact, confidence=min(confidence, 100))


def confidence_band(confidence: int) -> str:
    if confidence >= 80:
        return "high"
    if confidence >= 60:
        return "medium"
    return "low"


# -------------------- execução --------------------
@dataclass
class ReconcileOutcome:
    body: dict
    confirmed: list[OrderSnapshot] = field(default_factory=list)


def _pending_orders(db: Session, payment_method: str | None) -> list[Order]:
    q = select(Order).where(Order.status.in_(AWAITING_STATUSES))
    if payment_method:
        q = q.where(Order.payment_method == payment_method)
    q = q.order_by(Order.created_at.desc(), Order.id.desc())
    return list(db.scalars(q))


def _as_pending(order: Order) -> PendingOrder:
    created = order.created_at or datetime.now(timezone.utc)
    if created.tzinfo is None:
        # SQLite devolve datetime sem fuso; gravamos em UTC
        created = created.replace(tzinfo=timezone.utc)
    return PendingOrder(
        id=order.id,
        order_nsu=order.order_nsu,
        total_amount=order.total_amount,
        created_on=created.astimezone(ZoneInfo(settings.STORE_TZ)).date(),
        customer_name=order.customer_name or "",
    )


def _matched(tx: BankTransaction) -> MatchedTransaction:
    return MatchedTransaction(date=tx.date, amount=float(tx.amount), description=tx.description, reference=tx.reference)


def reconcile(
    db: Session,
    transactions: list[BankTransaction],
    *,
    auto_confirm: bool = False,
    payment_method: str | None = None,
    threshold: int | None = None,
) -> ReconcileOutcome:
    """
    Casa transações de crédito com pedidos pendentes (mais novos primeiro).
    Uma transação casada é consumida. Com `auto_confirm`, pedidos `matched`
    com confiança >= limiar viram `paid` na mesma transação de banco.
    """
    if not transactions:
        raise ServiceError("Nenhuma transação fornecida")

    threshold = settings.RECONCILIATION_AUTO_CONFIRM_THRESHOLD if threshold is None else threshold
    timestamp = datetime.now(timezone.utc).isoformat()
    credits = [tx for tx in transactions if tx.type == "credit" and tx.amount > 0]

    pending = _pending_orders(db, payment_method)
    if not pending:
        return ReconcileOutcome(
            body={
                "success": True,
                "message": "Nenhum pedido pendente para reconciliar",
                "timestamp": timestamp,
                "transactions_processed": len(transactions),
                "orders_checked": 0,
                "matched": 0,
                "confirmed": 0,
                "results": [],
            }
        )

    available = list(range(len(credits)))
    results: list[ReconciliationResult] = []
    confirmed: list[OrderSnapshot] = []

    try:
        for order in pending:
            candidate = _as_pending(order)
            best_exact: tuple[int, int] | None = None  # (confiança, índice)
            best_near: tuple[int, int] | None = None
            for idx in available:
                score = score_candidate(candidate, credits[idx])
                if score is None:
                    continue
                slot = (score.confidence, idx)
                if score.exact:
                    if best_exact is None or score.confidence > best_exact[0]:
                        best_exact = slot
                elif best_near is None or score.confidence > best_near[0]:
                    best_near = slot

            result = ReconciliationResult(
                order_nsu=order.order_nsu,
                order_amount=order_service.to_reais(order.total_amount),
                status="not_found",
                confidence=0,
            )
            if best_exact is not None:
                confidence, idx = best_exact
                available.remove(idx)
                result.status = "matched"
                result.confidence = confidence
                result.matched_transaction = _matched(credits[idx])
                if auto_confirm and confidence >= threshold:
                    if order_service.mark_paid(
                        db,
                        order.id,
                        paid_amount=order.total_amount,
                        mode=CONFIRMATION_MODE,
                        source=CONFIRMATION_SOURCE,
                    ):
                        result.confirmed = True
                        order_service.claim_paid_notification(db, order.id)
                        db.refresh(order)
                        confirmed.append(order_service.snapshot(order))
            elif best_near is not None:
                confidence, idx = best_near
                result.status = "amount_mismatch"
                result.confidence = confidence
                result.matched_transaction = _matched(credits[idx])
            results.append(result)

        db.commit()
    except Exception:
        db.rollback()
        raise

    matched = sum(1 for r in results if r.status == "matched")
    logger.info(
        "conciliação: %d transações, %d pedidos, %d casados, %d confirmados",
        len(transactions), len(pending), matched, len(confirmed),
    )
    return ReconcileOutcome(
        body={
            "success": True,
            "timestamp": timestamp,
            "transactions_processed": len(transactions),
            "orders_checked": len(pending),
            "matched": matched,
            "confirmed": len(confirmed),
            "results": [r.model_dump(mode="json") for r in results],
        },
        confirmed=confirmed,
    )
