# tests/services/test_reconciliation.py
"""
Conciliação de extrato:
- pontuação monotônica com a qualidade do par
- confirmação automática só com valor exato e confiança alta
- reexecução com o mesmo extrato não confirma de novo
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from tempero_pay.core.config import settings
from tempero_pay.core.errors import ServiceError
from tempero_pay.models.audit_log import AuditLog
from tempero_pay.models.order import Order, OrderStatus
from tempero_pay.schemas.statement import BankTransaction
from tempero_pay.services.reconciliation import (
    PendingOrder,
    confidence_band,
    reconcile,
    score_candidate,
)

ORDER = PendingOrder(
    id=1,
    order_nsu="PIX_1700000000000_abc123",
    total_amount=4250,
    created_on=date(2026, 3, 10),
    customer_name="Maria Souza",
)


def tx(amount: str, day: str = "2026-03-10", description: str = "Transação bancária", kind: str = "credit"):
    return BankTransaction(date=day, amount=Decimal(amount), description=description, type=kind)


# ---------- pontuação ----------
def test_exact_same_day_scores_high():
    score = score_candidate(ORDER, tx("42.50"))
    assert score.exact
    assert score.confidence == 80
    assert confidence_band(score.confidence) == "high"


def test_confidence_decreases_with_date_distance():
    scores = [score_candidate(ORDER, tx("42.50", day)).confidence for day in ("2026-03-10", "2026-03-11", "2026-03-13", "2026-03-16")]
    assert scores == sorted(scores, reverse=True)
    assert scores == [80, 75, 70, 65]


def test_description_bonuses_are_capped():
    score = score_candidate(ORDER, tx("42.50", description="PIX MARIA SOUZA PIX_1700000000000_abc123"))
    assert score.confidence == 100


def test_exact_always_beats_near_amount_on_same_day():
    near = score_candidate(ORDER, tx("44.00", description="PIX MARIA SOUZA PIX_1700000000000_abc123"))
    exact = score_candidate(ORDER, tx("42.50"))
    assert not near.exact
    assert near.confidence <= exact.confidence


@pytest.mark.parametrize(
    "candidate",
    [
        tx("42.50", "2026-03-09"),  # antes do pedido
        tx("42.50", "2026-03-18"),  # fora da janela de 7 dias
        tx("60.00"),  # valor distante
        tx("42.50", kind="debit"),
    ],
)
def test_out_of_bounds_candidates_are_ignored(candidate):
    assert score_candidate(ORDER, candidate) is None


def test_confidence_band_thresholds():
    assert confidence_band(80) == "high"
    assert confidence_band(79) == "medium"
    assert confidence_band(60) == "medium"
    assert confidence_band(59) == "low"


# ---------- execução ----------
def test_empty_transaction_list_is_rejected(db):
    with pytest.raises(ServiceError):
        reconcile(db, [])


def test_no_pending_orders(db):
    out = reconcile(db, [tx("42.50")])
    assert out.body["message"] == "Nenhum pedido pendente para reconciliar"
    assert out.body["matched"] == 0


def test_auto_confirm_marks_order_paid_once(db, make_order):
    order = make_order(4250)
    statement = [tx("42.50", description="PIX RECEBIDO")]

    first = reconcile(db, statement, auto_confirm=True)
    assert first.body["matched"] == 1
    assert first.body["confirmed"] == 1
    assert [s.order_nsu for s in first.confirmed] == [order.order_nsu]

    db.expire_all()
    paid = db.get(Order, order.id)
    assert paid.status == OrderStatus.PAID
    assert paid.paid_amount == 4250
    assert paid.confirmation_mode == "bank_statement"
    assert paid.confirmation_source == "extrato_bancario"
    paid_at = paid.paid_at

    second = reconcile(db, statement, auto_confirm=True)
    assert second.body["confirmed"] == 0
    assert second.confirmed == []
    db.expire_all()
    assert db.get(Order, order.id).paid_at == paid_at

    claims = db.query(AuditLog).filter(AuditLog.entity_id == order.id, AuditLog.event == "paid_notified").count()
    assert claims == 1


def test_report_only_does_not_mutate(db, make_order):
    order = make_order(4250)
    out = reconcile(db, [tx("42.50")], auto_confirm=False)

    result = out.body["results"][0]
    assert result["status"] == "matched"
    assert result["confirmed"] is False
    db.expire_all()
    assert db.get(Order, order.id).status == OrderStatus.PENDING_PIX


def test_amount_mismatch_is_reported_not_confirmed(db, make_order):
    order = make_order(4250)
    out = reconcile(db, [tx("43.00")], auto_confirm=True)

    result = out.body["results"][0]
    assert result["status"] == "amount_mismatch"
    assert result["matched_transaction"]["amount"] == 43.0
    assert out.body["confirmed"] == 0
    db.expire_all()
    assert db.get(Order, order.id).status == OrderStatus.PENDING_PIX


def test_not_found_has_zero_confidence(db, make_order):
    make_order(4250)
    out = reconcile(db, [tx("999.99")])
    assert out.body["results"][0]["status"] == "not_found"
    assert out.body["results"][0]["confidence"] == 0
    assert out.body["results"][0]["matched_transaction"] is None


def test_transaction_is_consumed_by_one_order(db, make_order):
    make_order(4250)
    make_order(4250)
    out = reconcile(db, [tx("42.50")])

    statuses = sorted(r["status"] for r in out.body["results"])
    assert statuses == ["matched", "not_found"]
    assert out.body["matched"] == 1


def test_low_confidence_match_is_not_auto_confirmed(db, make_order):
    order = make_order(4250)
    # 6 dias depois: 60 + 5 = 65, abaixo do limiar
    out = reconcile(db, [tx("42.50", "2026-03-16")], auto_confirm=True)
    assert out.body["results"][0]["status"] == "matched"
    assert out.body["confirmed"] == 0
    db.expire_all()
    assert db.get(Order, order.id).status == OrderStatus.PENDING_PIX


def test_payment_method_filter(db, make_order):
    make_order(4250, status=OrderStatus.PENDING_BOLETO, payment_method="boleto")
    out = reconcile(db, [tx("42.50")], auto_confirm=True, payment_method="pix")
    assert out.body["orders_checked"] == 0


def test_late_evening_order_matches_local_statement_date(db, make_order):
    # 22:30 em São Paulo, já dia 11 em UTC
    make_order(4250, created_at=datetime(2026, 3, 11, 1, 30, tzinfo=timezone.utc))
    out = reconcile(db, [tx("42.50", "2026-03-10")])

    result = out.body["results"][0]
    assert result["status"] == "matched"
    assert result["confidence"] == 80


def test_store_timezone_is_configurable(db, make_order, monkeypatch):
    monkeypatch.setattr(settings, "STORE_TZ", "UTC")
    make_order(4250, created_at=datetime(2026, 3, 11, 1, 30, tzinfo=timezone.utc))
    out = reconcile(db, [tx("42.50", "2026-03-10")])
    assert out.body["results"][0]["status"] == "not_found"
