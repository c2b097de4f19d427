"""
Unit tests for payment reconciliation.
"""

import pytest
from decimal import Decimal

from storefront.models import PaymentTransaction, PaymentStatus
from storefront.services.payment_service import (
    summarize_transactions,
    calculate_payment_summary,
    get_order_payment_summary,
    ensure_payment_transaction_exists,
    record_payment_transaction,
    get_payment_status_display,
    payment_summary_from_status,
)
from storefront.exceptions import BusinessLogicError, NotFoundError


def _tx(amount, transaction_type='payment', status='completed'):
    return {'amount': amount, 'transaction_type': transaction_type, 'status': status}


def _flags(summary):
    return [summary['is_fully_paid'], summary['is_partially_paid'], summary['is_pending']]


class TestSummarizeTransactions:
    """Tests for the payment fold."""

    def test_refund_reduces_paid_amount(self):
        summary = summarize_transactions(100, [_tx('100'), _tx('-30', 'refund')])

        assert summary['paid_amount'] == Decimal('70.00')
        assert summary['balance_due'] == Decimal('30.00')
        assert summary['is_partially_paid'] is True
        assert summary['is_fully_paid'] is False

    def test_legacy_paid_order_without_transactions(self):
        summary = summarize_transactions(50, [], payment_status='paid')

        assert summary['paid_amount'] == Decimal('50.00')
        assert summary['balance_due'] == Decimal('0')
        assert summary['is_fully_paid'] is True

    def test_no_transactions_is_pending(self):
        summary = summarize_transactions(80, [], payment_status='pending')

        assert summary['paid_amount'] == Decimal('0')
        assert summary['balance_due'] == Decimal('80.00')
        assert summary['is_pending'] is True

    def test_only_successful_statuses_count(self):
        summary = summarize_transactions(100, [
            _tx('40', status='APPROVED'),
            _tx('10', status='Success'),
            _tx('50', status='failed'),
            _tx('50', status='pending'),
        ])

        assert summary['paid_amount'] == Decimal('50.00')

    def test_overpayment_leaves_no_balance(self):
        summary = summarize_transactions(100, [_tx('120')])

        assert summary['paid_amount'] == Decimal('120.00')
        assert summary['balance_due'] == Decimal('0')
        assert summary['is_fully_paid'] is True

    def test_sub_cent_balance_counts_as_paid(self):
        summary = summarize_transactions('100.00', [_tx('33.33'), _tx('33.33'), _tx('33.335')])

        assert summary['balance_due'] == Decimal('0')
        assert summary['is_fully_paid'] is True

    def test_float_amounts_do_not_drift(self):
        summary = summarize_transactions(0.3, [_tx(0.1), _tx(0.2)])

        assert summary['is_fully_paid'] is True

    def test_refunds_larger_than_payments_floor_at_zero(self):
        summary = summarize_transactions(100, [_tx('20'), _tx('50', 'refund')])

        assert summary['paid_amount'] == Decimal('0')
        assert summary['balance_due'] == Decimal('100.00')
        assert summary['is_pending'] is True

    def test_net_zero_fold_on_paid_order_uses_stored_status(self):
        summary = summarize_transactions(100, [_tx('100'), _tx('100', 'refund')], payment_status='paid')

        # Net zero from a real fold still falls back to the stored status
        assert summary['is_fully_paid'] is True

    def test_accepts_model_objects(self):
        rows = [
            PaymentTransaction(amount=Decimal('25.00'), status='completed', transaction_type='payment'),
            PaymentTransaction(amount=Decimal('5.00'), status='completed', transaction_type='refund'),
        ]

        assert summarize_transactions(40, rows)['paid_amount'] == Decimal('20.00')

    @pytest.mark.parametrize('total,txs,status', [
        (100, [], None),
        (100, [], 'paid'),
        (100, [_tx('100')], None),
        (100, [_tx('99.99')], None),
        (100, [_tx('150')], 'pending'),
        (100, [_tx('10'), _tx('10', 'refund')], None),
        (0, [], None),
        (0, [_tx('5')], None),
        (100, [_tx('200', 'refund')], None),
    ])
    def test_exactly_one_flag_is_set(self, total, txs, status):
        summary = summarize_transactions(total, txs, payment_status=status)

        assert _flags(summary).count(True) == 1
        assert summary['paid_amount'] >= 0
        assert summary['balance_due'] >= 0


class TestStatusFallback:
    """Tests for the stored-status summary."""

    def test_paid_status(self):
        summary = payment_summary_from_status('75.5', 'PAID')

        assert summary['paid_amount'] == Decimal('75.50')
        assert summary['is_fully_paid'] is True

    def test_any_other_status_is_pending(self):
        summary = payment_summary_from_status(75, 'partial')

        assert summary['balance_due'] == Decimal('75.00')
        assert summary['is_pending'] is True


class TestCalculatePaymentSummary:
    """Tests for the database-backed summary."""

    def test_reads_transactions_from_database(self, session, make_order):
        order = make_order(total='100.00')
        session.add_all([
            PaymentTransaction(order_id=order.id, amount=Decimal('100'), status='completed', transaction_type='payment'),
            PaymentTransaction(order_id=order.id, amount=Decimal('30'), status='completed', transaction_type='refund'),
        ])
        session.commit()

        summary = calculate_payment_summary(session, order.id, order.total_amount, order.payment_status)

        assert summary['paid_amount'] == Decimal('70.00')
        assert summary['is_partially_paid'] is True

    def test_load_failure_falls_back_to_stored_status(self):
        class BrokenSession:
            def query(self, *args):
                raise RuntimeError('connection reset')

            def rollback(self):
                pass

        summary = calculate_payment_summary(BrokenSession(), 1, 50, 'paid')

        assert summary['is_fully_paid'] is True
        assert summary['paid_amount'] == Decimal('50.00')

    def test_unknown_order(self, session):
        with pytest.raises(NotFoundError):
            get_order_payment_summary(session, 12345)


class TestEnsurePaymentTransaction:
    """Tests for backfilling legacy payment rows."""

    def test_creates_one_legacy_row_for_paid_order(self, session, make_order):
        order = make_order(total='50.00', payment_status='paid')

        assert ensure_payment_transaction_exists(session, order.id, order.profile_id, order.total_amount, 'paid')
        assert ensure_payment_transaction_exists(session, order.id, order.profile_id, order.total_amount, 'paid')

        rows = session.query(PaymentTransaction).filter(PaymentTransaction.order_id == order.id).all()
        assert len(rows) == 1
        assert rows[0].payment_method_type == 'legacy_record'
        assert rows[0].amount == Decimal('50.00')

    def test_unpaid_order_gets_nothing(self, session, make_order):
        order = make_order(total='50.00')

        assert ensure_payment_transaction_exists(session, order.id, None, order.total_amount, 'pending')
        assert session.query(PaymentTransaction).count() == 0


class TestRecordPaymentTransaction:
    """Tests for appending payments and refunds."""

    def test_status_moves_pending_partial_paid(self, session, make_order):
        order = make_order(total='100.00')
        order_id = order.id

        record_payment_transaction(session, order_id, '40')
        assert get_order_payment_summary(session, order_id)['is_partially_paid'] is True
        assert order.payment_status == PaymentStatus.PARTIAL.value

        record_payment_transaction(session, order_id, '60', payment_method_type='card')
        assert order.payment_status == PaymentStatus.PAID.value
        assert get_order_payment_summary(session, order_id)['balance_due'] == Decimal('0')

    def test_refund_on_legacy_paid_order(self, session, make_order):
        order = make_order(total='80.00', payment_status='paid')
        order_id = order.id

        record_payment_transaction(session, order_id, '20', transaction_type='refund')

        summary = get_order_payment_summary(session, order_id)
        assert summary['paid_amount'] == Decimal('60.00')
        assert summary['balance_due'] == Decimal('20.00')
        assert order.payment_status == PaymentStatus.PARTIAL.value
        assert session.query(PaymentTransaction).filter(PaymentTransaction.order_id == order_id).count() == 2

    def test_failed_payment_does_not_change_status(self, session, make_order):
        order = make_order(total='100.00')

        record_payment_transaction(session, order.id, '100', status='failed')

        assert order.payment_status == PaymentStatus.PENDING.value

    @pytest.mark.parametrize('amount,transaction_type', [
        ('0', 'payment'),
        ('-5', 'payment'),
        ('abc', 'payment'),
        ('10', 'chargeback'),
    ])
    def test_invalid_input(self, session, make_order, amount, transaction_type):
        order = make_order()
        with pytest.raises(BusinessLogicError):
            record_payment_transaction(session, order.id, amount, transaction_type=transaction_type)

    def test_unknown_order(self, session):
        with pytest.raises(NotFoundError):
            record_payment_transaction(session, 999, '10')


class TestPaymentStatusDisplay:
    """Tests for badge labels."""

    def test_labels(self):
        assert get_payment_status_display(summarize_transactions(10, [_tx('10')]))['label'] == 'Paid'
        assert get_payment_status_display(summarize_transactions(10, [_tx('5')]))['color'] == 'yellow'
        assert get_payment_status_display(summarize_transactions(10, []))['label'] == 'Unpaid'
