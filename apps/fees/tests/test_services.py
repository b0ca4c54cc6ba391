from decimal import Decimal
import uuid

import pytest

from applications.models import ServiceVersion
from core.exceptions import LedgerNotFoundError, LedgerStateError, LedgerValidationError
from fees.models import FeeDemand, FeeLineItem, Payment
from fees.services import DemandService, FeeAssessmentService, PaymentService
from utils.models import FinancialAuditLog

pytestmark = pytest.mark.django_db

ITEMS = [
    {'feeHeadCode': 'SCRUTINY_FEE', 'amount': 500},
    {'feeHeadCode': 'PROCESSING_FEE', 'amount': 750},
]


@pytest.fixture
def line_items(application):
    return FeeAssessmentService.assess(application.arn, ITEMS, actor_id='officer-1')


@pytest.fixture
def demand(application, line_items):
    return DemandService.create_demand(
        application.arn, [str(item.pk) for item in line_items], due_date='2024-09-30', actor_id='officer-1'
    )


@pytest.fixture
def payments(stub_gateway):
    return PaymentService(gateway=stub_gateway)


# =============================================================================
# ASSESSMENT
# =============================================================================

class TestAssessment:

    def test_creates_line_items_from_schedule(self, application, line_items):
        assert len(line_items) == 2
        scrutiny = next(item for item in line_items if item.fee_head_code == 'SCRUTINY_FEE')
        assert scrutiny.amount == Decimal('500.00')
        assert scrutiny.base_amount == Decimal('500.00')
        assert scrutiny.waiver_adjustment == Decimal('0.00')
        assert scrutiny.description == 'Scrutiny Fee'
        assert scrutiny.currency == 'INR'
        assert scrutiny.status == 'ASSESSED'
        assert scrutiny.created_by_id == 'officer-1'

        audit = FinancialAuditLog.objects.get(action='FEE_ASSESS')
        assert audit.amount_involved == Decimal('1250.00')
        assert audit.application_arn == application.arn

    def test_mismatch_persists_nothing(self, application):
        with pytest.raises(LedgerStateError) as exc:
            FeeAssessmentService.assess(application.arn, [ITEMS[0], {'feeHeadCode': 'PROCESSING_FEE', 'amount': 749.99}])
        assert exc.value.code == 'FEE_ITEMS_MISMATCH_WITH_SCHEDULE'
        assert FeeLineItem.objects.count() == 0

    def test_items_required(self, application):
        with pytest.raises(LedgerValidationError) as exc:
            FeeAssessmentService.assess(application.arn, [])
        assert exc.value.code == 'FEE_ITEMS_REQUIRED'

    def test_unknown_application(self, db):
        with pytest.raises(LedgerNotFoundError) as exc:
            FeeAssessmentService.assess('PUDA/2024/DFT/404404', ITEMS)
        assert exc.value.code == 'APPLICATION_NOT_FOUND'

    def test_service_without_schedule(self, make_application):
        application = make_application(service_key='unpublished_service')
        with pytest.raises(LedgerStateError) as exc:
            FeeAssessmentService.assess(application.arn, ITEMS)
        assert exc.value.code == 'SERVICE_VERSION_NOT_FOUND'


# =============================================================================
# DEMANDS
# =============================================================================

class TestDemands:

    def test_total_is_sum_of_line_items(self, demand, line_items):
        assert demand.total_amount == sum(item.amount for item in line_items) == Decimal('1250.00')
        assert demand.paid_amount == Decimal('0.00')
        assert demand.status == 'PENDING'
        assert demand.demand_number.startswith('DEM/')
        assert demand.demand_number.endswith('/000001')
        assert str(demand.due_date) == '2024-09-30'
        assert set(FeeLineItem.objects.values_list('status', flat=True)) == {'DEMANDED'}
        assert demand.line_items.count() == 2

    def test_line_items_cannot_be_demanded_twice(self, application, demand, line_items):
        with pytest.raises(LedgerStateError) as exc:
            DemandService.create_demand(application.arn, [str(line_items[0].pk)])
        assert exc.value.code == 'LINE_ITEMS_NOT_ASSESSABLE'

    def test_line_items_of_another_application(self, make_application, line_items):
        other = make_application()
        with pytest.raises(LedgerStateError):
            DemandService.create_demand(other.arn, [str(line_items[0].pk)])

    @pytest.mark.parametrize('ids, code', [
        ([], 'LINE_ITEMS_REQUIRED'),
        (None, 'LINE_ITEMS_REQUIRED'),
    ])
    def test_line_items_required(self, application, ids, code):
        with pytest.raises(LedgerValidationError) as exc:
            DemandService.create_demand(application.arn, ids)
        assert exc.value.code == code

    def test_invalid_due_date(self, application, line_items):
        with pytest.raises(LedgerValidationError) as exc:
            DemandService.create_demand(application.arn, [str(line_items[0].pk)], due_date='next week')
        assert exc.value.code == 'INVALID_DUE_DATE'

    def test_demand_numbers_increase(self, application, line_items):
        first = DemandService.create_demand(application.arn, [str(line_items[0].pk)])
        second = DemandService.create_demand(application.arn, [str(line_items[1].pk)])
        assert first.demand_number.endswith('/000001')
        assert second.demand_number.endswith('/000002')

    def test_waive(self, demand):
        waived = DemandService.waive_demand(demand.pk, actor_id='officer-2', reason='Committee order 42')

        assert waived.status == 'WAIVED'
        assert waived.updated_by_id == 'officer-2'
        assert set(FeeLineItem.objects.values_list('status', flat=True)) == {'WAIVED'}
        assert FinancialAuditLog.objects.filter(action='DEMAND_WAIVE', risk_level='MEDIUM').count() == 1

    def test_cancel_releases_line_items(self, application, demand, line_items):
        DemandService.cancel_demand(demand.pk)

        assert FeeDemand.objects.get(pk=demand.pk).status == 'CANCELLED'
        assert set(FeeLineItem.objects.values_list('status', flat=True)) == {'ASSESSED'}

        again = DemandService.create_demand(application.arn, [str(item.pk) for item in line_items])
        assert again.total_amount == Decimal('1250.00')

    @pytest.mark.parametrize('transition', [DemandService.waive_demand, DemandService.cancel_demand])
    def test_only_pending_demands_close(self, demand, transition):
        DemandService.cancel_demand(demand.pk)
        for target in (demand.pk, uuid.uuid4(), 'not-a-uuid'):
            with pytest.raises(LedgerNotFoundError) as exc:
                transition(target)
            assert exc.value.code == 'NOT_FOUND_OR_WRONG_STATE'
            assert exc.value.message == 'Demand not found or not in PENDING status'

    def test_reads(self, application, demand):
        assert DemandService.get_demand(str(demand.pk)) == demand
        assert DemandService.demands_for_application(application.arn) == [demand]
        assert DemandService.pending_demands(application.arn) == [demand]
        with pytest.raises(LedgerNotFoundError) as exc:
            DemandService.get_demand(uuid.uuid4())
        assert exc.value.code == 'DEMAND_NOT_FOUND'


# =============================================================================
# MANUAL PAYMENTS
# =============================================================================

class TestManualPayments:

    def test_amount_exceeding_balance_is_rejected(self, application, demand, payments):
        with pytest.raises(LedgerStateError) as exc:
            payments.record_payment(application.arn, 'CHALLAN', 1300, demand_id=demand.pk)
        assert exc.value.code == 'PAYMENT_AMOUNT_EXCEEDS_REMAINING_BALANCE'
        assert Payment.objects.count() == 0
        assert FeeDemand.objects.get(pk=demand.pk).paid_amount == Decimal('0.00')

    def test_partial_then_full_payment(self, application, demand, payments):
        first = payments.record_payment(
            application.arn, 'challan', '500', demand_id=str(demand.pk),
            instrument_number='CH-4471', instrument_bank='SBI', instrument_date='2024-08-01',
        )
        assert first.status == 'SUCCESS'
        assert first.receipt_number == 'RCPT-000001'
        assert first.completed_at is not None
        assert str(first.instrument_date) == '2024-08-01'

        demand.refresh_from_db()
        assert demand.status == 'PARTIALLY_PAID'
        assert demand.remaining_balance == Decimal('750.00')

        second = payments.record_payment(application.arn, 'COUNTER', 750, demand_id=demand.pk)
        assert second.receipt_number == 'RCPT-000002'

        demand.refresh_from_db()
        assert demand.status == 'PAID'
        assert demand.paid_amount == demand.total_amount
        assert demand.paid_at is not None
        assert set(FeeLineItem.objects.values_list('status', flat=True)) == {'PAID'}

        with pytest.raises(LedgerStateError) as exc:
            payments.record_payment(application.arn, 'COUNTER', 1, demand_id=demand.pk)
        assert exc.value.code == 'DEMAND_NOT_PAYABLE'

    def test_demand_of_another_application(self, make_application, demand, payments):
        other = make_application()
        with pytest.raises(LedgerStateError) as exc:
            payments.record_payment(other.arn, 'COUNTER', 100, demand_id=demand.pk)
        assert exc.value.code == 'DEMAND_ARN_MISMATCH'

    def test_waived_demand_is_not_payable(self, application, demand, payments):
        DemandService.waive_demand(demand.pk)
        with pytest.raises(LedgerStateError) as exc:
            payments.record_payment(application.arn, 'COUNTER', 100, demand_id=demand.pk)
        assert exc.value.code == 'DEMAND_NOT_PAYABLE'

    def test_unknown_demand(self, application, payments):
        with pytest.raises(LedgerNotFoundError) as exc:
            payments.record_payment(application.arn, 'COUNTER', 100, demand_id=uuid.uuid4())
        assert exc.value.code == 'DEMAND_NOT_FOUND'

    @pytest.mark.parametrize('mode, amount, code', [
        ('CHEQUE', 100, 'INVALID_PAYMENT_MODE'),
        ('COUNTER', 0, 'PAYMENT_AMOUNT_INVALID'),
        ('COUNTER', -5, 'PAYMENT_AMOUNT_INVALID'),
        ('COUNTER', 'abc', 'PAYMENT_AMOUNT_INVALID'),
        ('COUNTER', True, 'PAYMENT_AMOUNT_INVALID'),
    ])
    def test_input_validation(self, application, payments, mode, amount, code):
        with pytest.raises(LedgerValidationError) as exc:
            payments.record_payment(application.arn, mode, amount)
        assert exc.value.code == code

    def test_payment_without_demand(self, application, payments):
        payment = payments.record_payment(application.arn, 'NEFT', 99.999, instrument_number='UTR123')
        assert payment.amount == Decimal('100.00')
        assert payment.demand_id is None
        assert PaymentService.payments_for_application(application.arn) == [payment]
        assert FinancialAuditLog.objects.get(action='PAYMENT_RECORD').amount_involved == Decimal('100.00')


def test_demand_conservation_across_payments(application, demand, payments):
    for amount in ('100.10', '200.20', '949.70'):
        payments.record_payment(application.arn, 'COUNTER', amount, demand_id=demand.pk)

    demand.refresh_from_db()
    settled = sum(p.amount for p in PaymentService.payments_for_demand(demand.pk))
    assert settled == demand.paid_amount == demand.total_amount
    assert demand.remaining_balance == Decimal('0.00')
    assert demand.status == 'PAID'


def test_unpublished_schedule_leaves_no_trace(application):
    ServiceVersion.objects.update(status='retired')
    with pytest.raises(LedgerStateError):
        FeeAssessmentService.assess(application.arn, ITEMS)
    assert not FinancialAuditLog.objects.filter(action='FEE_ASSESS').exists()
