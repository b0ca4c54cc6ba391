from datetime import date
from decimal import Decimal

import pytest

from core.exceptions import LedgerNotFoundError, LedgerStateError, LedgerValidationError
from properties.models import Property
from properties.services import NdcPaymentService, get_property_by_upn, resolve_property_for_application
from utils.models import FinancialAuditLog

pytestmark = pytest.mark.django_db

UPN = 'PB-140-001-003-002301'


@pytest.fixture
def service():
    return NdcPaymentService()


class TestPropertyResolution:

    def test_by_upn(self, ndc_property):
        assert get_property_by_upn('PUDA', UPN) == ndc_property

    def test_by_upn_in_other_authority(self, ndc_property):
        with pytest.raises(LedgerNotFoundError) as exc:
            get_property_by_upn('GMADA', UPN)
        assert exc.value.code == 'PROPERTY_NOT_FOUND'

    def test_linked_property_wins(self, application, ndc_property):
        assert resolve_property_for_application(application.arn) == ndc_property

    def test_falls_back_to_upn_on_form(self, make_application, ndc_property):
        application = make_application(data={'property': {'upn': f"  {UPN} "}})
        assert resolve_property_for_application(application.arn) == ndc_property

    def test_missing_application_reads_as_missing_property(self, db):
        with pytest.raises(LedgerNotFoundError) as exc:
            resolve_property_for_application('PUDA/2024/DFT/999999')
        assert exc.value.code == 'PROPERTY_NOT_FOUND'

    def test_application_without_property(self, make_application):
        application = make_application(data={})
        with pytest.raises(LedgerNotFoundError):
            resolve_property_for_application(application.arn)


class TestPosting:

    def test_late_installment_is_settled_with_interest(self, service, ndc_property):
        result = service.post_payment_by_upn('PUDA', UPN, 'installment_1', payment_date='2024-08-15', actor_id='officer-7')

        posted = result['paymentPosted']
        assert posted['dueCode'] == 'INSTALLMENT_1'
        assert posted['amount'] == 152219.18
        assert posted['paymentDate'] == '2024-08-15'

        due = next(d for d in result['paymentStatus']['dues'] if d['dueCode'] == 'INSTALLMENT_1')
        assert due['totalDueAmount'] == 152219.18
        assert due['balanceAmount'] == 0.0
        assert due['status'] == 'PAID'

        ndc_property.refresh_from_db()
        payments = ndc_property.planning_controls['ndc_dues_seed']['payments']
        assert payments == [{'dueCode': 'INSTALLMENT_1', 'paymentDate': '2024-08-15', 'amount': 152219.18}]
        assert ndc_property.planning_controls['ndc_dues_seed']['propertyValue'] == 1500000
        assert ndc_property.updated_by_id == 'officer-7'

        audit = FinancialAuditLog.objects.get(action='NDC_PAYMENT_POST')
        assert audit.amount_involved == Decimal('152219.18')
        assert audit.actor_id == 'officer-7'

    def test_second_posting_is_rejected(self, service, ndc_property):
        service.post_payment(ndc_property.pk, 'INSTALLMENT_1', payment_date='2024-08-15')
        with pytest.raises(LedgerStateError) as exc:
            service.post_payment(ndc_property.pk, 'INSTALLMENT_1', payment_date='2024-08-15')
        assert exc.value.code == 'DUE_ALREADY_PAID'

    def test_top_up_after_partial_payment(self, service, ndc_property):
        ndc_property.planning_controls = {'ndc_dues_seed': {
            'propertyValue': 1500000,
            'payments': [{'dueCode': 'INSTALLMENT_1', 'paymentDate': '2024-07-01', 'amount': 100000}],
        }}
        ndc_property.save()

        result = service.post_payment(ndc_property.pk, 'INSTALLMENT_1', payment_date='2024-08-15')
        # interest for the full base to the new payment date, less what was already paid
        assert result['paymentPosted']['amount'] == 52219.18

    def test_malformed_raw_payments_are_kept(self, service, ndc_property):
        ndc_property.planning_controls = {'ndc_dues_seed': {'propertyValue': 1500000, 'payments': ['legacy']}}
        ndc_property.save()

        service.post_payment(ndc_property.pk, 'INSTALLMENT_2', payment_date='2025-01-01')

        ndc_property.refresh_from_db()
        assert ndc_property.planning_controls['ndc_dues_seed']['payments'][0] == 'legacy'
        assert len(ndc_property.planning_controls['ndc_dues_seed']['payments']) == 2

    @pytest.mark.parametrize('due_code, payment_date, error, code', [
        ('', '2024-08-15', LedgerValidationError, 'DUE_CODE_REQUIRED'),
        ('INSTALLMENT_1', '15/08/2024', LedgerValidationError, 'INVALID_PAYMENT_DATE'),
        ('INSTALLMENT_1', '2024-02-30', LedgerValidationError, 'INVALID_PAYMENT_DATE'),
        ('INSTALLMENT_1', '2024-08-15xyz', LedgerValidationError, 'INVALID_PAYMENT_DATE'),
        ('INSTALLMENT_1', '20240815', LedgerValidationError, 'INVALID_PAYMENT_DATE'),
        ('INSTALLMENT_1', '2024-W33-4', LedgerValidationError, 'INVALID_PAYMENT_DATE'),
        ('ADDITIONAL_AREA', '2024-08-15', LedgerNotFoundError, 'DUE_NOT_FOUND'),
    ])
    def test_rejections(self, service, ndc_property, due_code, payment_date, error, code):
        with pytest.raises(error) as exc:
            service.post_payment(ndc_property.pk, due_code, payment_date=payment_date)
        assert exc.value.code == code

        ndc_property.refresh_from_db()
        assert 'payments' not in ndc_property.planning_controls['ndc_dues_seed']

    def test_unknown_property(self, service, db):
        with pytest.raises(LedgerNotFoundError):
            service.post_payment('00000000-0000-0000-0000-000000000000', 'INSTALLMENT_1')

    def test_posting_through_application(self, service, application):
        result = service.post_payment_for_application(application.arn, 'INSTALLMENT_1', payment_date='2024-07-01')
        assert result['paymentPosted']['amount'] == 150000.0
        assert FinancialAuditLog.objects.get(action='NDC_PAYMENT_POST').application_arn == application.arn


def test_status_as_of(service, ndc_property):
    ledger = service.status_by_upn('PUDA', UPN, as_of=date(2024, 8, 15))
    assert ledger.find_due('INSTALLMENT_1').interest_amount == Decimal('2219.18')
    assert Property.objects.count() == 1
