import pytest

from core.exceptions import LedgerStateError
from fees.receipts import receipt_filename, render_payment_receipt
from fees.services import PaymentService

pytestmark = pytest.mark.django_db


def test_renders_pdf_for_settled_payment(application, stub_gateway):
    payment = PaymentService(gateway=stub_gateway).record_payment(
        application.arn, 'CHALLAN', 1250, instrument_number='CH-4471', instrument_bank='SBI',
    )

    pdf = render_payment_receipt(payment)

    assert pdf.startswith(b'%PDF')
    assert receipt_filename(payment) == 'receipt_RCPT-000001.pdf'


def test_no_receipt_for_initiated_payment(application, stub_gateway):
    payment = PaymentService(gateway=stub_gateway).record_payment(application.arn, 'GATEWAY', 1250)

    with pytest.raises(LedgerStateError) as exc:
        render_payment_receipt(payment)
    assert exc.value.code == 'PAYMENT_NOT_SETTLED'
