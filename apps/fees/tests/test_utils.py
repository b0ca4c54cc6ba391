import pytest

from fees.utils import generate_receipt_number, normalize_bank_details


def test_normalize_bank_details():
    assert normalize_bank_details({
        'accountName': ' A. Singh ',
        'account_number': 1234567890,
        'ifsc': 'sbin0001234',
        'bankName': '',
        'branch': 'Sector 17',
    }) == {'accountName': 'A. Singh', 'accountNumber': '1234567890', 'ifsc': 'SBIN0001234'}
    assert normalize_bank_details('not a dict') == {}


@pytest.mark.django_db
def test_receipt_numbers_continue_from_highest(settings, application):
    from fees.models import Payment

    settings.FEE_NUMBERING = {'RECEIPT_PREFIX': 'PUDA-RCPT'}
    Payment.objects.create(
        application=application, mode='COUNTER', amount=1, status='SUCCESS', receipt_number='PUDA-RCPT-000041',
    )
    Payment.objects.create(
        application=application, mode='COUNTER', amount=1, status='SUCCESS', receipt_number='PUDA-RCPT-000007',
    )

    assert generate_receipt_number() == 'PUDA-RCPT-000042'
