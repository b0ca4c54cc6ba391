from datetime import date
from decimal import Decimal

import pytest
from django.core.exceptions import ImproperlyConfigured

from core.config import GatewayConfig, LedgerConfig


def test_ledger_config_reads_settings(settings):
    settings.NDC_LEDGER = {
        'ANNUAL_INTEREST_RATE_PCT': '18',
        'DCF_RATE_PCT': '',
        'DEFAULT_ALLOTMENT_DATE': '2020-04-01',
    }
    config = LedgerConfig.from_settings()
    assert config.annual_interest_rate_pct == Decimal('18')
    assert config.dcf_rate_pct == Decimal('2.5')
    assert config.default_allotment_date == date(2020, 4, 1)
    assert config.installment_count == 6


@pytest.mark.parametrize('values', [
    {'ANNUAL_INTEREST_RATE_PCT': 'twelve'},
    {'DCF_RATE_PCT': '-1'},
    {'DEFAULT_ALLOTMENT_DATE': '2020-13-01'},
])
def test_ledger_config_rejects_bad_values(settings, values):
    settings.NDC_LEDGER = values
    with pytest.raises(ImproperlyConfigured):
        LedgerConfig.from_settings()


def test_gateway_config_signing_secret_follows_provider(settings):
    settings.PAYMENT_GATEWAY = {
        'PROVIDER': 'Razorpay',
        'WEBHOOK_SECRET': 'webhook',
        'RAZORPAY_KEY_ID': 'rzp_test_key',
        'RAZORPAY_KEY_SECRET': 'rzp_secret',
        'API_BASE_URL': 'https://api.razorpay.com/v1/',
    }
    config = GatewayConfig.from_settings()
    assert config.provider == 'razorpay'
    assert config.signing_secret == 'rzp_secret'
    assert config.api_base_url == 'https://api.razorpay.com/v1'
    assert 'rzp_secret' not in repr(config)

    assert GatewayConfig(webhook_secret='webhook').signing_secret == 'webhook'


def test_gateway_config_rejects_unknown_provider(settings):
    settings.PAYMENT_GATEWAY = {'PROVIDER': 'paypal'}
    with pytest.raises(ImproperlyConfigured):
        GatewayConfig.from_settings()
