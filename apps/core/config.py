# core/config.py

"""
Explicit configuration structs.

Services never read environment variables or settings directly at call
time. Each one receives a config object at construction; ``from_settings``
builds the production instance and tests build their own.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
import logging

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from core.utils import parse_date_only, to_decimal

logger = logging.getLogger(__name__)


def _decimal_setting(values, key, default):
    raw = values.get(key)
    if raw is None or raw == '':
        return default
    parsed = to_decimal(raw)
    if parsed is None or parsed < 0:
        raise ImproperlyConfigured(f"{key} must be a non-negative number, got {raw!r}")
    return parsed


@dataclass(frozen=True)
class LedgerConfig:
    """Defaults and policy constants for the NDC dues calculator."""

    annual_interest_rate_pct: Decimal = Decimal('12')
    dcf_rate_pct: Decimal = Decimal('2.5')
    residential_rate_per_sqyd: Decimal = Decimal('14000')
    commercial_rate_per_sqyd: Decimal = Decimal('22000')
    default_area_sqyd: Decimal = Decimal('150')
    additional_area_rate_per_sqyd: Decimal = Decimal('1800')
    default_allotment_date: date = date(2018, 1, 1)
    installment_count: int = 6
    installment_interval_months: int = 6
    installment_share_pct: Decimal = Decimal('10')
    completion_period_years: int = 3
    additional_area_due_months: int = 24

    @classmethod
    def from_settings(cls):
        values = getattr(settings, 'NDC_LEDGER', {}) or {}
        defaults = cls()

        allotment = defaults.default_allotment_date
        if values.get('DEFAULT_ALLOTMENT_DATE'):
            allotment = parse_date_only(values['DEFAULT_ALLOTMENT_DATE'])
            if allotment is None:
                raise ImproperlyConfigured(
                    f"DEFAULT_ALLOTMENT_DATE must be YYYY-MM-DD, got {values['DEFAULT_ALLOTMENT_DATE']!r}"
                )

        return cls(
            annual_interest_rate_pct=_decimal_setting(values, 'ANNUAL_INTEREST_RATE_PCT', defaults.annual_interest_rate_pct),
            dcf_rate_pct=_decimal_setting(values, 'DCF_RATE_PCT', defaults.dcf_rate_pct),
            residential_rate_per_sqyd=_decimal_setting(values, 'RESIDENTIAL_RATE_PER_SQYD', defaults.residential_rate_per_sqyd),
            commercial_rate_per_sqyd=_decimal_setting(values, 'COMMERCIAL_RATE_PER_SQYD', defaults.commercial_rate_per_sqyd),
            default_area_sqyd=_decimal_setting(values, 'DEFAULT_AREA_SQYD', defaults.default_area_sqyd),
            additional_area_rate_per_sqyd=_decimal_setting(
                values, 'ADDITIONAL_AREA_RATE_PER_SQYD', defaults.additional_area_rate_per_sqyd
            ),
            default_allotment_date=allotment,
        )


@dataclass(frozen=True)
class GatewayConfig:
    """Payment gateway credentials and transport limits."""

    provider: str = 'stub'
    webhook_secret: str = ''
    razorpay_key_id: str = ''
    razorpay_key_secret: str = field(default='', repr=False)
    api_base_url: str = 'https://api.razorpay.com/v1'
    timeout_seconds: float = 15.0
    max_retries: int = 2

    @property
    def signing_secret(self):
        """The secret callbacks are signed with for the configured provider."""
        if self.provider == 'razorpay':
            return self.razorpay_key_secret
        return self.webhook_secret

    @classmethod
    def from_settings(cls):
        values = getattr(settings, 'PAYMENT_GATEWAY', {}) or {}
        provider = (values.get('PROVIDER') or 'stub').strip().lower()
        if provider not in ('stub', 'razorpay'):
            raise ImproperlyConfigured(f"Unknown PAYMENT_GATEWAY provider: {provider!r}")
        return cls(
            provider=provider,
            webhook_secret=values.get('WEBHOOK_SECRET') or '',
            razorpay_key_id=values.get('RAZORPAY_KEY_ID') or '',
            razorpay_key_secret=values.get('RAZORPAY_KEY_SECRET') or '',
            api_base_url=(values.get('API_BASE_URL') or cls.api_base_url).rstrip('/'),
            timeout_seconds=float(values.get('TIMEOUT_SECONDS', cls.timeout_seconds)),
            max_retries=int(values.get('MAX_RETRIES', cls.max_retries)),
        )
