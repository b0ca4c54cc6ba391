# fees/gateway.py

"""
Payment gateway adapters.

An adapter does two things: open an order with the provider for a new
online payment, and check that a callback for an order was signed by the
provider. Signatures are HMAC-SHA256 over ``"<orderId>|<paymentId>"`` in
hex and are compared in constant time.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
import hashlib
import hmac
import logging
import re
import uuid

import requests

from core.config import GatewayConfig
from core.exceptions import InfrastructureError, PaymentConfigurationError, PaymentIntegrityError

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r'^[0-9a-f]+$')
_PREFIX_RE = re.compile(r'^sha256=', re.IGNORECASE)


@dataclass(frozen=True)
class GatewayOrder:
    gateway_order_id: str
    provider_transaction_id: str = None
    provider_name: str = None


# =============================================================================
# SIGNATURES
# =============================================================================

def normalize_signature(signature):
    """Strip an optional ``sha256=`` prefix, trim and lowercase."""
    return _PREFIX_RE.sub('', str(signature or '').strip()).strip().lower()


def compute_signature(order_id, payment_id, secret):
    message = f"{order_id}|{payment_id}".encode('utf-8')
    return hmac.new(secret.encode('utf-8'), message, hashlib.sha256).hexdigest()


def signature_matches(order_id, payment_id, signature, secret):
    """
    Constant-time check of ``signature`` against the expected HMAC.

    Anything that is not even-length hex is rejected before comparison.
    """
    normalized = normalize_signature(signature)
    if not _HEX_RE.match(normalized) or len(normalized) % 2 != 0:
        return False
    expected = bytes.fromhex(compute_signature(order_id, payment_id, secret))
    received = bytes.fromhex(normalized)
    if len(expected) != len(received):
        return False
    return hmac.compare_digest(expected, received)


# =============================================================================
# ADAPTERS
# =============================================================================

class PaymentGatewayAdapter:
    name = 'GATEWAY'

    def __init__(self, config=None):
        self.config = config or GatewayConfig.from_settings()

    def create_order(self, payment):
        raise NotImplementedError

    def signing_secret(self):
        raise NotImplementedError

    def verify_callback_signature(self, order_id, payment_id, signature):
        """
        Returns:
            str: the normalised signature, for storage

        Raises:
            PaymentConfigurationError: PAYMENT_SIGNATURE_SECRET_NOT_CONFIGURED
            PaymentIntegrityError: INVALID_GATEWAY_SIGNATURE
        """
        secret = (self.signing_secret() or '').strip()
        if not secret:
            raise PaymentConfigurationError(
                'PAYMENT_SIGNATURE_SECRET_NOT_CONFIGURED',
                f"{self.name} signing secret is not configured",
            )
        if not signature_matches(order_id, payment_id, signature, secret):
            raise PaymentIntegrityError('INVALID_GATEWAY_SIGNATURE', "Gateway signature verification failed")
        return normalize_signature(signature)


class StubPaymentGateway(PaymentGatewayAdapter):
    """Local adapter for development and UAT: orders are minted in-process."""

    name = 'STUB_GATEWAY'

    def signing_secret(self):
        return self.config.webhook_secret

    def create_order(self, payment):
        suffix = uuid.uuid4().hex[:12]
        return GatewayOrder(
            gateway_order_id=f"stub_order_{str(payment.pk)[:8]}_{suffix}",
            provider_transaction_id=f"stub_txn_{suffix}",
            provider_name=self.name,
        )


class RazorpayPaymentGateway(PaymentGatewayAdapter):
    name = 'RAZORPAY'

    def _credentials(self):
        key_id = self.config.razorpay_key_id
        key_secret = self.config.razorpay_key_secret
        if not key_id or not key_secret:
            raise PaymentConfigurationError(
                'PAYMENT_GATEWAY_NOT_CONFIGURED',
                "RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET must be configured",
            )
        return key_id, key_secret

    def signing_secret(self):
        return self.config.razorpay_key_secret

    @staticmethod
    def to_paise(amount):
        return int((Decimal(amount) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    def create_order(self, payment):
        """
        Open a Razorpay order for ``payment``.

        Connection errors, timeouts and 5xx responses are retried up to
        ``max_retries`` times; 4xx responses are not.

        Raises:
            InfrastructureError: PAYMENT_GATEWAY_UNAVAILABLE
        """
        key_id, key_secret = self._credentials()
        url = f"{self.config.api_base_url}/orders"
        body = {
            'amount': self.to_paise(payment.amount),
            'currency': payment.currency or 'INR',
            'receipt': str(payment.pk),
            'notes': {
                'arn': payment.application.arn,
                'demandId': str(payment.demand_id) if payment.demand_id else '',
            },
        }

        attempts = self.config.max_retries + 1
        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                response = requests.post(
                    url,
                    json=body,
                    auth=(key_id, key_secret),
                    timeout=self.config.timeout_seconds,
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = str(e)
                logger.warning(f"Razorpay order attempt {attempt}/{attempts} failed: {e}")
                continue

            if response.status_code >= 500:
                last_error = f"HTTP {response.status_code}"
                logger.warning(f"Razorpay order attempt {attempt}/{attempts} returned {response.status_code}")
                continue
            if not response.ok:
                logger.error(f"Razorpay order creation rejected ({response.status_code}): {response.text[:500]}")
                raise InfrastructureError(
                    'PAYMENT_GATEWAY_UNAVAILABLE',
                    f"Razorpay order creation failed ({response.status_code})",
                )

            order_id = response.json().get('id')
            if not order_id:
                raise InfrastructureError('PAYMENT_GATEWAY_UNAVAILABLE', "Razorpay returned no order id")
            return GatewayOrder(
                gateway_order_id=order_id,
                provider_transaction_id=order_id,
                provider_name=self.name,
            )

        raise InfrastructureError(
            'PAYMENT_GATEWAY_UNAVAILABLE',
            f"Razorpay order creation failed after {attempts} attempts: {last_error}",
        )


ADAPTERS = {
    'stub': StubPaymentGateway,
    'razorpay': RazorpayPaymentGateway,
}


def get_payment_gateway(config=None):
    config = config or GatewayConfig.from_settings()
    return ADAPTERS[config.provider](config)
