# properties/services.py

import copy
import logging

from django.db import transaction

from applications.models import Application
from core.config import LedgerConfig
from core.exceptions import LedgerNotFoundError, LedgerStateError, LedgerValidationError
from core.utils import BALANCE_TOLERANCE, ZERO, get_base_currency, iso_date, money_out, parse_date_only, round2, today_utc
from properties.models import Property
from properties.ndc import SEED_KEY, NdcDuesCalculator, SeedPayment, normalize_due_code
from utils.audit import log_financial_activity

logger = logging.getLogger(__name__)


# =============================================================================
# PROPERTY RESOLUTION
# =============================================================================

def _property_queryset(for_update):
    return Property.objects.select_for_update() if for_update else Property.objects.all()


def get_property_by_upn(authority_id, upn, for_update=False):
    """
    Raises:
        LedgerNotFoundError: PROPERTY_NOT_FOUND
    """
    prop = _property_queryset(for_update).filter(authority_id=authority_id, upn=upn).first()
    if prop is None:
        raise LedgerNotFoundError('PROPERTY_NOT_FOUND', f"Property {upn} not found")
    return prop


def resolve_property_for_application(arn, for_update=False):
    """
    The property an application concerns.

    The explicitly linked property wins; otherwise the UPN captured on the
    application form is looked up within the application's authority. A
    missing application and a missing property are reported the same way.

    Raises:
        LedgerNotFoundError: PROPERTY_NOT_FOUND
    """
    application = Application.objects.filter(arn=arn).first()
    if application is None:
        raise LedgerNotFoundError('PROPERTY_NOT_FOUND', f"No property found for application {arn}")

    if application.linked_property_id:
        return _property_queryset(for_update).get(pk=application.linked_property_id)

    upn = application.property_upn
    if not upn:
        raise LedgerNotFoundError('PROPERTY_NOT_FOUND', f"No property found for application {arn}")
    return get_property_by_upn(application.authority_id, upn, for_update=for_update)


# =============================================================================
# NDC DUES SERVICE
# =============================================================================

class NdcPaymentService:
    """
    Reads the NDC dues ledger and posts payments against due codes.

    Posting is the only write: one payment is appended to the seed's
    payment list under a row lock on the property, and the ledger is
    recomputed from the result.
    """

    def __init__(self, config=None, calculator=None):
        self.config = config or LedgerConfig.from_settings()
        self.calculator = calculator or NdcDuesCalculator(self.config)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def status_for_property(self, prop, as_of=None):
        return self.calculator.build_ledger(prop, as_of=as_of)

    def status_for_application(self, arn, as_of=None):
        return self.status_for_property(resolve_property_for_application(arn), as_of=as_of)

    def status_by_upn(self, authority_id, upn, as_of=None):
        return self.status_for_property(get_property_by_upn(authority_id, upn), as_of=as_of)

    # -------------------------------------------------------------------------
    # Posting
    # -------------------------------------------------------------------------

    def post_payment_for_application(self, arn, due_code, payment_date=None, actor_id=None):
        with transaction.atomic():
            prop = resolve_property_for_application(arn, for_update=True)
            return self._post(prop, due_code, payment_date, actor_id, arn=arn)

    def post_payment_by_upn(self, authority_id, upn, due_code, payment_date=None, actor_id=None):
        with transaction.atomic():
            prop = get_property_by_upn(authority_id, upn, for_update=True)
            return self._post(prop, due_code, payment_date, actor_id)

    def post_payment(self, property_id, due_code, payment_date=None, actor_id=None):
        with transaction.atomic():
            prop = _property_queryset(True).filter(pk=property_id).first()
            if prop is None:
                raise LedgerNotFoundError('PROPERTY_NOT_FOUND', f"Property {property_id} not found")
            return self._post(prop, due_code, payment_date, actor_id)

    def _post(self, prop, due_code, payment_date, actor_id, arn=None):
        """
        Settle one due in full as of ``payment_date``.

        The amount is whatever is still owed on that date: base plus
        interest up to the payment date, less earlier payments against the
        same due code. Caller holds the property row lock.

        Returns:
            dict: ``{"paymentPosted": {...}, "paymentStatus": <ledger>}``

        Raises:
            LedgerValidationError: DUE_CODE_REQUIRED, INVALID_PAYMENT_DATE
            LedgerNotFoundError: DUE_NOT_FOUND
            LedgerStateError: DUE_ALREADY_PAID
        """
        code = normalize_due_code(due_code)
        if not code:
            raise LedgerValidationError('DUE_CODE_REQUIRED', "dueCode is required")

        if payment_date in (None, ''):
            paid_on = today_utc()
        else:
            paid_on = parse_date_only(payment_date)
            if paid_on is None:
                raise LedgerValidationError('INVALID_PAYMENT_DATE', f"Invalid payment date: {payment_date}")

        ledger_at_payment = self.calculator.build_ledger(prop, as_of=paid_on)
        due = ledger_at_payment.find_due(code)
        if due is None:
            raise LedgerNotFoundError('DUE_NOT_FOUND', f"Due {code} not found for property {prop.upn}")

        interest, _days = self.calculator.interest_for(
            due.base_amount,
            ledger_at_payment.annual_interest_rate_pct,
            due.due_date,
            paid_on,
        )
        total_due_at_payment = round2(due.base_amount + interest)

        seed = self.calculator.parse_seed(prop)
        already_paid = round2(sum((p.amount for p in seed.payments_for(code)), ZERO))
        amount = round2(max(total_due_at_payment - already_paid, ZERO))
        if amount <= BALANCE_TOLERANCE:
            raise LedgerStateError('DUE_ALREADY_PAID', f"Due {code} is already paid")

        payment = SeedPayment(due_code=code, payment_date=paid_on, amount=amount)
        prop.planning_controls = self._append_payment(prop.planning_controls, payment)
        prop.save(update_fields=['planning_controls'], actor_id=actor_id)

        status = self.calculator.build_ledger(prop)

        log_financial_activity(
            action='NDC_PAYMENT_POST',
            actor_id=actor_id,
            target_object=prop,
            amount=amount,
            currency=get_base_currency(),
            application_arn=arn,
            new_values=payment.to_json(),
            additional_data={
                'interest_at_payment_date': money_out(interest),
                'previously_paid': money_out(already_paid),
                'balance_after': money_out(status.totals.balance_amount),
            },
        )
        logger.info(
            f"NDC payment posted: property={prop.upn} due={code} amount={amount} date={iso_date(paid_on)}"
        )

        return {
            'paymentPosted': {
                'propertyId': str(prop.pk),
                'propertyUpn': prop.upn,
                'dueCode': code,
                'label': due.label,
                'amount': money_out(amount),
                'paymentDate': iso_date(paid_on),
            },
            'paymentStatus': status.to_dict(),
        }

    @staticmethod
    def _append_payment(planning_controls, payment):
        """Return a copy of planning controls with ``payment`` appended to the seed."""
        controls = copy.deepcopy(planning_controls) if isinstance(planning_controls, dict) else {}
        seed = controls.get(SEED_KEY)
        seed = seed if isinstance(seed, dict) else {}
        payments = seed.get('payments')
        payments = list(payments) if isinstance(payments, list) else []
        payments.append(payment.to_json())
        seed['payments'] = payments
        controls[SEED_KEY] = seed
        return controls
