# properties/ndc.py

"""
No Due Certificate (NDC) dues ledger.

The ledger is never stored. Every read rebuilds it from the property's
dues seed (optional overrides plus the append-only payment list) and an
as-of date:

- six installments at allotment + 6, 12, ... 36 months
- an additional-area charge at allotment + 24 months, when seeded
- a delayed completion fee at allotment + 3 years, when construction
  finished late or has not finished

Each due accrues simple daily interest (rate / 100 * days / 365) from its
due date until the latest payment date recorded against it, or until the
as-of date when nothing has been paid.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
import logging

from django.utils import timezone

from core.config import LedgerConfig
from core.utils import (
    DAYS_IN_YEAR, ZERO, add_months, add_years, as_date, days_between,
    iso_date, is_settled, money_out, parse_date_only, round2, to_decimal,
    today_utc,
)

logger = logging.getLogger(__name__)

SEED_KEY = 'ndc_dues_seed'


class DueKind(str, Enum):
    INSTALLMENT = 'INSTALLMENT'
    ADDITIONAL_AREA = 'ADDITIONAL_AREA'
    DELAYED_COMPLETION_FEE = 'DELAYED_COMPLETION_FEE'


class DueStatus(str, Enum):
    PAID = 'PAID'
    PARTIALLY_PAID = 'PARTIALLY_PAID'
    PENDING = 'PENDING'


ADDITIONAL_AREA_CODE = 'ADDITIONAL_AREA'
DELAYED_COMPLETION_CODE = 'DELAYED_COMPLETION_FEE'


def installment_code(number):
    return f"INSTALLMENT_{number}"


def normalize_due_code(value):
    return str(value or '').strip().upper()


# =============================================================================
# SEED
# =============================================================================

def _seed_number(value):
    """JSON numbers only; strings and booleans do not count."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    return to_decimal(value)


@dataclass(frozen=True)
class SeedPayment:
    due_code: str
    payment_date: date
    amount: Decimal

    def to_json(self):
        return {
            'dueCode': self.due_code,
            'paymentDate': iso_date(self.payment_date),
            'amount': money_out(self.amount),
        }


@dataclass(frozen=True)
class NdcDuesSeed:
    """Parsed dues seed. Malformed fields are ignored one by one."""

    property_value: Decimal = None
    annual_interest_rate_pct: Decimal = None
    dcf_rate_pct: Decimal = None
    additional_area_sqyd: Decimal = None
    additional_area_rate_per_sqyd: Decimal = None
    construction_completed_at: date = None
    installment_amounts: tuple = None
    payments: tuple = ()

    @classmethod
    def from_raw(cls, raw):
        if not isinstance(raw, dict):
            raw = {}

        def positive(key):
            value = _seed_number(raw.get(key))
            return value if value is not None and value > 0 else None

        def non_negative(key):
            value = _seed_number(raw.get(key))
            return value if value is not None and value >= 0 else None

        installments = None
        raw_installments = raw.get('installmentAmounts')
        if isinstance(raw_installments, list):
            parsed = [_seed_number(v) for v in raw_installments]
            if all(v is not None and v >= 0 for v in parsed):
                installments = tuple(parsed)

        completed_raw = raw.get('constructionCompletedAt')
        completed_at = parse_date_only(completed_raw) if isinstance(completed_raw, str) else None

        return cls(
            property_value=positive('propertyValue'),
            annual_interest_rate_pct=non_negative('annualInterestRatePct'),
            dcf_rate_pct=non_negative('dcfRatePct'),
            additional_area_sqyd=positive('additionalAreaSqyd'),
            additional_area_rate_per_sqyd=positive('additionalAreaRatePerSqyd'),
            construction_completed_at=completed_at,
            installment_amounts=installments,
            payments=tuple(parse_seed_payments(raw.get('payments'))),
        )

    def payments_for(self, due_code):
        return [p for p in self.payments if p.due_code == due_code]


def parse_seed_payments(raw_payments):
    """
    Yield the well-formed payments of a seed, normalised.

    Entries without a due code, with an unparseable date or with a
    non-positive amount are skipped.
    """
    if not isinstance(raw_payments, list):
        return
    for item in raw_payments:
        if not isinstance(item, dict):
            continue
        code = item.get('dueCode')
        raw_date = item.get('paymentDate')
        if not isinstance(code, str) or not isinstance(raw_date, str):
            continue
        code = normalize_due_code(code)
        paid_on = parse_date_only(raw_date)
        amount = _seed_number(item.get('amount'))
        if not code or paid_on is None or amount is None or amount <= 0:
            continue
        yield SeedPayment(due_code=code, payment_date=paid_on, amount=round2(amount))


@dataclass(frozen=True)
class PaidSummary:
    amount: Decimal
    latest_payment_date: date


def summarize_payments(payments):
    """
    Sum payments per due code and keep the latest payment date.

    The latest date (equivalently the lexicographic max of the ISO
    strings) stops interest for the whole due, even when that last
    payment was a small top-up.
    """
    summary = {}
    for payment in payments:
        existing = summary.get(payment.due_code)
        if existing is None:
            summary[payment.due_code] = PaidSummary(payment.amount, payment.payment_date)
        else:
            summary[payment.due_code] = PaidSummary(
                round2(existing.amount + payment.amount),
                max(existing.latest_payment_date, payment.payment_date),
            )
    return summary


# =============================================================================
# LEDGER TYPES
# =============================================================================

@dataclass(frozen=True)
class DueLine:
    due_code: str
    label: str
    due_kind: DueKind
    due_date: date
    base_amount: Decimal
    interest_amount: Decimal
    total_due_amount: Decimal
    paid_amount: Decimal
    balance_amount: Decimal
    status: DueStatus
    payment_date: date
    days_delayed: int

    def to_dict(self):
        return {
            'dueCode': self.due_code,
            'label': self.label,
            'dueKind': self.due_kind.value,
            'dueDate': iso_date(self.due_date),
            'baseAmount': money_out(self.base_amount),
            'interestAmount': money_out(self.interest_amount),
            'totalDueAmount': money_out(self.total_due_amount),
            'paidAmount': money_out(self.paid_amount),
            'balanceAmount': money_out(self.balance_amount),
            'status': self.status.value,
            'paymentDate': iso_date(self.payment_date),
            'daysDelayed': self.days_delayed,
        }


TOTAL_COLUMNS = ('base_amount', 'interest_amount', 'total_due_amount', 'paid_amount', 'balance_amount')


@dataclass(frozen=True)
class LedgerTotals:
    base_amount: Decimal = ZERO
    interest_amount: Decimal = ZERO
    total_due_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    balance_amount: Decimal = ZERO

    @classmethod
    def from_dues(cls, dues):
        # sum the displayed row values, then round once
        return cls(**{
            column: round2(sum((getattr(due, column) for due in dues), ZERO))
            for column in TOTAL_COLUMNS
        })

    def to_dict(self):
        return {
            'baseAmount': money_out(self.base_amount),
            'interestAmount': money_out(self.interest_amount),
            'totalDueAmount': money_out(self.total_due_amount),
            'paidAmount': money_out(self.paid_amount),
            'balanceAmount': money_out(self.balance_amount),
        }


@dataclass(frozen=True)
class NdcLedger:
    property_id: str
    property_upn: str
    authority_id: str
    allotment_date: date
    property_value: Decimal
    annual_interest_rate_pct: Decimal
    dcf_rate_pct: Decimal
    dues: tuple
    totals: LedgerTotals
    all_dues_paid: bool
    certificate_eligible: bool
    generated_at: object = field(default_factory=timezone.now)

    def find_due(self, due_code):
        code = normalize_due_code(due_code)
        for due in self.dues:
            if due.due_code == code:
                return due
        return None

    def to_dict(self):
        return {
            'propertyId': self.property_id,
            'propertyUpn': self.property_upn,
            'authorityId': self.authority_id,
            'allotmentDate': iso_date(self.allotment_date),
            'propertyValue': money_out(self.property_value),
            'annualInterestRatePct': float(self.annual_interest_rate_pct),
            'dcfRatePct': float(self.dcf_rate_pct),
            'dues': [due.to_dict() for due in self.dues],
            'totals': self.totals.to_dict(),
            'allDuesPaid': self.all_dues_paid,
            'certificateEligible': self.certificate_eligible,
            'generatedAt': self.generated_at.isoformat(),
        }


@dataclass(frozen=True)
class LedgerTerms:
    """Seed values resolved against configured defaults."""

    allotment_date: date
    property_value: Decimal
    annual_interest_rate_pct: Decimal
    dcf_rate_pct: Decimal
    installment_amounts: tuple
    additional_area_sqyd: Decimal
    additional_area_rate_per_sqyd: Decimal
    construction_completed_at: date


# =============================================================================
# CALCULATOR
# =============================================================================

class NdcDuesCalculator:
    """
    Pure dues calculator; no database access.

    Accepts any property-like object exposing ``pk``, ``upn``,
    ``authority_id``, ``allotment_date``, ``area_sqyd``, ``usage_type``
    and ``planning_controls``.

    Example:
        calculator = NdcDuesCalculator(LedgerConfig.from_settings())
        ledger = calculator.build_ledger(prop, as_of=date(2024, 8, 15))
        ledger.totals.balance_amount
    """

    def __init__(self, config=None):
        self.config = config or LedgerConfig()
        self._builders = {
            DueKind.INSTALLMENT: self._installment_dues,
            DueKind.ADDITIONAL_AREA: self._additional_area_dues,
            DueKind.DELAYED_COMPLETION_FEE: self._delayed_completion_dues,
        }

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def parse_seed(self, property_obj):
        controls = property_obj.planning_controls if isinstance(property_obj.planning_controls, dict) else {}
        return NdcDuesSeed.from_raw(controls.get(SEED_KEY))

    def build_ledger(self, property_obj, as_of=None):
        as_of = as_date(as_of) if as_of is not None else today_utc()
        seed = self.parse_seed(property_obj)
        terms = self.resolve_terms(property_obj, seed)
        paid = summarize_payments(seed.payments)

        dues = []
        for kind in DueKind:
            dues.extend(self._builders[kind](terms, paid, as_of))
        dues.sort(key=lambda due: (due.due_date, due.due_code))

        totals = LedgerTotals.from_dues(dues)
        all_paid = is_settled(totals.balance_amount)

        ledger = NdcLedger(
            property_id=str(property_obj.pk),
            property_upn=property_obj.upn,
            authority_id=property_obj.authority_id,
            allotment_date=property_obj.allotment_date,
            property_value=round2(terms.property_value),
            annual_interest_rate_pct=terms.annual_interest_rate_pct,
            dcf_rate_pct=terms.dcf_rate_pct,
            dues=tuple(dues),
            totals=totals,
            all_dues_paid=all_paid,
            certificate_eligible=all_paid,
        )
        logger.debug(
            f"NDC ledger for property {ledger.property_id} as of {as_of}: "
            f"{len(dues)} dues, balance {totals.balance_amount}"
        )
        return ledger

    def resolve_terms(self, property_obj, seed):
        config = self.config
        allotment = property_obj.allotment_date or config.default_allotment_date

        property_value = seed.property_value
        if property_value is None:
            area = to_decimal(property_obj.area_sqyd)
            if area is None:
                area = config.default_area_sqyd
            rate = (
                config.commercial_rate_per_sqyd
                if property_obj.usage_type == 'COMMERCIAL'
                else config.residential_rate_per_sqyd
            )
            property_value = round2(area * rate)

        if seed.installment_amounts is not None and len(seed.installment_amounts) >= config.installment_count:
            installments = tuple(seed.installment_amounts[:config.installment_count])
        else:
            share = round2(property_value * config.installment_share_pct / 100)
            installments = (share,) * config.installment_count

        return LedgerTerms(
            allotment_date=as_date(allotment),
            property_value=property_value,
            annual_interest_rate_pct=(
                seed.annual_interest_rate_pct
                if seed.annual_interest_rate_pct is not None
                else config.annual_interest_rate_pct
            ),
            dcf_rate_pct=seed.dcf_rate_pct if seed.dcf_rate_pct is not None else config.dcf_rate_pct,
            installment_amounts=installments,
            additional_area_sqyd=seed.additional_area_sqyd or ZERO,
            additional_area_rate_per_sqyd=(
                seed.additional_area_rate_per_sqyd or config.additional_area_rate_per_sqyd
            ),
            construction_completed_at=seed.construction_completed_at,
        )

    @staticmethod
    def interest_for(base_amount, annual_rate_pct, due_date, stop_date):
        """
        Simple daily interest from ``due_date`` to ``stop_date``.

        Returns:
            tuple: (interest rounded to 2dp, whole days delayed)
        """
        days = days_between(due_date, stop_date)
        if days <= 0:
            return ZERO, 0
        interest = round2(base_amount * annual_rate_pct / 100 * days / DAYS_IN_YEAR)
        return interest, days

    # -------------------------------------------------------------------------
    # Per-kind builders
    # -------------------------------------------------------------------------

    def _installment_dues(self, terms, paid, as_of):
        config = self.config
        for index, amount in enumerate(terms.installment_amounts, start=1):
            code = installment_code(index)
            yield self._build_due_line(
                due_code=code,
                label=f"Installment {index}",
                due_kind=DueKind.INSTALLMENT,
                due_date=add_months(terms.allotment_date, index * config.installment_interval_months),
                base_amount=amount,
                terms=terms,
                paid=paid.get(code),
                as_of=as_of,
            )

    def _additional_area_dues(self, terms, paid, as_of):
        if terms.additional_area_sqyd <= 0:
            return
        yield self._build_due_line(
            due_code=ADDITIONAL_AREA_CODE,
            label="Payment for Additional Area",
            due_kind=DueKind.ADDITIONAL_AREA,
            due_date=add_months(terms.allotment_date, self.config.additional_area_due_months),
            base_amount=round2(terms.additional_area_sqyd * terms.additional_area_rate_per_sqyd),
            terms=terms,
            paid=paid.get(ADDITIONAL_AREA_CODE),
            as_of=as_of,
        )

    def _delayed_completion_dues(self, terms, paid, as_of):
        deadline = add_years(terms.allotment_date, self.config.completion_period_years)
        completed = terms.construction_completed_at
        if completed is not None and completed <= deadline:
            return
        yield self._build_due_line(
            due_code=DELAYED_COMPLETION_CODE,
            label="Delayed Completion Fee (DCF)",
            due_kind=DueKind.DELAYED_COMPLETION_FEE,
            due_date=deadline,
            base_amount=round2(terms.property_value * terms.dcf_rate_pct / 100),
            terms=terms,
            paid=paid.get(DELAYED_COMPLETION_CODE),
            as_of=as_of,
        )

    def _build_due_line(self, due_code, label, due_kind, due_date, base_amount, terms, paid, as_of):
        base_amount = round2(base_amount)
        paid_amount = paid.amount if paid else ZERO
        payment_date = paid.latest_payment_date if paid else None

        interest, days = self.interest_for(
            base_amount,
            terms.annual_interest_rate_pct,
            due_date,
            payment_date or as_of,
        )
        total_due = round2(base_amount + interest)
        balance = round2(max(total_due - paid_amount, ZERO))

        if is_settled(balance):
            status = DueStatus.PAID
        elif paid_amount > 0:
            status = DueStatus.PARTIALLY_PAID
        else:
            status = DueStatus.PENDING

        return DueLine(
            due_code=due_code,
            label=label,
            due_kind=due_kind,
            due_date=due_date,
            base_amount=base_amount,
            interest_amount=interest,
            total_due_amount=total_due,
            paid_amount=round2(paid_amount),
            balance_amount=balance,
            status=status,
            payment_date=payment_date,
            days_delayed=days,
        )
