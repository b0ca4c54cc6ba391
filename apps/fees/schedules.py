# fees/schedules.py

"""
Fee schedule resolution.

The authoritative schedule for a service lives in the latest published
ServiceVersion under ``config['feeSchedule']``, either as a plain list of
lines or as ``{"default": [...], "byAuthority": {"<authority>": [...]}}``.
Resolution fails closed: a missing or malformed schedule is an error,
never an empty list.
"""

from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
import logging

from applications.models import ServiceVersion
from core.exceptions import LedgerStateError
from core.utils import round2, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeeScheduleLine:
    service_key: str
    authority_id: str
    fee_type: str
    amount: Decimal
    description: str

    @property
    def match_key(self):
        return (self.fee_type, self.amount)


def _schedule_error(code, message=None):
    # configuration problems surface as 400s
    return LedgerStateError(code, message, status_code=400)


class FeeScheduleResolver:
    """
    Example:
        lines = FeeScheduleResolver().resolve('building_plan_approval', 'PUDA')
        [(line.fee_type, line.amount) for line in lines]
    """

    def resolve(self, service_key, authority_id):
        """
        Returns:
            list[FeeScheduleLine]: at least one line

        Raises:
            LedgerStateError: SERVICE_VERSION_NOT_FOUND, FEE_SCHEDULE_NOT_CONFIGURED,
                FEE_SCHEDULE_INVALID_LINE_<index>
        """
        version = ServiceVersion.latest_published(service_key)
        if version is None:
            raise _schedule_error('SERVICE_VERSION_NOT_FOUND', f"No published version of {service_key}")

        raw_schedule = (version.config or {}).get('feeSchedule')
        if not raw_schedule:
            raise _schedule_error('FEE_SCHEDULE_NOT_CONFIGURED', f"{service_key} has no fee schedule")

        candidates = None
        if isinstance(raw_schedule, list):
            candidates = raw_schedule
        elif isinstance(raw_schedule, dict):
            by_authority = raw_schedule.get('byAuthority')
            if isinstance(by_authority, dict) and authority_id in by_authority:
                candidates = by_authority[authority_id]
            else:
                candidates = raw_schedule.get('default')

        if not isinstance(candidates, list) or not candidates:
            raise _schedule_error(
                'FEE_SCHEDULE_NOT_CONFIGURED',
                f"{service_key} has no fee schedule for authority {authority_id}",
            )

        lines = [
            self._parse_line(index, raw, service_key, authority_id)
            for index, raw in enumerate(candidates)
        ]
        logger.debug(
            f"Fee schedule resolved: service={service_key} authority={authority_id} "
            f"version={version.version} lines={len(lines)}"
        )
        return lines

    @staticmethod
    def _parse_line(index, raw, service_key, authority_id):
        raw = raw if isinstance(raw, dict) else {}
        fee_type = raw.get('feeType')
        fee_type = fee_type.strip() if isinstance(fee_type, str) else ''
        amount_raw = raw.get('amount')
        amount = None
        if isinstance(amount_raw, (int, float)) and not isinstance(amount_raw, bool):
            amount = to_decimal(amount_raw)
        if not fee_type or amount is None or amount < 0:
            raise _schedule_error(f"FEE_SCHEDULE_INVALID_LINE_{index}", f"Invalid fee schedule line {index}")

        description = raw.get('description')
        description = description.strip() if isinstance(description, str) and description.strip() else fee_type

        return FeeScheduleLine(
            service_key=service_key,
            authority_id=authority_id,
            fee_type=fee_type,
            amount=round2(amount),
            description=description,
        )


def submitted_items_match(schedule, submitted_items):
    """
    True when the submitted ``{feeHeadCode, amount}`` items are exactly the schedule.

    Counts must match and every line must pair up with an identical code
    and amount; amounts are compared exactly, without tolerance.
    """
    if len(submitted_items) != len(schedule):
        return False

    submitted = Counter()
    for item in submitted_items:
        if not isinstance(item, dict):
            return False
        code = str(item.get('feeHeadCode') or '').strip()
        amount_raw = item.get('amount')
        if isinstance(amount_raw, bool):
            return False
        amount = to_decimal(amount_raw)
        if not code or amount is None:
            return False
        submitted[(code, amount)] += 1

    return submitted == Counter(line.match_key for line in schedule)
