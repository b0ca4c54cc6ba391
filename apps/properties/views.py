# properties/views.py

import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from core.utils import parse_date_only
from core.exceptions import LedgerValidationError
from properties.services import NdcPaymentService
from utils.utils import get_actor_id, json_endpoint, parse_json_body

logger = logging.getLogger(__name__)


def _as_of(request):
    raw = request.GET.get('asOf')
    if not raw:
        return None
    parsed = parse_date_only(raw)
    if parsed is None:
        raise LedgerValidationError('INVALID_AS_OF_DATE', f"Invalid asOf date: {raw}")
    return parsed


# =============================================================================
# NDC DUES BY APPLICATION
# =============================================================================

@require_GET
@json_endpoint
def ndc_status_for_application(request, arn):
    """Dues ledger for the property linked to an application."""
    ledger = NdcPaymentService().status_for_application(arn, as_of=_as_of(request))
    return JsonResponse({"success": True, "paymentStatus": ledger.to_dict()})


@csrf_exempt
@require_POST
@json_endpoint
def ndc_pay_for_application(request, arn):
    """
    Post a payment against one due of the application's property.

    Body: ``{"dueCode": "INSTALLMENT_1", "paymentDate": "2024-08-15"}``
    """
    data = parse_json_body(request)
    result = NdcPaymentService().post_payment_for_application(
        arn,
        data.get("dueCode"),
        payment_date=data.get("paymentDate"),
        actor_id=get_actor_id(request),
    )
    return JsonResponse({"success": True, **result}, status=201)


# =============================================================================
# NDC DUES BY UPN
# =============================================================================

@require_GET
@json_endpoint
def ndc_status_by_upn(request, authority_id, upn):
    ledger = NdcPaymentService().status_by_upn(authority_id, upn, as_of=_as_of(request))
    return JsonResponse({"success": True, "paymentStatus": ledger.to_dict()})


@csrf_exempt
@require_POST
@json_endpoint
def ndc_pay_by_upn(request, authority_id, upn):
    data = parse_json_body(request)
    result = NdcPaymentService().post_payment_by_upn(
        authority_id,
        upn,
        data.get("dueCode"),
        payment_date=data.get("paymentDate"),
        actor_id=get_actor_id(request),
    )
    return JsonResponse({"success": True, **result}, status=201)
