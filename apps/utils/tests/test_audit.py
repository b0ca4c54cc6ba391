from datetime import timedelta

import pytest
from django.http import HttpResponse
from django.test import RequestFactory
from django.utils import timezone

from utils.audit import log_financial_activity
from utils.context import RequestContext, get_request_context
from utils.middleware import AuditContextMiddleware
from utils.models import FinancialAuditLog

pytestmark = pytest.mark.django_db


def test_entry_is_stamped_from_request_context(application):
    with RequestContext(actor_id='officer-17', ip_address='10.0.0.5', request_path='/fees/payments/'):
        entry = log_financial_activity(
            action='PAYMENT_RECORD',
            target_object=application,
            amount='1250.50',
            currency='inr',
            application_arn=application.arn,
            new_values={'status': 'SUCCESS'},
        )

    assert entry.actor_id == 'officer-17'
    assert entry.ip_address == '10.0.0.5'
    assert entry.request_path == '/fees/payments/'
    assert entry.currency == 'INR'
    assert str(entry.amount_involved) == '1250.50'
    assert entry.object_id == str(application.pk)
    assert get_request_context() is None


def test_explicit_actor_wins_over_context(application):
    with RequestContext(actor_id='officer-17'):
        entry = log_financial_activity(action='DEMAND_WAIVE', actor_id='committee-2', application_arn=application.arn)

    assert entry.actor_id == 'committee-2'


def test_bad_amount_is_dropped_not_raised(application):
    entry = log_financial_activity(action='DEMAND_CREATE', amount='lots', application_arn=application.arn)

    assert entry.pk is not None
    assert entry.amount_involved is None


def test_history_queries(application):
    log_financial_activity(action='PAYMENT_RECORD', application_arn=application.arn)
    log_financial_activity(action='PAYMENT_VERIFY', application_arn=application.arn, risk_level='HIGH')
    log_financial_activity(action='PAYMENT_RECORD', application_arn='OTHER/ARN')
    old = log_financial_activity(action='REFUND_PROCESS', application_arn=application.arn, risk_level='CRITICAL')
    FinancialAuditLog.objects.filter(pk=old.pk).update(timestamp=timezone.now() - timedelta(days=90))

    history = list(FinancialAuditLog.for_application(application.arn))
    assert [entry.action for entry in history] == ['PAYMENT_VERIFY', 'PAYMENT_RECORD', 'REFUND_PROCESS']

    assert [entry.action for entry in FinancialAuditLog.get_high_risk_actions(days=30)] == ['PAYMENT_VERIFY']


def test_middleware_sets_and_clears_context():
    seen = {}

    def view(request):
        seen.update(get_request_context())
        return HttpResponse('ok')

    request = RequestFactory().post(
        '/fees/payments/',
        HTTP_X_ACTOR_ID='cashier-4',
        HTTP_X_FORWARDED_FOR='203.0.113.9, 10.0.0.1',
    )
    AuditContextMiddleware(view)(request)

    assert seen['actor_id'] == 'cashier-4'
    assert seen['ip_address'] == '203.0.113.9'
    assert seen['request_path'] == '/fees/payments/'
    assert get_request_context() is None


def test_model_save_stamps_actor_and_ip(make_application):
    with RequestContext(actor_id='clerk-1', ip_address='192.168.1.20'):
        app = make_application(arn='PUDA/2024/DFT/000999')

    assert app.created_by_id == 'clerk-1'
    assert app.created_from_ip == '192.168.1.20'

    app.data = {'note': 'updated'}
    app.save(actor_id='clerk-2', update_fields=['data'])
    app.refresh_from_db()
    assert app.updated_by_id == 'clerk-2'
    assert app.created_by_id == 'clerk-1'
