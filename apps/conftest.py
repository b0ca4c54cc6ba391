from datetime import date
import uuid

import pytest
from django.utils import timezone

from applications.models import Application, ServiceVersion
from core.config import GatewayConfig
from fees.gateway import StubPaymentGateway, compute_signature
from properties.models import Property

WEBHOOK_SECRET = 'test-webhook-secret'
ARN = 'PUDA/2024/DFT/000123'


@pytest.fixture
def gateway_config():
    return GatewayConfig(provider='stub', webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def stub_gateway(gateway_config):
    return StubPaymentGateway(gateway_config)


@pytest.fixture
def gateway_settings(settings):
    settings.PAYMENT_GATEWAY = {'PROVIDER': 'stub', 'WEBHOOK_SECRET': WEBHOOK_SECRET}
    return settings


@pytest.fixture
def sign():
    def _sign(order_id, payment_id, secret=WEBHOOK_SECRET):
        return compute_signature(order_id, payment_id, secret)
    return _sign


@pytest.fixture
def fee_schedule_version(db):
    return ServiceVersion.objects.create(
        service_key='building_plan_approval',
        version='1.0',
        status='published',
        effective_from=timezone.now(),
        config={
            'feeSchedule': [
                {'feeType': 'SCRUTINY_FEE', 'amount': 500, 'description': 'Scrutiny Fee'},
                {'feeType': 'PROCESSING_FEE', 'amount': 750},
            ],
        },
    )


@pytest.fixture
def ndc_property(db):
    return Property.objects.create(
        authority_id='PUDA',
        upn='PB-140-001-003-002301',
        property_number='2301',
        scheme_name='Urban Estate Phase 2',
        usage_type='RESIDENTIAL',
        allotment_date=date(2024, 1, 1),
        allottee_name='A. Singh',
        area_sqyd=150,
        planning_controls={'ndc_dues_seed': {'propertyValue': 1500000}},
    )


@pytest.fixture
def application(db, fee_schedule_version, ndc_property):
    return Application.objects.create(
        arn=ARN,
        service_key='building_plan_approval',
        authority_id='PUDA',
        linked_property=ndc_property,
        data={'property': {'upn': ndc_property.upn}},
    )


@pytest.fixture
def make_application(db):
    def _make(arn=None, service_key='building_plan_approval', authority_id='PUDA', **kwargs):
        return Application.objects.create(
            arn=arn or f"PUDA/2024/DFT/{uuid.uuid4().hex[:6].upper()}",
            service_key=service_key,
            authority_id=authority_id,
            **kwargs,
        )
    return _make
