from datetime import timedelta

import pytest
from django.utils import timezone

from applications.models import Application, ServiceVersion
from applications.services import resolve_application
from core.exceptions import LedgerNotFoundError

pytestmark = pytest.mark.django_db


def test_resolve_application(application):
    assert resolve_application(application.arn).pk == application.pk

    with pytest.raises(LedgerNotFoundError) as exc:
        resolve_application('PUDA/2024/DFT/404404')
    assert exc.value.code == 'APPLICATION_NOT_FOUND'
    assert exc.value.status_code == 404


@pytest.mark.parametrize('data, expected', [
    ({'property': {'upn': '  PB-140-001-003-002301 '}}, 'PB-140-001-003-002301'),
    ({'property': {'upn': '   '}}, None),
    ({'property': 'PB-140'}, None),
    ({}, None),
])
def test_property_upn(data, expected):
    assert Application(arn='X', data=data).property_upn == expected


def test_latest_published_ignores_drafts_and_older_versions():
    now = timezone.now()
    ServiceVersion.objects.create(service_key='trade_licence', version='1', status='published',
                                  effective_from=now - timedelta(days=30))
    current = ServiceVersion.objects.create(service_key='trade_licence', version='2', status='published',
                                            effective_from=now - timedelta(days=1))
    ServiceVersion.objects.create(service_key='trade_licence', version='3', status='draft', effective_from=now)

    assert ServiceVersion.latest_published('trade_licence') == current
    assert ServiceVersion.latest_published('unknown_service') is None


def test_linked_property_and_form_upn_coexist(application, ndc_property):
    loaded = Application.objects.select_related('linked_property').get(pk=application.pk)

    assert loaded.linked_property == ndc_property
    assert loaded.property_upn == ndc_property.upn
    assert list(ndc_property.applications.all()) == [application]
