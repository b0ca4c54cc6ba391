# properties/urls.py

from django.urls import path

from . import views

app_name = 'properties'

# ARNs contain slashes, so the pay routes must precede the bare ARN routes
urlpatterns = [
    # NDC dues ledger
    path('ndc/<path:arn>/pay/', views.ndc_pay_for_application, name='ndc_pay_for_application'),
    path('ndc/<path:arn>/', views.ndc_status_for_application, name='ndc_status_for_application'),
    path('<str:authority_id>/<str:upn>/dues/pay/', views.ndc_pay_by_upn, name='ndc_pay_by_upn'),
    path('<str:authority_id>/<str:upn>/dues/', views.ndc_status_by_upn, name='ndc_status_by_upn'),
]
