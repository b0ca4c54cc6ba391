# fees/urls.py

from django.urls import path

from . import views

app_name = 'fees'

# ARNs contain slashes and always come last in a route
urlpatterns = [
    # Assessment
    path('assess/', views.assess_fees, name='assess_fees'),
    path('line-items/<path:arn>/', views.line_items_for_application, name='line_items_for_application'),

    # Demands
    path('demands/', views.create_demand, name='create_demand'),
    path('demands/for-application/<path:arn>/', views.demands_for_application, name='demands_for_application'),
    path('demands/pending/<path:arn>/', views.pending_demands, name='pending_demands'),
    path('demands/<str:demand_id>/', views.demand_detail, name='demand_detail'),
    path('demands/<str:demand_id>/waive/', views.waive_demand, name='waive_demand'),
    path('demands/<str:demand_id>/cancel/', views.cancel_demand, name='cancel_demand'),

    # Payments
    path('payments/', views.record_payment, name='record_payment'),
    path('payments/callback/', views.gateway_callback, name='gateway_callback'),
    path('payments/for-application/<path:arn>/', views.payments_for_application, name='payments_for_application'),
    path('payments/<str:payment_id>/', views.payment_detail, name='payment_detail'),
    path('payments/<str:payment_id>/verify/', views.verify_payment, name='verify_payment'),
    path('payments/<str:payment_id>/receipt/', views.payment_receipt, name='payment_receipt'),

    # Refunds
    path('refunds/', views.create_refund, name='create_refund'),
    path('refunds/for-application/<path:arn>/', views.refunds_for_application, name='refunds_for_application'),
    path('refunds/<str:refund_id>/approve/', views.refund_transition, {'action': 'approve'}, name='approve_refund'),
    path('refunds/<str:refund_id>/reject/', views.refund_transition, {'action': 'reject'}, name='reject_refund'),
    path('refunds/<str:refund_id>/process/', views.refund_transition, {'action': 'process'}, name='process_refund'),
]
