"""
URL configuration for civicfees project.
"""
from django.urls import include, path

urlpatterns = [
    path('fees/', include(('fees.urls', 'fees'), namespace='fees')),
    path('properties/', include(('properties.urls', 'properties'), namespace='properties')),
]
