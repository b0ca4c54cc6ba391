# applications/models.py

"""
Service applications and published service versions.

Only the fields the fees engine reads are modelled here; intake,
workflow and documents are owned elsewhere.
"""

from django.db import models
import logging

from utils.models import BaseModel

logger = logging.getLogger(__name__)


class Application(BaseModel):
    """A citizen's application, identified by its ARN."""

    arn = models.CharField("ARN", max_length=64, unique=True)
    service_key = models.CharField(max_length=100, db_index=True)
    authority_id = models.CharField(max_length=50, db_index=True)
    linked_property = models.ForeignKey(
        'properties.Property',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='applications',
    )
    data = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.arn} ({self.service_key})"

    @property
    def property_upn(self):
        """UPN captured on the application form, if any."""
        prop = (self.data or {}).get('property')
        if isinstance(prop, dict):
            upn = prop.get('upn')
            if isinstance(upn, str) and upn.strip():
                return upn.strip()
        return None


class ServiceVersion(BaseModel):
    """A versioned service definition; ``config['feeSchedule']`` holds the fee schedule."""

    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('published', 'Published'),
        ('retired', 'Retired'),
    ]

    service_key = models.CharField(max_length=100, db_index=True)
    version = models.CharField(max_length=20)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft', db_index=True)
    effective_from = models.DateTimeField(null=True, blank=True)
    config = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['service_key', '-effective_from']
        constraints = [
            models.UniqueConstraint(fields=['service_key', 'version'], name='uniq_service_version'),
        ]
        indexes = [
            models.Index(fields=['service_key', 'status', 'effective_from'], name='svcver_key_status_idx'),
        ]

    def __str__(self):
        return f"{self.service_key} v{self.version} ({self.status})"

    @classmethod
    def latest_published(cls, service_key):
        return (
            cls.objects
            .filter(service_key=service_key, status='published')
            .order_by('-effective_from', '-created_at')
            .first()
        )
