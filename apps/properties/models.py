# properties/models.py

from django.db import models
from django.db.models import Q
import logging

from utils.models import BaseModel

logger = logging.getLogger(__name__)


class Property(BaseModel):
    """
    A physical plot or unit, identified by authority + UPN.

    ``planning_controls['ndc_dues_seed']`` carries the dues seed: optional
    overrides for the NDC calculator and the append-only list of payments
    posted against due codes.
    """

    USAGE_TYPE_CHOICES = [
        ('RESIDENTIAL', 'Residential'),
        ('COMMERCIAL', 'Commercial'),
        ('INDUSTRIAL', 'Industrial'),
        ('INSTITUTIONAL', 'Institutional'),
        ('MIXED', 'Mixed Use'),
    ]

    authority_id = models.CharField(max_length=50, db_index=True)
    upn = models.CharField("Unique Property Number", max_length=64, null=True, blank=True)
    property_number = models.CharField(max_length=50, null=True, blank=True)
    scheme_name = models.CharField(max_length=200, null=True, blank=True)
    usage_type = models.CharField(max_length=20, choices=USAGE_TYPE_CHOICES, null=True, blank=True)
    property_type = models.CharField(max_length=20, null=True, blank=True)

    allotment_date = models.DateField(null=True, blank=True)
    allottee_name = models.CharField(max_length=200, null=True, blank=True)

    area_sqyd = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    planning_controls = models.JSONField(default=dict, blank=True)

    class Meta:
        verbose_name_plural = "Properties"
        ordering = ['authority_id', 'upn']
        constraints = [
            models.UniqueConstraint(
                fields=['authority_id', 'upn'],
                condition=Q(upn__isnull=False),
                name='uniq_property_authority_upn',
            ),
        ]

    def __str__(self):
        return f"{self.upn or self.property_number or self.pk} ({self.authority_id})"

    @property
    def ndc_dues_seed(self):
        controls = self.planning_controls if isinstance(self.planning_controls, dict) else {}
        seed = controls.get('ndc_dues_seed')
        return seed if isinstance(seed, dict) else {}
