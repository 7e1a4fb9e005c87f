# sped_core/compliance/apps.py
from django.apps import AppConfig


class ComplianceConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "sped_core.compliance"
