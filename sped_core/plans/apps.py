# sped_core/plans/apps.py
from django.apps import AppConfig


class PlansConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "sped_core.plans"
