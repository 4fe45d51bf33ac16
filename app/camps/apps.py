"""
Camps application configuration.
"""

from django.apps import AppConfig


class CampsConfig(AppConfig):
    """Configuration for the camps application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "camps"
    verbose_name = "Camps"
