"""
Service classes for toolkit app.

- EmailService: Templated transactional email, sync or via Celery

Usage:
    from toolkit.services import EmailService
"""

from toolkit.services.email import EmailService

__all__ = ["EmailService"]
