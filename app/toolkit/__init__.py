"""
Toolkit - shared application services.

Key components:
    - services/email.py: EmailService (templated transactional email)
    - tasks.py: send_transactional_email (Celery delivery with retry/backoff)

Usage:
    from toolkit.services.email import EmailService

Note:
    - This app has no models.
    - For model-layer and service-layer base classes, see core/.
"""
