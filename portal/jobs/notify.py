"""Outgoing mail jobs; enqueued through ``rq`` and run inline without Redis."""
from flask import current_app
from ..services.mail import send_mail


def _send(to_email, subject, body_html):
    if not current_app.config.get('SENDGRID_API_KEY'):
        current_app.logger.warning('SENDGRID_API_KEY not set; not sending "%s" to %s', subject, to_email)
        return None
    status, _ = send_mail(to_email, subject, body_html)
    current_app.logger.info('Sent "%s" to %s (status %s)', subject, to_email, status)
    return status


def send_password_reset(to_email: str, reset_url: str):
    body = (
        "<p>We received a request to reset the password for your assessment account.</p>"
        f'<p><a href="{reset_url}">Choose a new password</a></p>'
        "<p>If you did not ask for this, you can ignore this e-mail.</p>"
    )
    return _send(to_email, "Reset your password", body)


def send_completion_notice(to_email: str):
    body = (
        "<p>Thank you for completing the assessment.</p>"
        "<p>Our team will review your responses and contact you about next steps.</p>"
    )
    return _send(to_email, "Assessment received", body)
