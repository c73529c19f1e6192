from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from flask import current_app


def send_mail(to_email, subject, html, text=None):
    """Send one transactional message to an applicant. Returns (status, headers)."""
    message = Mail(
        from_email=(current_app.config['MAIL_FROM'], current_app.config['MAIL_FROM_NAME']),
        to_emails=to_email,
        subject=subject,
        html_content=html,
        plain_text_content=text,
    )
    resp = SendGridAPIClient(api_key=current_app.config['SENDGRID_API_KEY']).send(message)
    if resp.status_code >= 300:
        current_app.logger.warning('SendGrid rejected "%s" for %s: %s', subject, to_email, resp.status_code)
    return resp.status_code, getattr(resp, 'headers', None)
