from ..models.user import ROLE_ADMIN, ROLE_APPLICANT


def role_for_email(email, admin_emails=(), admin_domains=()):
    """Staff role from the configured allowlist, applicant otherwise."""
    email = (email or "").strip().lower()
    if not email:
        return ROLE_APPLICANT
    if email in admin_emails:
        return ROLE_ADMIN
    domain = email.rsplit("@", 1)[-1]
    if domain in admin_domains:
        return ROLE_ADMIN
    return ROLE_APPLICANT
