import logging

import resend

from .config import EMAIL_FROM, RESEND_API_KEY

logger = logging.getLogger(__name__)

if RESEND_API_KEY:
    resend.api_key = RESEND_API_KEY


def email_enabled() -> bool:
    return bool(RESEND_API_KEY)


def welcome_email_html(first_name: str) -> str:
    greeting = f"Hi {first_name}," if first_name else "Hi,"
    return (
        f"<p>{greeting}</p>"
        "<p>Welcome to Case Prep. Your free plan includes 10 practice drills and "
        "2 ecosystem simulations every day.</p>"
        "<p>Start with a market sizing drill to get a baseline score.</p>"
    )


def send_welcome_email(email: str, first_name: str = "") -> bool:
    """Send the welcome email. Runs as a background task, so failures are only logged."""
    if not email_enabled():
        logger.info(f"Email disabled, skipping welcome email for {email}")
        return False
    try:
        resend.Emails.send({
            "from": EMAIL_FROM,
            "to": [email],
            "subject": "Welcome to Case Prep",
            "html": welcome_email_html(first_name),
        })
    except Exception as e:
        logger.error(f"Welcome email to {email} failed: {e}")
        return False
    logger.info(f"Welcome email sent to {email}")
    return True
