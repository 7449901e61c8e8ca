import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils.html import strip_tags


logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Your application did not meet our requirements."
DEFAULT_REQUESTED_INFO = "Additional information is required for your application."


def _from_address():
    return f"{settings.EMAIL_FROM_NAME} <{settings.DEFAULT_FROM_EMAIL}>"


def send_templated_email(to, subject, template_name, context):
    """Render an HTML template and send it with a plain-text alternative.

    Errors from the mail backend propagate; callers that treat email as a side
    effect catch them.
    """
    html = render_to_string(
        template_name,
        {
            "brand_name": settings.EMAIL_FROM_NAME,
            "frontend_url": settings.FRONTEND_URL,
            "email": to,
            **context,
        },
    )
    message = EmailMultiAlternatives(
        subject=subject,
        body=strip_tags(html),
        from_email=_from_address(),
        to=[to],
    )
    message.attach_alternative(html, "text/html")
    message.send(fail_silently=False)
    logger.info("Sent '%s' email to %s", subject, to)


def send_mentor_approval_email(email, first_name):
    send_templated_email(
        email,
        f"Welcome to {settings.EMAIL_FROM_NAME} - Your Application is Approved!",
        "emails/mentor_approved.html",
        {"first_name": first_name},
    )


def send_mentor_rejection_email(email, first_name, reason=None):
    send_templated_email(
        email,
        f"{settings.EMAIL_FROM_NAME} Application Update",
        "emails/mentor_rejected.html",
        {"first_name": first_name, "reason": reason or DEFAULT_REJECTION_REASON},
    )


def send_mentor_info_request_email(email, first_name, requested_info=None):
    send_templated_email(
        email,
        f"Additional Information Required - {settings.EMAIL_FROM_NAME} Application",
        "emails/mentor_info_requested.html",
        {"first_name": first_name, "requested_info": requested_info or DEFAULT_REQUESTED_INFO},
    )


def send_admin_message_email(email, user_name, message, admin_name):
    send_templated_email(
        email,
        f"New message from {settings.EMAIL_FROM_NAME}",
        "emails/admin_message.html",
        {"user_name": user_name, "message": message, "admin_name": admin_name},
    )
