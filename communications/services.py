from django.conf import settings
from django.core.mail import EmailMultiAlternatives, send_mail
from django.db import transaction
from django.template.loader import render_to_string
from django.utils.html import strip_tags
from azure.communication.email import EmailClient
import logging

logger = logging.getLogger(__name__)


class EmailService:
    def __init__(self):
        self.connection_string = getattr(settings, 'AZURE_COMMUNICATION_CONNECTION_STRING', None)
        self.sender_address = getattr(settings, 'AZURE_COMMUNICATION_SENDER_ADDRESS', None)
        self.client = None

        if not self.connection_string or not self.sender_address:
            logger.info("Azure Communication Email is not configured; using Django email backend")
            return

        try:
            logger.info("Initializing Azure Email Client")
            self.client = EmailClient.from_connection_string(self.connection_string)
            logger.info("Azure Email Client initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize Azure Email Client: {str(e)}")
            self.client = None

    def send_email(self, to_email, subject, html_content, bcc=None):
        """
        Send an email using Azure Communication Service with fallback to Django's email backend.

        ``to_email`` may be one address or a list. Errors from the Django
        backend propagate to the caller.
        """
        to_list = [to_email] if isinstance(to_email, str) else list(to_email)
        bcc_list = list(bcc or [])

        if self.client:
            try:
                logger.info(f"Attempting to send email via Azure to {len(to_list) + len(bcc_list)} recipients")
                recipients = {"to": [{"address": address} for address in to_list]}
                if bcc_list:
                    recipients["bcc"] = [{"address": address} for address in bcc_list]
                message = {
                    "senderAddress": self.sender_address,
                    "recipients": recipients,
                    "content": {
                        "subject": subject,
                        "plainText": strip_tags(html_content),
                        "html": html_content
                    }
                }

                poller = self.client.begin_send(message)
                poller.result()
                logger.info(f"Email sent successfully via Azure: {subject}")
                return True
            except Exception as e:
                logger.error(f"Azure email sending failed for '{subject}': {str(e)}")
                logger.info("Falling back to Django email backend")

        return self._send_with_django(to_list, subject, html_content, bcc_list)

    def _send_with_django(self, to_list, subject, html_content, bcc_list):
        if not bcc_list:
            return send_mail(
                subject=subject,
                message=strip_tags(html_content),
                html_message=html_content,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=to_list,
                fail_silently=False
            )

        email = EmailMultiAlternatives(
            subject=subject,
            body=strip_tags(html_content),
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=to_list,
            bcc=bcc_list,
        )
        email.attach_alternative(html_content, "text/html")
        return email.send(fail_silently=False)

    def send_templated_email(self, to_email, subject, template_name, context, bcc=None):
        """Send an email using a template."""
        logger.info(f"Rendering email template {template_name}")
        html_content = render_to_string(template_name, context)
        return self.send_email(to_email, subject, html_content, bcc=bcc)


def public_program_url(program):
    base_url = getattr(settings, 'PUBLIC_BASE_URL', '').rstrip('/')
    return f"{base_url}/register/{program.link_slug or program.pk}"


def send_registration_ticket(participant_id, program_id):
    """
    Email a registration ticket to a participant.

    Failures are logged and never raised: the registration is already saved.
    Returns True when the email was handed to a backend.
    """
    from programs.models import Participant, Program

    try:
        participant = Participant.objects.get(pk=participant_id)
        program = Program.objects.select_related('parent_program').get(pk=program_id)
        if not participant.email:
            logger.info(f"Participant {participant_id} has no email; skipping registration ticket")
            return False

        context = {
            'participant': participant,
            'program': program,
            'program_name': program.display_name,
            'ticket_id': f"{program.pk}-{participant.pk}",
            'program_url': public_program_url(program),
        }
        EmailService().send_templated_email(
            participant.email,
            f"Registration Confirmed: {program.display_name}",
            'communications/emails/registration_ticket.html',
            context,
        )
        logger.info(f"Registration ticket sent to participant {participant_id} for program {program_id}")
        return True
    except Exception as e:
        logger.error(f"Failed to send registration ticket to participant {participant_id}: {str(e)}")
        return False


def schedule_registration_ticket(participant, program):
    """Send the ticket once the registration transaction commits."""
    transaction.on_commit(lambda: send_registration_ticket(participant.pk, program.pk))
