import asyncio
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime
from typing import Optional
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)


EMAIL_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: #16a34a; color: white; padding: 20px; text-align: center; }
    .content { padding: 30px; background: #f9f9f9; }
    .summary { background: white; border: 1px solid #e5e7eb; border-radius: 5px; padding: 15px; margin: 15px 0; }
    .summary td { padding: 4px 12px 4px 0; }
    .amount { font-size: 22px; font-weight: bold; color: #16a34a; }
    .footer { padding: 20px; text-align: center; color: #666; font-size: 12px; }
"""


def _rupiah(amount: Decimal) -> str:
    return "Rp " + f"{int(Decimal(amount)):,}".replace(",", ".")


class EmailService:
    """Transactional email over SMTP. Sending never raises; failures are logged."""

    def __init__(
        self,
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        from_email: str = "",
        from_name: str = "JelantahGO"
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email or smtp_user
        self.from_name = from_name

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email.

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.is_configured:
            logger.warning("Email not configured. SMTP credentials missing.")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, 'plain'))
            msg.attach(MIMEText(html_content, 'html'))

            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_email, to_email, msg.as_string())

            logger.info(f"Email sent successfully to {to_email}")
            return True

        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP Authentication failed. Check email credentials.")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {e}")
            return False
        except TimeoutError:
            logger.error("SMTP connection timed out")
            return False
        except OSError as e:
            logger.error(f"Network error sending email: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to send email: {e}")
            return False

    def send_payment_received_email(
        self,
        to_email: str,
        customer_name: str,
        invoice_number: str,
        amount: Decimal,
        paid_date: Optional[datetime] = None
    ) -> bool:
        """Tell a customer their bill payment was confirmed."""
        subject = f"Payment Received - {invoice_number}"
        paid_on = (paid_date or datetime.now()).strftime("%d %B %Y")

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <head><style>{EMAIL_STYLE}</style></head>
        <body>
            <div class="container">
                <div class="header"><h1>{self.from_name}</h1></div>
                <div class="content">
                    <h2>Payment Received</h2>
                    <p>Hello {customer_name},</p>
                    <p>We have confirmed the payment for your used cooking oil pickup.</p>
                    <div class="summary">
                        <table>
                            <tr><td>Invoice</td><td><strong>{invoice_number}</strong></td></tr>
                            <tr><td>Paid on</td><td>{paid_on}</td></tr>
                        </table>
                        <p class="amount">{_rupiah(amount)}</p>
                    </div>
                    <p>Thank you for recycling your used cooking oil with us.</p>
                </div>
                <div class="footer">
                    <p>This is an automated email. Please do not reply.</p>
                </div>
            </div>
        </body>
        </html>
        """

        text_content = f"""
        Payment Received

        Hello {customer_name},

        Invoice: {invoice_number}
        Amount: {_rupiah(amount)}
        Paid on: {paid_on}

        Thank you for recycling your used cooking oil with us.
        """

        return self.send_email(to_email, subject, html_content, text_content)

    def send_commission_paid_email(
        self,
        to_email: str,
        recipient_name: str,
        commission_type: str,
        amount: Decimal,
        paid_date: Optional[datetime] = None
    ) -> bool:
        """Tell a courier or affiliate that a commission was paid out."""
        label = "Referral" if commission_type == "AFFILIATE" else "Courier"
        subject = f"{label} Commission Paid - {_rupiah(amount)}"
        paid_on = (paid_date or datetime.now()).strftime("%d %B %Y")

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <head><style>{EMAIL_STYLE}</style></head>
        <body>
            <div class="container">
                <div class="header"><h1>{self.from_name}</h1></div>
                <div class="content">
                    <h2>{label} Commission Paid</h2>
                    <p>Hello {recipient_name},</p>
                    <p>Your commission has been transferred.</p>
                    <div class="summary">
                        <table>
                            <tr><td>Type</td><td>{label}</td></tr>
                            <tr><td>Paid on</td><td>{paid_on}</td></tr>
                        </table>
                        <p class="amount">{_rupiah(amount)}</p>
                    </div>
                </div>
                <div class="footer">
                    <p>This is an automated email. Please do not reply.</p>
                </div>
            </div>
        </body>
        </html>
        """

        text_content = f"""
        {label} Commission Paid

        Hello {recipient_name},

        Amount: {_rupiah(amount)}
        Paid on: {paid_on}
        """

        return self.send_email(to_email, subject, html_content, text_content)


def get_email_service() -> EmailService:
    """Get configured email service instance."""
    from jelantah.config import settings

    return EmailService(
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        smtp_user=settings.SMTP_USER,
        smtp_password=settings.SMTP_PASSWORD,
        from_email=settings.SMTP_FROM_EMAIL,
        from_name=settings.SMTP_FROM_NAME
    )


# ==================== NOTIFICATION HELPERS ====================

async def send_payment_received_notification(
    email_service: EmailService,
    to_email: Optional[str],
    customer_name: str,
    invoice_number: str,
    amount: Decimal,
    paid_date: Optional[datetime] = None
) -> bool:
    """Send the payment-received email off the event loop. Called after commit."""
    if not to_email or not email_service.is_configured:
        return False
    return await asyncio.to_thread(
        email_service.send_payment_received_email,
        to_email, customer_name, invoice_number, amount, paid_date
    )


async def send_commission_paid_notification(
    email_service: EmailService,
    to_email: Optional[str],
    recipient_name: str,
    commission_type: str,
    amount: Decimal,
    paid_date: Optional[datetime] = None
) -> bool:
    """Send the commission-paid email off the event loop. Called after commit."""
    if not to_email or not email_service.is_configured:
        return False
    return await asyncio.to_thread(
        email_service.send_commission_paid_email,
        to_email, recipient_name, commission_type, amount, paid_date
    )
