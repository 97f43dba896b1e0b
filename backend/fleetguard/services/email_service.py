"""
Отправка email через SMTP и текстовые шаблоны писем
"""
import smtplib
from datetime import date
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from fleetguard.config import Settings, get_settings
from fleetguard.exceptions import DeliveryError
from fleetguard.logger import logger


CHALLAN_EMAIL_TEMPLATE = """Hello {name},

A new traffic challan has been detected for vehicle {registration_number}.

Challan number: {challan_number}
Date: {challan_date}
Amount: Rs. {amount}
Offence: {offence}

{payment_line}
-- {app_name}
"""

COMPLIANCE_EMAIL_TEMPLATE = """Hello {name},

The {document} of vehicle {registration_number} expires on {expiry_date} ({days_text}).

Please renew it to stay compliant.

-- {app_name}
"""


def _days_text(days_remaining: int) -> str:
    if days_remaining <= 0:
        return "today"
    if days_remaining == 1:
        return "in 1 day"
    return f"in {days_remaining} days"


class EmailService:
    """
    Сервис отправки писем

    Если email отключен в настройках, письма не отправляются (send_email
    возвращает False). Ошибка SMTP приводит к DeliveryError.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def enabled(self) -> bool:
        return bool(self.settings.email_enabled and self.settings.email_smtp_host and self.settings.email_from_address)

    def send_email(self, to: str, subject: str, text: str) -> bool:
        """
        Отправка письма

        Args:
            to: Адрес получателя
            subject: Тема письма
            text: Текст письма

        Returns:
            True, если письмо отправлено; False, если email отключен

        Raises:
            DeliveryError: Ошибка SMTP
        """
        if not self.enabled:
            return False

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{self.settings.email_from_name} <{self.settings.email_from_address}>"
        msg['To'] = to
        msg.attach(MIMEText(text, 'plain', 'utf-8'))

        html_message = f"""
        <html>
            <body>
                <h2>{subject}</h2>
                <p>{text.replace(chr(10), '<br>')}</p>
            </body>
        </html>
        """
        msg.attach(MIMEText(html_message, 'html', 'utf-8'))

        try:
            with smtplib.SMTP(self.settings.email_smtp_host, self.settings.email_smtp_port) as server:
                if self.settings.email_use_tls:
                    server.starttls()
                if self.settings.email_smtp_user and self.settings.email_smtp_password:
                    server.login(self.settings.email_smtp_user, self.settings.email_smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError("email", str(e)) from e

        logger.info(f"Email отправлен на {to}", extra={
            "subject": subject,
            "event_type": "notification",
            "event_category": "email"
        })
        return True

    def send_challan_email(
        self,
        to: str,
        name: str,
        registration_number: str,
        challan_number: str,
        amount,
        challan_date=None,
        offence: Optional[str] = None,
        payment_url: Optional[str] = None
    ) -> bool:
        """
        Письмо о новом штрафе
        """
        text = CHALLAN_EMAIL_TEMPLATE.format(
            name=name,
            registration_number=registration_number,
            challan_number=challan_number,
            challan_date=challan_date or "-",
            amount=amount if amount is not None else "-",
            offence=(offence or "-")[:200],
            payment_line=f"Pay online: {payment_url}\n" if payment_url else "",
            app_name=self.settings.email_from_name
        )
        return self.send_email(to, f"New challan for vehicle {registration_number}", text)

    def send_compliance_expiry_email(
        self,
        to: str,
        name: str,
        registration_number: str,
        document: str,
        expiry_date: date,
        days_remaining: int
    ) -> bool:
        """
        Письмо об окончании срока действия документа
        """
        text = COMPLIANCE_EMAIL_TEMPLATE.format(
            name=name,
            document=document,
            registration_number=registration_number,
            expiry_date=expiry_date.isoformat(),
            days_text=_days_text(days_remaining),
            app_name=self.settings.email_from_name
        )
        return self.send_email(to, f"{document} expiring for vehicle {registration_number}", text)
