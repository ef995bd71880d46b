"""
Service d'emails SendGrid pour Sakkanal
- Alerte immédiate à la capture d'un lead HOT
- Alerte critique quand une synchro CRM est abandonnée
"""

import os
import logging
from datetime import datetime, timezone
from html import escape
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

from config import format_thousands

logger = logging.getLogger("email_service")

# Configuration
SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY', '')
ALERT_EMAIL = os.environ.get('ALERT_EMAIL', 'contact@inesic.com')
SENDER_EMAIL = os.environ.get('SENDER_EMAIL', 'noreply@inesic.com')
DASHBOARD_URL = os.environ.get('DASHBOARD_URL', 'https://www.inesic.com/admin')


class EmailService:
    """Service centralisé pour l'envoi d'emails"""

    def __init__(self):
        self.api_key = SENDGRID_API_KEY
        self.sender = SENDER_EMAIL
        self.alert_recipient = ALERT_EMAIL

    def _send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        """Envoie un email via SendGrid"""
        if not self.api_key:
            logger.warning(f"SENDGRID_API_KEY non configurée, email non envoyé: {subject}")
            return False

        try:
            message = Mail(
                from_email=Email(self.sender, "Sakkanal"),
                to_emails=To(to_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )

            sg = SendGridAPIClient(self.api_key)
            response = sg.send(message)

            if response.status_code in [200, 202]:
                logger.info(f"Email envoyé à {to_email}: {subject}")
                return True
            else:
                logger.error(f"Erreur envoi email: {response.status_code}")
                return False

        except Exception as e:
            logger.error(f"Exception envoi email: {str(e)}")
            return False

    def _layout(self, color: str, title: str, body: str, footer: str) -> str:
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: Arial, sans-serif; margin: 0; padding: 20px; background-color: #f5f5f5; }}
                .container {{ max-width: 600px; margin: 0 auto; background: white; border-radius: 8px; overflow: hidden; }}
                .header {{ background: {color}; color: white; padding: 20px; text-align: center; }}
                .header h1 {{ margin: 0; font-size: 22px; }}
                .content {{ padding: 30px; }}
                .row {{ padding: 6px 0; border-bottom: 1px solid #eee; }}
                .footer {{ background: #F9FAFB; padding: 15px; text-align: center; font-size: 12px; color: #6B7280; }}
                .timestamp {{ color: #9CA3AF; font-size: 14px; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header"><h1>{title}</h1></div>
                <div class="content">
                    <p class="timestamp">{datetime.now(timezone.utc).strftime('%d/%m/%Y %H:%M:%S')} UTC</p>
                    {body}
                    <p style="margin-top: 30px;">
                        <a href="{DASHBOARD_URL}" style="display: inline-block; background: #009688; color: white; padding: 10px 20px; text-decoration: none; border-radius: 4px;">
                            Accéder au back-office
                        </a>
                    </p>
                </div>
                <div class="footer">{footer}</div>
            </div>
        </body>
        </html>
        """

    # ==================== LEAD HOT ====================

    def send_hot_lead_alert(self, lead: dict) -> bool:
        """Alerte commerciale pour un lead de priorité HOT."""
        name = lead.get("company_name") or lead.get("contact_name") or "Prospect"
        subject = f"🔥 Lead HOT - {name} ({lead.get('score')}/100)"

        rows = [
            ("Contact", lead.get("contact_name")),
            ("Entreprise", lead.get("company_name")),
            ("Téléphone", lead.get("phone")),
            ("Email", lead.get("email")),
            ("Type de site", lead.get("site_type")),
            ("Facture mensuelle", f"{format_thousands(lead.get('electricity_bill') or 0)} FCFA"),
            ("Budget", f"{format_thousands(lead.get('budget'))} FCFA" if lead.get("budget") else "Non précisé"),
        ]
        body = "".join(
            f'<div class="row"><strong>{label}:</strong> {escape(str(value or ""))}</div>'
            for label, value in rows
        )
        body += "<p><strong>Action requise:</strong> contacter ce prospect dans l'heure.</p>"

        html_content = self._layout("#e74c3c", "🔥 Nouveau lead à forte valeur", body,
                                    "Sakkanal - Alertes commerciales automatiques")
        return self._send_email(self.alert_recipient, subject, html_content)

    # ==================== ALERTES CRITIQUES ====================

    def send_critical_alert(self, alert_type: str, message: str, details: dict = None) -> bool:
        """
        Alerte technique immédiate.
        Types: CRM_SYNC_EXHAUSTED, SYSTEM_ERROR
        """
        subject = f"🚨 ALERTE CRITIQUE - {alert_type}"

        details_html = ""
        if details:
            details_html = "<ul>" + "".join(
                f"<li><strong>{escape(str(k))}:</strong> {escape(str(v))}</li>" for k, v in details.items()
            ) + "</ul>"

        body = f"""
            <p><strong>Type:</strong> {escape(alert_type)}<br>
            <strong>Message:</strong> {escape(message)}</p>
            {f'<div><strong>Détails:</strong>{details_html}</div>' if details_html else ''}
        """
        html_content = self._layout("#DC2626", "🚨 ALERTE CRITIQUE", body,
                                    "Sakkanal - Système d'alertes automatiques")
        return self._send_email(self.alert_recipient, subject, html_content)


# Instance globale
email_service = EmailService()
