# cashbook_backend/notifier.py
"""Delivery of one-time codes by email and/or SMS."""
import logging
import smtplib
from email.message import EmailMessage

import requests
from flask import current_app

logger = logging.getLogger("cashbook-backend")

SUBJECTS = {
    "register": "Your OTP for Registration",
    "reset": "Your OTP for Password Reset",
}


class DeliveryError(Exception):
    pass


def _mask(value):
    if not value:
        return ""
    return f"{value[:3]}****{value[-3:]}"


class OtpNotifier:
    """Sends codes through whichever channels are configured.

    With neither MAIL_SERVER nor SMS_API_URL set, codes go to the log so a
    development server is usable without credentials.
    """

    def __init__(self, config):
        self.config = config

    def send(self, email, mobile, code, purpose):
        ttl = self.config["OTP_TTL_MINUTES"]
        sent = False
        if self.config.get("MAIL_SERVER"):
            self.send_email(email, code, purpose, ttl)
            sent = True
        if self.config.get("SMS_API_URL") and mobile:
            self.send_sms(mobile, code, ttl)
            sent = True
        if not sent:
            logger.info(f"📨 OTP for {email} ({purpose}): {code} (no delivery channel configured)")

    def send_email(self, email, code, purpose, ttl):
        msg = EmailMessage()
        msg["Subject"] = SUBJECTS.get(purpose, "Your OTP")
        msg["From"] = self.config["MAIL_SENDER"]
        msg["To"] = email
        msg.set_content(f"Your OTP is {code}. It expires in {ttl} minutes.")
        msg.add_alternative(
            f"<p>Your OTP is <strong>{code}</strong>. It expires in <b>{ttl}&nbsp;minutes</b>.</p>",
            subtype="html",
        )
        try:
            with smtplib.SMTP(self.config["MAIL_SERVER"], self.config["MAIL_PORT"], timeout=30) as smtp:
                if self.config.get("MAIL_USE_TLS"):
                    smtp.starttls()
                if self.config.get("MAIL_USERNAME"):
                    smtp.login(self.config["MAIL_USERNAME"], self.config["MAIL_PASSWORD"])
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"OTP email to {email} failed: {e}")
            raise DeliveryError("Error sending OTP email") from e
        logger.info(f"OTP email sent to {email}")

    def send_sms(self, mobile, code, ttl):
        digits = "".join(ch for ch in str(mobile) if ch.isdigit())[-10:]
        if len(digits) != 10:
            raise DeliveryError("Invalid mobile number format")

        params = {
            "userid": self.config.get("SMS_API_USERID"),
            "password": self.config.get("SMS_API_PASSWORD"),
            "senderid": self.config.get("SMS_API_SENDERID"),
            "sendMethod": "quick",
            "msgType": "text",
            "format": "text",
            "mobile": digits,
            "msg": f"Dear user, {code} is your OTP. This OTP is valid for {ttl} minutes. Do not share it with anyone.",
        }
        logger.info(f"Sending OTP SMS to {_mask(digits)}")
        try:
            resp = requests.get(self.config["SMS_API_URL"], params=params, timeout=30)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"SMS API request failed: {e}")
            raise DeliveryError("Error sending OTP SMS") from e

        body = resp.text
        failed = "status=failed" in body or "status=error" in body
        ok = "status=success" in body or "statusCode=200" in body
        if failed and not ok:
            logger.error(f"SMS API returned error: {body}")
            raise DeliveryError("SMS API error")


def get_notifier():
    notifier = current_app.extensions.get("otp_notifier")
    if notifier is None:
        notifier = current_app.extensions["otp_notifier"] = OtpNotifier(current_app.config)
    return notifier
