"""
Booking mail. Every send is independent: failures are logged and never
reach the caller, so a booking is never rolled back because of mail.
"""
import asyncio
import datetime
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from .config import settings
from .models import Booking, ServiceType, Vendor

logger = logging.getLogger("notifications")

SERVICE_LABELS = {
    ServiceType.STAY: "stay",
    ServiceType.TOUR: "tour",
    ServiceType.ADVENTURE: "adventure",
    ServiceType.VEHICLE: "vehicle rental",
}


@dataclass
class Mail:
    to: str
    subject: str
    body: str


def _deliver(mail: Mail) -> None:
    message = EmailMessage()
    message["From"] = f'"{settings.MAIL_FROM_NAME}" <{settings.SMTP_USER or "no-reply@localhost"}>'
    message["To"] = mail.to
    message["Subject"] = mail.subject
    message.set_content(mail.body)

    if settings.SMTP_USE_SSL:
        smtp = smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30)
    else:
        smtp = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30)
    with smtp:
        if not settings.SMTP_USE_SSL:
            smtp.starttls()
        if settings.SMTP_USER:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD or "")
        smtp.send_message(message)


async def send_mail(mail: Mail) -> None:
    """Sends one mail without blocking the event loop. Raises on failure."""
    await asyncio.to_thread(_deliver, mail)
    logger.info(f"Email sent to {mail.to}: {mail.subject}")


async def dispatch(mails: list[Mail]) -> int:
    """
    Sends all mails concurrently and returns how many were delivered.
    """
    if not mails:
        return 0
    results = await asyncio.gather(*(send_mail(m) for m in mails), return_exceptions=True)
    delivered = 0
    for mail, result in zip(mails, results):
        if isinstance(result, BaseException):
            logger.error(f"Failed to send '{mail.subject}' to {mail.to}: {result}")
        else:
            delivered += 1
    return delivered


# --- Message builders ---

def date_range_text(start: datetime.date, end: datetime.date) -> str:
    return f"{start:%d %b %Y} → {end:%d %b %Y}"


def format_total(amount: float, currency: str) -> str:
    return f"{currency} {amount:.2f}"


def customer_confirmation(booking: Booking) -> Mail:
    greeting = (booking.customer_name or "").strip() or booking.customer_email or "Traveler"
    service = SERVICE_LABELS[ServiceType(booking.service_type)]
    body = (
        f"Hi {greeting},\n\n"
        f"We've received your booking for a {service}. Here are the key details:\n\n"
        f"Reference: {booking.id}\n"
        f"Dates: {date_range_text(booking.start_date, booking.end_date)}\n"
        f"Total: {format_total(booking.total_amount, booking.currency)}\n\n"
        "Thanks for planning your journey with us."
    )
    return Mail(booking.customer_email, "Your SafarHub booking is confirmed", body)


def vendor_notification(booking: Booking, vendor: Vendor) -> Mail:
    service = SERVICE_LABELS[ServiceType(booking.service_type)]
    body = (
        f"Hi {vendor.full_name or 'Vendor'},\n\n"
        f"You have a new {service} booking.\n\n"
        f"Reference: {booking.id}\n"
        f"Guest: {booking.customer_name} <{booking.customer_email}>"
        f"{' / ' + booking.customer_phone if booking.customer_phone else ''}\n"
        f"Dates: {date_range_text(booking.start_date, booking.end_date)}\n"
        f"Total: {format_total(booking.total_amount, booking.currency)}\n"
    )
    return Mail(vendor.email, "New SafarHub booking received", body)


def admin_notification(booking: Booking, vendor: Vendor, admin_email: str) -> Mail:
    service = SERVICE_LABELS[ServiceType(booking.service_type)]
    body = (
        f"A {service} booking was created.\n\n"
        f"Reference: {booking.id}\n"
        f"Customer: {booking.customer_name} <{booking.customer_email}>\n"
        f"Vendor: {vendor.full_name or 'Vendor'} <{vendor.email}>\n"
        f"Total: {format_total(booking.total_amount, booking.currency)}\n"
    )
    return Mail(admin_email, "SafarHub booking created", body)


def status_update(booking: Booking) -> Mail:
    service = SERVICE_LABELS[ServiceType(booking.service_type)]
    status = getattr(booking.status, "value", booking.status)
    body = (
        f"Hi {booking.customer_name or booking.customer_email},\n\n"
        f"The status of your {service} booking {booking.id} is now: {status}.\n"
    )
    return Mail(booking.customer_email, "Your SafarHub booking status was updated", body)


def vendor_cancellation(booking: Booking, vendor: Vendor, reason: str) -> Mail:
    service = SERVICE_LABELS[ServiceType(booking.service_type)]
    body = (
        f"Hi {vendor.full_name or 'Vendor'},\n\n"
        f"The {service} booking {booking.id} was cancelled by "
        f"{booking.customer_name} <{booking.customer_email}>.\n"
        f"Reason: {reason or 'not given'}\n"
    )
    return Mail(vendor.email, "A SafarHub booking was cancelled", body)


# --- Entry points used by the routers ---

async def notify_booking_created(booking: Booking, vendor: Optional[Vendor]) -> int:
    """
    Customer confirmation always; vendor mail when the vendor has an email;
    admin mail when ADMIN_EMAIL is set and the vendor has an email.
    """
    try:
        mails = [customer_confirmation(booking)]
        if vendor is not None and vendor.email:
            mails.append(vendor_notification(booking, vendor))
            if settings.ADMIN_EMAIL:
                mails.append(admin_notification(booking, vendor, settings.ADMIN_EMAIL))
        return await dispatch(mails)
    except Exception as e:
        logger.error(f"Booking email error for booking {booking.id}: {e}")
        return 0


async def notify_status_changed(booking: Booking) -> int:
    try:
        if not booking.customer_email:
            return 0
        return await dispatch([status_update(booking)])
    except Exception as e:
        logger.error(f"Booking status email error for booking {booking.id}: {e}")
        return 0


async def notify_vendor_of_cancellation(booking: Booking, vendor: Optional[Vendor], reason: str) -> int:
    try:
        if vendor is None or not vendor.email:
            return 0
        return await dispatch([vendor_cancellation(booking, vendor, reason)])
    except Exception as e:
        logger.error(f"Booking cancellation vendor email error for booking {booking.id}: {e}")
        return 0
