# booking_core/services/notification/templates.py
"""Subjects and bodies for every notification type"""
from typing import Tuple

from booking_core.config.settings import settings
from booking_core.models.appointment import Appointment
from booking_core.models.business import Business
from booking_core.models.service import Service

SUBJECTS = {
    "booking_confirmation": "Booking Confirmation - {business}",
    "booking_reminder_24h": "Reminder: Your Appointment with {business} Tomorrow",
    "booking_reminder_2h": "Reminder: Your Appointment with {business} in 2 Hours",
    "booking_reminder_30m": "Reminder: Your Appointment with {business} in 30 Minutes",
    "booking_cancellation": "Booking Cancelled - {business}",
    "booking_rescheduled": "Booking Rescheduled - {business}",
    "business_new_booking": "New Booking - {customer}",
    "business_booking_reminder": "Reminder: Upcoming Appointment - {customer}",
    "business_booking_cancelled": "Booking Cancelled - {customer}",
    "business_booking_rescheduled": "Booking Rescheduled - {customer}",
}

CUSTOMER_HEADLINES = {
    "booking_confirmation": "Your booking is confirmed.",
    "booking_reminder_24h": "This is a reminder that your appointment is tomorrow.",
    "booking_reminder_2h": "This is a reminder that your appointment starts in 2 hours.",
    "booking_reminder_30m": "This is a reminder that your appointment starts in 30 minutes.",
    "booking_cancellation": "Your booking has been cancelled.",
    "booking_rescheduled": "Your booking has been moved to a new time.",
}

BUSINESS_HEADLINES = {
    "business_new_booking": "You have a new booking.",
    "business_booking_reminder": "You have an appointment tomorrow.",
    "business_booking_cancelled": "A booking has been cancelled.",
    "business_booking_rescheduled": "A booking has been rescheduled.",
}


def render(
        notification_type: str,
        appointment: Appointment,
        service: Service,
        business: Business
) -> Tuple[str, str, str]:
    """Return (subject, plain text body, html body) for a notification type"""
    if notification_type not in SUBJECTS:
        raise ValueError(f"Unknown notification type: {notification_type}")

    subject = SUBJECTS[notification_type].format(
        business=business.name,
        customer=appointment.customer_name
    )

    if notification_type in CUSTOMER_HEADLINES:
        greeting = f"Hi {appointment.customer_name},"
        headline = CUSTOMER_HEADLINES[notification_type]
        link = f"{settings.FRONTEND_URL}/booking/{appointment.id}"
    else:
        greeting = f"Hi {business.name},"
        headline = BUSINESS_HEADLINES[notification_type]
        link = f"{settings.FRONTEND_URL}/dashboard/bookings/{appointment.id}"

    details = [
        f"Service: {service.name} ({service.formatted_duration})",
        f"Date: {appointment.appointment_date}",
        f"Time: {appointment.start_time} - {appointment.end_time}",
        f"Confirmation number: {appointment.confirmation_number}",
    ]
    if notification_type in BUSINESS_HEADLINES:
        details.insert(0, f"Customer: {appointment.customer_name} ({appointment.customer_phone})")

    body = "\n".join([greeting, "", headline, "", *details, "", link])

    detail_rows = "".join(f"<li>{line}</li>" for line in details)
    html = f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #333; margin-top: 0;">{greeting}</h2>
            <p style="font-size: 16px; color: #555;">{headline}</p>
            <ul style="font-size: 15px; color: #555;">{detail_rows}</ul>
            <p style="font-size: 14px;"><a href="{link}" style="color: #667eea;">View booking</a></p>
        </body>
        </html>
        """

    return subject, body, html
