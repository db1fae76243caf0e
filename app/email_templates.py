"""HTML bodies for patient-facing appointment e-mails.

Names come straight from the public booking forms, so every interpolated
value is HTML-escaped.
"""
from html import escape


def _wrap(title: str, body: str, clinic_name: str) -> str:
    return (
        f"<h2>{escape(title)}</h2>"
        f"{body}"
        f"<p>Thank you,<br>{escape(clinic_name)}</p>"
    )


def appointment_scheduled_template(patient_name: str, doctor_name: str, date: str, time: str, clinic_name: str) -> str:
    return _wrap(
        "Appointment Scheduled",
        f"<p>Dear {escape(patient_name)},</p>"
        f"<p>Your appointment has been scheduled with Dr. {escape(doctor_name)} on {escape(date)} at {escape(time)}.</p>"
        "<p>Please arrive 15 minutes early for your appointment.</p>",
        clinic_name,
    )


def appointment_cancelled_template(patient_name: str, date: str, time: str, clinic_name: str) -> str:
    return _wrap(
        "Appointment Cancelled",
        f"<p>Dear {escape(patient_name)},</p>"
        f"<p>Your appointment scheduled for {escape(date)} at {escape(time)} has been cancelled.</p>"
        "<p>Please contact us to reschedule if needed.</p>",
        clinic_name,
    )


def appointment_reminder_template(patient_name: str, doctor_name: str, date: str, time: str, clinic_name: str) -> str:
    return _wrap(
        "Appointment Reminder",
        f"<p>Dear {escape(patient_name)},</p>"
        f"<p>This is a reminder that you have an appointment with Dr. {escape(doctor_name)} on {escape(date)} at {escape(time)}.</p>"
        "<p>Please arrive 15 minutes early for your appointment.</p>",
        clinic_name,
    )


def appointment_reminder_sms(patient_name: str, date: str, time: str, clinic_name: str) -> str:
    return f"{clinic_name}: Hi {patient_name}, reminder of your appointment on {date} at {time}."
