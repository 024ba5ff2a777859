"""Database models."""

from app.models.appointment_history import appointment_history
from app.models.appointments import appointments
from app.models.clinics import clinics
from app.models.doctor_schedules import doctor_schedules
from app.models.doctors import doctors
from app.models.metadata import metadata
from app.models.patients import patients
from app.models.specialties import specialties
from app.models.users import users

__all__ = [
    "appointment_history",
    "appointments",
    "clinics",
    "doctor_schedules",
    "doctors",
    "metadata",
    "patients",
    "specialties",
    "users",
]
