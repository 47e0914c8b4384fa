"""
Doctor Appointment Booking System

A FastAPI-based service for booking appointments between doctors and patients,
with role-scoped access tokens, doctor availability and conflict-free booking.
"""

__version__ = "1.0.0"
