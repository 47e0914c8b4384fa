"""
Test suite for the Doctor Appointment Booking System.

Contains unit tests for the booking core services and API-level tests.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
