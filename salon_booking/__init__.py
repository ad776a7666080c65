"""Appointment scheduling and conflict-resolution engine for a single-calendar salon."""

__version__ = "0.1.0"
