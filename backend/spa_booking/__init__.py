"""Spa Booking reservation backend."""

__version__ = "0.1.0"
