"""Marrón Forum backend: OTP authentication and engagement counters."""

__version__ = "0.1.0"
