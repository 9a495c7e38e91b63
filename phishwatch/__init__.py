"""PhishWatch: brand impersonation monitoring."""

__version__ = "0.1.0"
