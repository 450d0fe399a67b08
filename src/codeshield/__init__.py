"""CodeShield: pattern-based security scanning with optional AI verification."""

__version__ = "0.3.0"
