"""HTTP poll surface: project registration, scan start, status and findings."""

from .main import create_app

__all__ = ["create_app"]
