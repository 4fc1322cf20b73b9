"""Auditor de conformidade da folha (eSocial S-1010 / S-1200)."""

__version__ = "1.0.0"
