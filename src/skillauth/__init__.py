"""SKILLAUTH — authentication for voice-assistant skill webhook requests."""

__version__ = "1.0.0"
