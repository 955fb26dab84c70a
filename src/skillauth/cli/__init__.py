"""Command-line interface for SKILLAUTH."""
