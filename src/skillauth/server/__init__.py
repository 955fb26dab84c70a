"""Process runners for SKILLAUTH (gunicorn, WSGI entry point)."""
