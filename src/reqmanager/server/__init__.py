"""Server runners (gunicorn and WSGI entry point)."""
