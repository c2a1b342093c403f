"""Flask application package for the request manager.

Public API::

    from reqmanager.app import create_app
"""

from reqmanager.app.factory import create_app

__all__ = ["create_app"]
