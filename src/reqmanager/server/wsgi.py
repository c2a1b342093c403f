"""WSGI entry point for external servers (gunicorn, uWSGI, etc.).

The config file path is read from the ``REQMANAGER_CONFIG``
environment variable.  The reconcile workers start when this module is
imported, so do not combine it with ``--preload``.

Example::

    export REQMANAGER_CONFIG=/etc/reqmanager/config.yaml
    gunicorn "reqmanager.server.wsgi:app"
"""

from __future__ import annotations

import os
import sys

_config_path = os.environ.get("REQMANAGER_CONFIG")
if _config_path is None:
    sys.stderr.write("REQMANAGER_CONFIG is not set\n")
    sys.exit(1)

# Bootstrap the singleton before anything else imports it.
from reqmanager.config import ReqManagerConfig  # noqa: E402

_config = ReqManagerConfig(config_file=_config_path, schema_file="bundled")

from reqmanager.logging import configure_logging  # noqa: E402

configure_logging(_config.settings.logging)

from reqmanager.db import init_database  # noqa: E402

_db = init_database(_config.settings.database)

from reqmanager.app import create_app  # noqa: E402

app = create_app(config=_config, database=_db)
