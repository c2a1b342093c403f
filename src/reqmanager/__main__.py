"""Allow ``python -m reqmanager -c config.yaml``."""

from reqmanager.cli.main import main

main()
