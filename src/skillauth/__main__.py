"""Allow ``python -m skillauth``."""

from skillauth.cli.main import main

main()
