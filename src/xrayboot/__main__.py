"""Allow ``python -m xrayboot``."""

from xrayboot.cli.main import main

main()
