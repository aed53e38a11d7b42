"""Allow ``python -m usta``."""

from usta.cli import main

main()
