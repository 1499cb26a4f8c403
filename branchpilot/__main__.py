"""Allow ``python -m branchpilot``."""

from .cli import main

main()
