"""Entry point for ``python -m payroll_ledger``."""

import sys

from payroll_ledger.cli import main

if __name__ == "__main__":
    sys.exit(main())
