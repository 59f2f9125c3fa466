"""Allow `python -m levelgen`."""

import sys

from .cli import main

sys.exit(main())
