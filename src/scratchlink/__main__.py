"""Run with ``python -m scratchlink``."""

import sys

from scratchlink.cli import main

sys.exit(main())
