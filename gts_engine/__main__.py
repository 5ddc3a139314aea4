"""Run the gts CLI: python -m gts_engine ..."""

import sys

from .tools.gts_cli import main

sys.exit(main())
