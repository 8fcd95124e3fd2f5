"""Allow `python -m monstack`."""

import sys

from monstack.cli import main

sys.exit(main())
