"""Allow ``python -m bookrag.cli`` execution."""

import sys

from bookrag.cli.kb import main

sys.exit(main())
