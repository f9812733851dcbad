"""Allow ``python -m quire``."""

import sys

from quire.pipeline import main

sys.exit(main())
