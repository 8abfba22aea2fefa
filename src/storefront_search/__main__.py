"""Allow ``python -m storefront_search``."""

import sys

from storefront_search.cli import main

sys.exit(main())
