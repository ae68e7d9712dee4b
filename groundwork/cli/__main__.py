"""Allow ``python -m groundwork.cli`` execution."""

import sys

from groundwork.cli.ingest import main

sys.exit(main())
