"""Allow ``python -m ai_testbed.cli`` execution."""

import sys

from ai_testbed.cli.testbed import main

sys.exit(main())
