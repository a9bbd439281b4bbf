import sys

from schemapilot.cli import main

sys.exit(main())
