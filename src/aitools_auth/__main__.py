import sys

from aitools_auth.cli import main

sys.exit(main())
