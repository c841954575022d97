import sys

from hostguard.cli import main

sys.exit(main())
