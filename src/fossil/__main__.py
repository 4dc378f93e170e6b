import sys

from fossil.cli import main

sys.exit(main())
