import sys

from debbie.cli import main

sys.exit(main())
