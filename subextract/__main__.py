import sys

from subextract.cli import main

sys.exit(main())
