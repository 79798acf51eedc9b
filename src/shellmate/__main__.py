import sys

from shellmate.cli import main

sys.exit(main())
