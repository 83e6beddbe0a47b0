import sys

from pycapmetro.cli import main

sys.exit(main())
