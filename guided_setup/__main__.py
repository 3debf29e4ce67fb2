import sys

from guided_setup.cli.main import main

sys.exit(main())
