import sys

from xnav.main import main

sys.exit(main())
