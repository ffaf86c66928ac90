import sys

from meow8.main import main

sys.exit(main())
