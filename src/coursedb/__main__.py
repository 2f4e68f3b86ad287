import sys

from coursedb.demo import main

sys.exit(main())
