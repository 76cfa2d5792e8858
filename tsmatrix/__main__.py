import sys

from tsmatrix.run import main

sys.exit(main())
