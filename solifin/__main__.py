import sys

from solifin.main import main

sys.exit(main())
