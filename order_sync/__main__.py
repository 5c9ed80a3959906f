import sys

from order_sync.cli import main

sys.exit(main())
