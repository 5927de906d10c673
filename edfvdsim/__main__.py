import sys

from edfvdsim.evaluation import main

sys.exit(main())
