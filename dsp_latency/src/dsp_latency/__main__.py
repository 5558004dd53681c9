import sys

from dsp_latency.main import main

sys.exit(main())
