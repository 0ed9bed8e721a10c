import sys

from career_copilot.cli import main

sys.exit(main())
