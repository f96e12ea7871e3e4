"""Allow ``python -m video_export``."""

import sys

from video_export.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
