"""Entry point: python -m mattermost_rss"""

import sys

from mattermost_rss.cli import main

sys.exit(main())
