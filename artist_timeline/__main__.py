import sys

from artist_timeline.cli import main


sys.exit(main())
