import sys

from polypath_dal.cli import main


sys.exit(main())
