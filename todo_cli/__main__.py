import sys

from todo_cli.cli.main import main

sys.exit(main())
