import sys

from chat_core.cli.repl import main

sys.exit(main())
