"""Allow running the package as a module: python -m stakevue_state"""

import sys

from stakevue_state.cli import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
