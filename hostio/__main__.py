import sys

from hostio.hostio_cli import main

if __name__ == "__main__":
    sys.exit(main())
