"""Run minacme with ``python -m minacme``."""
import sys

from minacme import cli

if __name__ == '__main__':
    sys.exit(cli.main())
