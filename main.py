#!/usr/bin/env python3

import sys

from cambio_hub.cli.interface import run


def main():
    sys.exit(run())

if __name__ == "__main__":
    main()
