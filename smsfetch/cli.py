#!/usr/bin/env python3
import sys

from smsfetch.orchestrator import run_once


def main():
    sys.exit(run_once(sys.argv[1:]))


if __name__ == "__main__":
    main()
