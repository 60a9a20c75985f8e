#!/usr/bin/env python3
from smsfetch.cli import main


if __name__ == "__main__":
    main()
