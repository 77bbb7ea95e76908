#!/usr/bin/env python3
"""
filmStock CLI entrypoint (fs.py)

Track unopened film stock, what is loaded in which camera, and finished
film waiting for development.

This file delegates to the filmstock CLI layer.
"""
from filmstock.cli.fs_cli import main

if __name__ == "__main__":
    main()
