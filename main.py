#!/usr/bin/env python3
"""porter - replay commits from one repository onto others."""

from porter.cli import main

if __name__ == "__main__":
    main()
