#!/usr/bin/env python3
"""Backup service runner"""
import sys

from r2backup.__main__ import main

if __name__ == '__main__':
    sys.exit(main())
