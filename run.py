#!/usr/bin/env python3
"""Backup agent runner"""
import sys
from tarvault.scheduler import run_agent

if __name__ == '__main__':
    summary = run_agent()

    # Non-zero exit when a single pass had failures
    if summary is not None and summary['errors']:
        sys.exit(1)
