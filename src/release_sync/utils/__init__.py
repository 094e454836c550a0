# ABOUTME: Utilities package initialization for release-sync
# ABOUTME: Contains shared utilities for subprocess execution, git access and logging

"""
release-sync Utilities Package

Shared utilities:
    - commands.py: Subprocess runner with dry-run support and secret masking
    - git.py: Git wrapper that passes identity and safe.directory per call
    - logging.py: Structured logging with run IDs and audit trails
"""
