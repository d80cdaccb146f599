"""Scheduled background tasks.

Importing a task module registers its job on the shared scheduler.
"""

# ruff: noqa: F401

from . import database_cleanup
