"""Shared FastAPI dependencies for the engine's collaborators.

Tests swap these through ``app.dependency_overrides``.
"""

from hrms.common.clock import Clock, system_clock
from hrms.files.store import FileStore, default_file_store
from hrms.notifications.service import Notifier, default_notifier


def get_clock() -> Clock:
    return system_clock


def get_notifier() -> Notifier:
    return default_notifier


def get_file_store() -> FileStore:
    return default_file_store
