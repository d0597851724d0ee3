"""
Object Counter - Storage Module

Durable key/value persistence plus the session and settings repositories.
"""

from .store import PersistenceStore, SESSIONS_KEY, SETTINGS_KEY
from .repository import SessionRepository
from .settings import SettingsRepository

__all__ = [
    'PersistenceStore',
    'SESSIONS_KEY',
    'SETTINGS_KEY',
    'SessionRepository',
    'SettingsRepository',
]
