"""
Preferences Package

Stored scanning defaults consumed at session start.
"""

from .store import InMemoryPreferenceStore, PreferenceStore, ScanPreferences

__all__ = ["InMemoryPreferenceStore", "PreferenceStore", "ScanPreferences"]
