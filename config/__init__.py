"""
Configuration management for the timeline store.
"""

from .store_config import StoreConfig

__all__ = ['StoreConfig']
