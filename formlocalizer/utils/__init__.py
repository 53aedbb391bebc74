"""
Utils module for FormLocalizer
==============================
"""

from .config import ConfigManager, ExtractionSettings, OutputSettings

__all__ = [
    'ConfigManager', 'ExtractionSettings', 'OutputSettings'
]
