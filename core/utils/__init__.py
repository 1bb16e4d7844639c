"""
Core Utilities Package

Modules:
    - time: Timestamp conversion and UTC clock helpers
"""

from core.utils.time import current_utc_datetime, to_utc_datetime

__all__ = ["current_utc_datetime", "to_utc_datetime"]
