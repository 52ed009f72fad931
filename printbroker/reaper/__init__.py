"""
Reaper module.
Contains the retention reaper for aged jobs and payloads.
"""

from printbroker.reaper.main import Reaper, run

__all__ = ["Reaper", "run"]
