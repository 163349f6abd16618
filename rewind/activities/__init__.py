"""Activity exports"""
from rewind.activities import rewind, scan

__all__ = ["rewind", "scan"]
