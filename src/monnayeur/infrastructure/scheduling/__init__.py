"""
Background scheduling infrastructure.
"""

from monnayeur.infrastructure.scheduling.periodic_task import PeriodicTask

__all__ = ["PeriodicTask"]
