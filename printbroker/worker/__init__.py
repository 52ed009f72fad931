"""
Worker module.
Contains the per-client print worker and its pending-job notifier.
"""

from printbroker.worker.main import PrintWorker, run
from printbroker.worker.notifier import PendingJobNotifier

__all__ = ["PrintWorker", "PendingJobNotifier", "run"]
