"""
Print Job Broker

An asynchronous print-job broker: producers upload documents addressed to a
client identity, and per-client workers claim them exactly once and stream
them into the local CUPS spooler.
"""

__version__ = "1.0.0"
