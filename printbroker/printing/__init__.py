"""
Printing module.
Contains printer id resolution, spooler commands and the print pipeline.
"""

from printbroker.printing.pipeline import PrintPipeline
from printbroker.printing.resolver import (
    DriverTable,
    ResolvedPrinter,
    normalize_destination_name,
    parse_printer_id,
)
from printbroker.printing.spooler import CupsSpooler, is_missing_destination

__all__ = [
    "PrintPipeline",
    "CupsSpooler",
    "is_missing_destination",
    "DriverTable",
    "ResolvedPrinter",
    "normalize_destination_name",
    "parse_printer_id",
]
