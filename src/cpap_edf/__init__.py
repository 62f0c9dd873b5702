"""
cpap-edf: ResMed CPAP EDF data reader

Decodes the European Data Format files written by ResMed devices (STR.edf
daily summaries and DATALOG session files) into numpy-backed models.
"""

from cpap_edf.loader import CPAPDataLoader
from cpap_edf.parsers.formats.edf import (
    EDFError,
    EDFFormatError,
    EDFReader,
    decode_edf,
    read_edf,
)

__all__ = [
    "CPAPDataLoader",
    "EDFError",
    "EDFFormatError",
    "EDFReader",
    "decode_edf",
    "read_edf",
]
