"""
Utilities package.
"""
from .file_handler import FileHandler, FileValidator, ZIPExtractor, decode_xml_bytes
from .excel_reporter import ExcelReporter, EXPORT_COLUMNS

__all__ = [
    "FileHandler",
    "FileValidator",
    "ZIPExtractor",
    "decode_xml_bytes",
    "ExcelReporter",
    "EXPORT_COLUMNS",
]
