"""
Core package - XML parsing engine and batch processing.
"""
from .dispatcher import parse_fiscal_xml, clean_xml_content, is_event_document
from .parsers import parse_nfe, parse_cte, build_cancellation_record
from .numeric import numero_da_chave
from .orchestrator import ProcessingOrchestrator, split_duplicates

__all__ = [
    "parse_fiscal_xml",
    "clean_xml_content",
    "is_event_document",
    "parse_nfe",
    "parse_cte",
    "build_cancellation_record",
    "numero_da_chave",
    "ProcessingOrchestrator",
    "split_duplicates",
]
