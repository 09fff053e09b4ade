"""
Models package - Data structures for the application.
"""
from .record import (
    FiscalRecord,
    RecordExtras,
    DocumentType,
    Situacao,
    OperationType,
    ProtocolInfo,
    TaxAggregation,
    ACCESS_KEY_LENGTH,
)
from .config import (
    Settings,
    ParserConfig,
    ExportConfig,
    EnvironmentSettings,
)
from .results import (
    ProcessingStatus,
    ProcessingResult,
    ProcessingError,
    BatchProcessingResult,
    ProgressUpdate,
    ReportSummary,
)

__all__ = [
    # Record models
    "FiscalRecord",
    "RecordExtras",
    "DocumentType",
    "Situacao",
    "OperationType",
    "ProtocolInfo",
    "TaxAggregation",
    "ACCESS_KEY_LENGTH",
    # Configuration
    "Settings",
    "ParserConfig",
    "ExportConfig",
    "EnvironmentSettings",
    # Results
    "ProcessingStatus",
    "ProcessingResult",
    "ProcessingError",
    "BatchProcessingResult",
    "ProgressUpdate",
    "ReportSummary",
]
