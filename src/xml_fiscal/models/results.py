"""
Models for processing results, errors and report summaries.
"""
from enum import Enum
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field
from .record import FiscalRecord, DocumentType


class ProcessingStatus(str, Enum):
    """Status of file processing"""
    PENDING = "Pendente"
    PROCESSING = "Processando"
    COMPLETED = "Concluído"
    ERROR = "Erro"
    CANCELLED = "Cancelado"


class ProcessingError(BaseModel):
    """Error information for a failed file"""
    filename: str
    error_type: str
    error_message: str
    timestamp: datetime = Field(default_factory=datetime.now)


class ProcessingResult(BaseModel):
    """Result of processing a single file"""
    filename: str
    status: ProcessingStatus
    records: List[FiscalRecord] = Field(default_factory=list)
    error: Optional[ProcessingError] = None
    processing_time_seconds: float = 0.0


class BatchProcessingResult(BaseModel):
    """Result of processing a batch of files"""
    total_files: int
    successful: int = 0
    failed: int = 0
    cancelled: int = 0

    results: List[ProcessingResult] = Field(default_factory=list)
    errors: List[ProcessingError] = Field(default_factory=list)

    # Rows split against previously imported records
    records: List[FiscalRecord] = Field(default_factory=list)
    duplicates: List[FiscalRecord] = Field(default_factory=list)

    start_time: datetime = Field(default_factory=datetime.now)
    end_time: Optional[datetime] = None

    @property
    def total_time_seconds(self) -> float:
        """Calculate total processing time"""
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0

    @property
    def success_rate(self) -> float:
        """Calculate success rate as percentage"""
        if self.total_files == 0:
            return 0.0
        return (self.successful / self.total_files) * 100

    def add_result(self, result: ProcessingResult):
        """Add a processing result and update counters"""
        self.results.append(result)

        if result.status == ProcessingStatus.COMPLETED:
            self.successful += 1
        elif result.status == ProcessingStatus.ERROR:
            self.failed += 1
            if result.error:
                self.errors.append(result.error)
        elif result.status == ProcessingStatus.CANCELLED:
            self.cancelled += 1

    def parsed_records(self) -> List[FiscalRecord]:
        """All records produced by successful files, in processing order"""
        return [record for result in self.results for record in result.records]

    def finalize(self):
        """Mark batch processing as complete"""
        self.end_time = datetime.now()


class ProgressUpdate(BaseModel):
    """Progress update for the caller"""
    current_file: str
    current_index: int
    total_files: int
    status: ProcessingStatus
    message: str

    @property
    def progress_percentage(self) -> float:
        """Calculate progress as percentage"""
        if self.total_files == 0:
            return 0.0
        return (self.current_index / self.total_files) * 100


class ReportSummary(BaseModel):
    """Aggregate figures shown next to the exported rows"""
    notas_unicas: int = 0
    total_linhas: int = 0
    peso_total: float = 0.0
    valor_total_venda: float = 0.0
    total_nfe: int = 0
    total_cte: int = 0

    @classmethod
    def from_records(cls, records: List[FiscalRecord]) -> "ReportSummary":
        """Build the summary for a list of rows"""
        return cls(
            notas_unicas=len({r.chave_acesso for r in records}),
            total_linhas=len(records),
            peso_total=sum(r.peso for r in records),
            valor_total_venda=sum(r.peso * r.valor_unitario for r in records),
            total_nfe=sum(1 for r in records if r.tipo == DocumentType.NFE),
            total_cte=sum(1 for r in records if r.tipo == DocumentType.CTE),
        )
