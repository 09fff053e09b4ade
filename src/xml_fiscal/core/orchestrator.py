"""
Processing orchestrator - runs a batch of XML files through the parser.
"""
from typing import Callable, Iterable, List, Optional, Sequence, Tuple
from datetime import datetime
from pathlib import Path
import threading
from loguru import logger

from xml_fiscal.models import (
    BatchProcessingResult,
    FiscalRecord,
    ParserConfig,
    ProcessingError,
    ProcessingResult,
    ProcessingStatus,
    ProgressUpdate,
)
from xml_fiscal.utils import FileHandler
from xml_fiscal.core.dispatcher import is_event_document, parse_fiscal_xml


def split_duplicates(records: List[FiscalRecord],
                     existing: Iterable[FiscalRecord]) -> Tuple[List[FiscalRecord], List[FiscalRecord]]:
    """
    Separate rows already imported, keyed by (access key, product, quantity).

    Returns:
        Tuple of (unique, duplicates)
    """
    known = {record.duplicate_key for record in existing}
    unique = [r for r in records if r.duplicate_key not in known]
    duplicates = [r for r in records if r.duplicate_key in known]
    return unique, duplicates


class ProcessingOrchestrator:
    """
    Processes fiscal XML files one after another.

    Each file is parsed to completion before the next starts, so progress
    can be reported per file and cancellation takes effect between files.
    """

    def __init__(self,
                 config: Optional[ParserConfig] = None,
                 skip_event_files: bool = True,
                 accepted_extensions: Sequence[str] = ('.xml',),
                 progress_callback: Optional[Callable[[ProgressUpdate], None]] = None):
        """
        Initialize orchestrator.

        Args:
            config: Company identity and default tax rates for the parser
            skip_event_files: Reject event XMLs before parsing them
            accepted_extensions: File extensions read as XML
            progress_callback: Optional callback for progress updates
        """
        self.config = config or ParserConfig()
        self.skip_event_files = skip_event_files
        self.accepted_extensions = tuple(ext.lower() for ext in accepted_extensions)
        self.progress_callback = progress_callback

        self._cancel_flag = threading.Event()

    def process_files(self,
                      file_paths: List[Path],
                      existing_records: Iterable[FiscalRecord] = ()) -> BatchProcessingResult:
        """
        Read and process XML files or ZIP archives containing XMLs.

        Args:
            file_paths: Paths to process
            existing_records: Rows imported earlier, used for duplicate detection

        Returns:
            BatchProcessingResult with records, duplicates and per-file errors
        """
        logger.info(f"Preparing {len(file_paths)} files for processing")
        prepared = FileHandler.prepare_files_for_processing(file_paths, self.accepted_extensions)
        return self.process_contents(prepared, existing_records)

    def process_contents(self,
                         files: List[Tuple[str, str]],
                         existing_records: Iterable[FiscalRecord] = ()) -> BatchProcessingResult:
        """
        Process already decoded XML texts.

        Args:
            files: List of (filename, xml_text)
            existing_records: Rows imported earlier, used for duplicate detection
        """
        self._cancel_flag.clear()
        batch_result = BatchProcessingResult(total_files=len(files))

        if not files:
            logger.warning("No valid XML files to process")
            batch_result.finalize()
            return batch_result

        logger.info(f"Starting processing of {len(files)} XMLs")

        for idx, (filename, content) in enumerate(files):
            if self._cancel_flag.is_set():
                logger.info(f"Skipping {filename} due to cancellation")
                batch_result.add_result(ProcessingResult(
                    filename=filename,
                    status=ProcessingStatus.CANCELLED,
                ))
                continue

            batch_result.add_result(self._process_single_file(filename, content, idx, len(files)))

        data_insercao = datetime.now().strftime("%d/%m/%Y")
        parsed = batch_result.parsed_records()
        for record in parsed:
            record.extras.data_insercao = data_insercao

        batch_result.records, batch_result.duplicates = split_duplicates(parsed, existing_records)
        if batch_result.duplicates:
            logger.warning(f"{len(batch_result.duplicates)} row(s) already imported")

        batch_result.finalize()

        logger.info(f"Batch processing complete: {batch_result.successful} successful, "
                    f"{batch_result.failed} failed, {batch_result.cancelled} cancelled "
                    f"(total time: {batch_result.total_time_seconds:.2f}s)")

        return batch_result

    def _process_single_file(self,
                             filename: str,
                             content: str,
                             index: int,
                             total: int) -> ProcessingResult:
        """
        Process a single XML text.

        Args:
            filename: File name
            content: Decoded XML text
            index: Current file index
            total: Total number of files

        Returns:
            ProcessingResult
        """
        self._send_progress(
            filename=filename,
            index=index,
            total=total,
            status=ProcessingStatus.PROCESSING,
            message=f"Processando {filename}..."
        )

        start_time = datetime.now()
        error_reason = None

        if not content or not content.strip():
            error_reason = "Arquivo vazio ou não decodificável"
            records = None
        elif self.skip_event_files and is_event_document(content):
            error_reason = "Arquivo de evento (não é nota autorizada)"
            records = None
        else:
            records = parse_fiscal_xml(content, filename, self.config)
            if not records:
                error_reason = "XML corrompido ou formato não suportado"

        elapsed = (datetime.now() - start_time).total_seconds()

        if error_reason:
            logger.warning(f"{filename}: {error_reason}")
            result = ProcessingResult(
                filename=filename,
                status=ProcessingStatus.ERROR,
                error=ProcessingError(
                    filename=filename,
                    error_type="ExtractionError",
                    error_message=error_reason,
                ),
                processing_time_seconds=elapsed,
            )
        else:
            result = ProcessingResult(
                filename=filename,
                status=ProcessingStatus.COMPLETED,
                records=records,
                processing_time_seconds=elapsed,
            )

        self._send_progress(
            filename=filename,
            index=index + 1,
            total=total,
            status=result.status,
            message=f"Concluído: {filename}"
        )

        return result

    def cancel(self):
        """Cancel ongoing processing"""
        logger.warning("Cancellation requested")
        self._cancel_flag.set()

    def is_cancelled(self) -> bool:
        """Check if processing is cancelled"""
        return self._cancel_flag.is_set()

    def _send_progress(self,
                       filename: str,
                       index: int,
                       total: int,
                       status: ProcessingStatus,
                       message: str):
        """Send progress update via callback"""
        if self.progress_callback:
            update = ProgressUpdate(
                current_file=filename,
                current_index=index,
                total_files=total,
                status=status,
                message=message
            )

            try:
                self.progress_callback(update)
            except Exception as e:
                logger.error(f"Error in progress callback: {e}")
