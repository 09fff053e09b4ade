"""
File handling utilities for XML files and ZIP archives.
"""
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
import codecs
import re
import zipfile
import io
from charset_normalizer import from_bytes
from loguru import logger


_ENCODING_DECL_RE = re.compile(rb'^\s*<\?xml[^>]*?encoding\s*=\s*["\']([A-Za-z0-9._-]+)["\']')


def _declared_encoding(data: bytes) -> Optional[str]:
    match = _ENCODING_DECL_RE.match(data[:200])
    return match.group(1).decode('ascii') if match else None


def decode_xml_bytes(data: bytes) -> str:
    """
    Decode raw XML bytes into text.

    Order: byte order mark, the encoding named in the XML declaration,
    UTF-8, then charset_normalizer detection. ISO-8859-1 is the last resort.
    """
    if not data:
        return ""

    if data.startswith(b'\xff\xfe') or data.startswith(b'\xfe\xff'):
        return data.decode('utf-16')

    if data.startswith(b'\xef\xbb\xbf'):
        data = data[3:]

    declared = _declared_encoding(data)
    if declared:
        try:
            codec = codecs.lookup(declared).name
            # Windows issuers label cp1252 text (dashes, curly quotes) as ISO-8859-1
            if codec in ('iso8859-1', 'latin-1'):
                codec = 'cp1252'
            # An ASCII-readable declaration cannot be truthful about UTF-16/32
            if not codec.startswith(('utf-16', 'utf-32')):
                return data.decode(codec)
        except LookupError:
            logger.warning(f"Unknown declared encoding: {declared}")
        except UnicodeDecodeError:
            logger.debug(f"Content does not match declared encoding {declared}")

    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        pass

    best = from_bytes(data).best()
    if best is not None:
        logger.debug(f"Encoding detected via charset_normalizer: {best.encoding}")
        return str(best)

    logger.debug("Encoding not detected, decoding as ISO-8859-1")
    return data.decode('iso-8859-1')


class FileValidator:
    """Validates file types and formats"""

    # Magic bytes for file type detection
    ZIP_MAGIC = b'PK\x03\x04'

    @staticmethod
    def is_zip(file_path: Path) -> bool:
        """Check if file is a valid ZIP"""
        try:
            with open(file_path, 'rb') as f:
                header = f.read(4)
                return header == FileValidator.ZIP_MAGIC
        except OSError as e:
            logger.error(f"Error checking ZIP: {file_path} - {e}")
            return False

    @staticmethod
    def is_xml(file_path: Path, accepted_extensions: Sequence[str] = ('.xml',)) -> bool:
        """Check if file has an accepted XML extension"""
        return file_path.suffix.lower() in accepted_extensions

    @staticmethod
    def validate_file(file_path: Path, accepted_extensions: Sequence[str] = ('.xml',)) -> Tuple[bool, str]:
        """
        Validate if file is supported (XML or ZIP).
        Returns (is_valid, file_type)
        """
        if not file_path.exists():
            return False, "File does not exist"

        if not file_path.is_file():
            return False, "Not a file"

        if FileValidator.is_zip(file_path):
            return True, "ZIP"

        if FileValidator.is_xml(file_path, accepted_extensions):
            return True, "XML"

        return False, "Unsupported file type"


class ZIPExtractor:
    """Extracts XML files from ZIP archives in-memory"""

    @staticmethod
    def extract_xmls(zip_path: Path, accepted_extensions: Sequence[str] = ('.xml',)) -> List[Tuple[str, str]]:
        """
        Extract all XML files from a ZIP archive.
        Returns list of (filename, xml_text) tuples.
        """
        try:
            with open(zip_path, 'rb') as f:
                zip_bytes = f.read()
        except OSError as e:
            logger.error(f"Error reading ZIP {zip_path}: {e}")
            return []

        return ZIPExtractor.extract_xmls_from_bytes(zip_bytes, zip_path.name, accepted_extensions)

    @staticmethod
    def extract_xmls_from_bytes(zip_bytes: bytes,
                                source_name: str = "archive",
                                accepted_extensions: Sequence[str] = ('.xml',)) -> List[Tuple[str, str]]:
        """
        Extract XMLs from ZIP bytes (in-memory).
        Nested archives are not expanded.
        """
        xmls = []

        try:
            with zipfile.ZipFile(io.BytesIO(zip_bytes), 'r') as zip_ref:
                for file_info in zip_ref.infolist():
                    if file_info.is_dir():
                        continue

                    filename = file_info.filename
                    if Path(filename).suffix.lower() not in accepted_extensions:
                        logger.debug(f"Ignoring non-XML member {filename} in {source_name}")
                        continue

                    # Get just the filename without path
                    clean_filename = Path(filename).name
                    try:
                        xmls.append((clean_filename, decode_xml_bytes(zip_ref.read(file_info))))
                        logger.debug(f"Extracted XML from ZIP: {clean_filename}")
                    except (zipfile.BadZipFile, OSError, RuntimeError) as e:
                        logger.error(f"Error extracting {filename} from {source_name}: {e}")
                        xmls.append((clean_filename, ""))

            logger.info(f"Extracted {len(xmls)} XMLs from {source_name}")

        except zipfile.BadZipFile:
            logger.error(f"Invalid ZIP file: {source_name}")

        return xmls


class FileHandler:
    """High-level file handling operations"""

    @staticmethod
    def read_xml(file_path: Path) -> str:
        """Read and decode a single XML file, empty string when unreadable"""
        try:
            with open(file_path, 'rb') as f:
                return decode_xml_bytes(f.read())
        except OSError as e:
            logger.error(f"Error reading XML {file_path}: {e}")
            return ""

    @staticmethod
    def prepare_files_for_processing(file_paths: List[Path],
                                     accepted_extensions: Sequence[str] = ('.xml',)) -> List[Tuple[str, str]]:
        """
        Prepare files for processing.
        Handles both direct XMLs and ZIPs containing XMLs.

        Unreadable files are kept with empty text so the caller reports them;
        unsupported files are skipped.

        Returns:
            List of (filename, xml_text) tuples
        """
        files_to_process = []

        for file_path in file_paths:
            file_path = Path(file_path)
            is_valid, file_type = FileValidator.validate_file(file_path, accepted_extensions)

            if not is_valid:
                logger.warning(f"Skipping invalid file: {file_path} - {file_type}")
                continue

            if file_type == "XML":
                files_to_process.append((file_path.name, FileHandler.read_xml(file_path)))
                logger.debug(f"Added XML: {file_path.name}")

            elif file_type == "ZIP":
                files_to_process.extend(ZIPExtractor.extract_xmls(file_path, accepted_extensions))

        logger.info(f"Prepared {len(files_to_process)} files for processing")
        return files_to_process
