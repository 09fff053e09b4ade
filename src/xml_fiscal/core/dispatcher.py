"""
Entry point of the engine: clean raw XML text, classify the document and
route it to the matching parser.

parse_fiscal_xml never raises; any failure is logged with the file name and
reported to the caller as None.
"""
import re
from typing import List, Optional
from lxml import etree
from loguru import logger

from xml_fiscal.models import FiscalRecord, ParserConfig
from xml_fiscal.core.dom import find_first, parent_of
from xml_fiscal.core.parsers import build_cancellation_record, parse_cte, parse_nfe

EVENT_TAGS = ('procEventoNFe', 'procEventoCTe', 'eventoCTe', 'eventoNFe')
CANCELLATION_TAGS = ('retCancNFe', 'retCancCTe')

_BOM_RE = re.compile('^\ufeff')
_DECLARATION_RE = re.compile(r'^\s*<\?xml[^>]*\?>')
_COMMENT_RE = re.compile(r'<!--[\s\S]*?-->')
_XMLNS_RE = re.compile(r'\s+xmlns(:[\w.-]+)?\s*=\s*("[^"]*"|\'[^\']*\')')
_TAG_PREFIX_RE = re.compile(r'<(/?)[A-Za-z_][\w.-]*:(?=[A-Za-z_])')
_PREFIXED_ATTR_RE = re.compile(r'\s+[A-Za-z_][\w.-]*:[\w.-]+\s*=\s*("[^"]*"|\'[^\']*\')')
_START_TAG_RE = re.compile(r'<[A-Za-z_][^>]*>')
_CONTROL_CHARS_RE = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F]')
_BARE_AMPERSAND_RE = re.compile(r'&(?!#?\w+;)')
_EVENT_RE = re.compile(r'<\s*procEvento(NFe|CTe)|<\s*evento(NFe|CTe)', re.IGNORECASE)
_INF_NFE_RE = re.compile(r'<infNFe\b[^>]*>[\s\S]*?</infNFe>', re.IGNORECASE)
_INF_CTE_RE = re.compile(r'<infCte\b[^>]*>[\s\S]*?</infCte>', re.IGNORECASE)


def _strip_tag_attributes(match) -> str:
    tag = _XMLNS_RE.sub('', match.group(0))
    return _PREFIXED_ATTR_RE.sub('', tag)


def clean_xml_content(content: str) -> str:
    """
    Normalize issuer-software quirks before parsing.

    Removes the BOM, the XML declaration, comments, namespace declarations
    (and the prefixes they bound), invalid control characters, and escapes
    ampersands that do not start an entity reference.
    """
    if not content:
        return content

    content = _BOM_RE.sub('', content)
    content = _DECLARATION_RE.sub('', content)
    content = _COMMENT_RE.sub('', content)
    content = _TAG_PREFIX_RE.sub(r'<\1', content)
    content = _START_TAG_RE.sub(_strip_tag_attributes, content)
    content = _CONTROL_CHARS_RE.sub('', content)
    content = _BARE_AMPERSAND_RE.sub('&amp;', content)
    return content.strip()


def is_event_document(content: str) -> bool:
    """Quick textual check for event XMLs (procEvento / evento)"""
    return bool(content and _EVENT_RE.search(content))


def _new_parser() -> etree.XMLParser:
    return etree.XMLParser(
        remove_comments=True,
        resolve_entities=False,
        no_network=True,
    )


def _parse_tree(content: str) -> etree._ElementTree:
    root = etree.fromstring(content, parser=_new_parser())
    return root.getroottree()


def _find_any(tree: etree._ElementTree, tags) -> Optional[etree._Element]:
    for tag in tags:
        found = find_first(tree, tag)
        if found is not None:
            return found
    return None


def _locate_cte(tree: etree._ElementTree) -> Optional[etree._Element]:
    cte = find_first(tree, 'CTe')
    if cte is not None:
        return cte
    inf_cte = find_first(tree, 'infCte')
    if inf_cte is not None:
        return parent_of(inf_cte) if parent_of(inf_cte) is not None else inf_cte
    return None


def _locate_nfe(tree: etree._ElementTree, has_cte: bool) -> Optional[etree._Element]:
    nfe = find_first(tree, 'NFe')
    if nfe is not None:
        return nfe
    # A CT-e lists the transported NF-e as infDoc/infNFe, which is not an invoice
    if has_cte:
        return None
    inf_nfe = find_first(tree, 'infNFe')
    if inf_nfe is not None:
        return parent_of(inf_nfe) if parent_of(inf_nfe) is not None else inf_nfe
    return None


def _salvage(content: str, file_name: str, config: ParserConfig) -> Optional[List[FiscalRecord]]:
    """Extract an infNFe/infCte fragment by regex and parse it on its own"""
    for pattern, label, parser in ((_INF_NFE_RE, 'infNFe', parse_nfe), (_INF_CTE_RE, 'infCte', parse_cte)):
        match = pattern.search(content)
        if not match:
            continue
        logger.warning(f"Fallback: extraído <{label}> via regex em {file_name}")
        try:
            wrapper = etree.fromstring(f"<root>{match.group(0)}</root>", parser=_new_parser())
        except etree.XMLSyntaxError as e:
            logger.warning(f"Erro no fallback regex para {file_name}: {e}")
            return None
        return parser(wrapper, file_name, config)
    return None


def parse_fiscal_xml(content: str,
                     file_name: str,
                     config: Optional[ParserConfig] = None) -> Optional[List[FiscalRecord]]:
    """
    Parse a fiscal XML document (NF-e or CT-e) into normalized records.

    Supports nfeProc/cteProc envelopes, bare NFe/CTe documents, cancellation
    results and fragments embedded without their envelope.

    Args:
        content: XML text already decoded by the caller
        file_name: File name for log messages
        config: Company identity and default rates (defaults when omitted)

    Returns:
        Non-empty list of records, or None when the document cannot be used
    """
    config = config or ParserConfig()

    try:
        content = clean_xml_content(content)
        if not content:
            logger.error(f"Empty XML content in {file_name}")
            return None

        try:
            tree = _parse_tree(content)
        except etree.XMLSyntaxError as e:
            logger.error(f"XML parsing error in {file_name}: {e}")
            return None

        if _find_any(tree, EVENT_TAGS) is not None:
            logger.info(f"Skipping event XML: {file_name}")
            return None

        cancel_root = _find_any(tree, CANCELLATION_TAGS)
        if cancel_root is not None:
            logger.info(f"Cancellation XML: {file_name}")
            return [build_cancellation_record(cancel_root)]

        cte = _locate_cte(tree)
        nfe = _locate_nfe(tree, has_cte=cte is not None)

        if nfe is not None:
            return parse_nfe(nfe, file_name, config)

        if cte is not None:
            return parse_cte(cte, file_name, config)

        salvaged = _salvage(content, file_name, config)
        if salvaged:
            return salvaged

        logger.warning(f"Unknown XML format in file: {file_name}")
        return None

    except Exception as e:
        logger.error(f"Error parsing XML {file_name}: {e}")
        return None
