"""
Document classifiers: protocol situation and operation direction.
"""
from typing import Callable, List, NamedTuple, Optional, Tuple
from lxml import etree
from loguru import logger

from xml_fiscal.models import OperationType, ParserConfig, ProtocolInfo, Situacao
from xml_fiscal.core.dom import find_first, text_of
from xml_fiscal.core.numeric import format_date, only_digits

# SEFAZ status codes
STATUS_AUTORIZADA = '100'
STATUS_CANCELADA = '101'
STATUS_NEGADA_PREFIX = '3'


# ==================== SITUATION ====================

def determine_situacao(c_stat: Optional[str]) -> Situacao:
    """Map a protocol status code (cStat) to the document situation"""
    if not c_stat:
        return Situacao.DESCONHECIDA
    if c_stat == STATUS_AUTORIZADA:
        return Situacao.ATIVA
    if c_stat == STATUS_CANCELADA:
        return Situacao.CANCELADA
    if c_stat.startswith(STATUS_NEGADA_PREFIX):
        return Situacao.NEGADA
    return Situacao.REJEITADA


class ProtocolStatus(NamedTuple):
    situacao: Situacao
    info: Optional[ProtocolInfo] = None
    data_mudanca: Optional[str] = None


def extract_protocol(doc: Optional[etree._Element], prot_name: str) -> ProtocolStatus:
    """
    Read the authorization protocol (protNFe / protCTe).

    The protocol is a sibling of the signed document inside nfeProc/cteProc,
    so the whole tree is searched when it is not found under ``doc``.
    Protocol details and the change date are only kept for documents that
    are not active.
    """
    if doc is None:
        return ProtocolStatus(Situacao.DESCONHECIDA)

    prot = find_first(doc, prot_name)
    if prot is None:
        prot = find_first(doc.getroottree(), prot_name)

    inf_prot = None
    if prot is not None:
        inf_prot = find_first(prot, 'infProt')
        if inf_prot is None:
            inf_prot = prot

    c_stat = text_of(inf_prot, 'cStat')
    x_motivo = text_of(inf_prot, 'xMotivo')
    n_prot = text_of(inf_prot, 'nProt')
    dh_recbto = text_of(inf_prot, 'dhRecbto')

    situacao = determine_situacao(c_stat)
    if situacao == Situacao.ATIVA:
        return ProtocolStatus(situacao)

    info = None
    if c_stat or x_motivo or n_prot:
        info = ProtocolInfo(c_stat=c_stat or None, x_motivo=x_motivo or None, n_prot=n_prot or None)

    return ProtocolStatus(situacao, info, format_date(dh_recbto) or None)


# ==================== OPERATION DIRECTION ====================

class DirectionContext(NamedTuple):
    """Signals available to decide whether an operation is inbound or outbound"""
    own_is_issuer: bool
    own_is_counterpart: bool
    issuer_id: str
    counterpart_id: str
    declared_flag: str


# A rule returns (decision, warning); decision None passes to the next rule
RuleResult = Tuple[Optional[OperationType], Optional[str]]


class DirectionRule(NamedTuple):
    name: str
    decide: Callable[[DirectionContext], RuleResult]


def resolve_direction(rules: List[DirectionRule],
                      ctx: DirectionContext,
                      file_name: str) -> OperationType:
    """
    Evaluate rules in order; the first decisive one wins.

    The last rule of every list must always decide.
    """
    for rule in rules:
        decision, warning = rule.decide(ctx)
        if decision is None:
            continue
        if warning:
            logger.warning(f"{warning} em {file_name}")
        logger.debug(f"{file_name}: direction {decision.value} by rule '{rule.name}'")
        return decision

    raise ValueError("Direction rules must end with a default rule")


def _party_id(party: Optional[etree._Element]) -> str:
    return only_digits(text_of(party, 'CNPJ') or text_of(party, 'CPF'))


# NF-e: own company as issuer/recipient, then tpNF, then textual inference

def _nfe_issuer_only(ctx: DirectionContext) -> RuleResult:
    if ctx.own_is_issuer and not ctx.own_is_counterpart:
        return OperationType.SAIDA, None
    return None, None


def _nfe_recipient_only(ctx: DirectionContext) -> RuleResult:
    if ctx.own_is_counterpart and not ctx.own_is_issuer:
        return OperationType.ENTRADA, None
    return None, None


def _nfe_own_both(ctx: DirectionContext) -> RuleResult:
    if not (ctx.own_is_issuer and ctx.own_is_counterpart):
        return None, None
    if ctx.declared_flag == '0':
        return OperationType.ENTRADA, None
    if ctx.declared_flag == '1':
        return OperationType.SAIDA, None
    return OperationType.SAIDA, "Nota própria (emit=dest) sem tpNF, assumindo Saída"


def _nfe_declared_flag(ctx: DirectionContext) -> RuleResult:
    if ctx.declared_flag == '0':
        return OperationType.ENTRADA, "tpNF=0 (Entrada) em nota de terceiro"
    if ctx.declared_flag == '1':
        return OperationType.SAIDA, "tpNF=1 (Saída) em nota de terceiro"
    return None, None


def _nfe_distinct_parties(ctx: DirectionContext) -> RuleResult:
    if ctx.issuer_id and ctx.counterpart_id and ctx.issuer_id != ctx.counterpart_id:
        return OperationType.SAIDA, "Nota de terceiro sem tpNF, inferindo como Saída"
    return None, None


def _nfe_default(ctx: DirectionContext) -> RuleResult:
    return OperationType.ENTRADA, "Não foi possível determinar tipo, assumindo Entrada"


NFE_DIRECTION_RULES = [
    DirectionRule("empresa emitente", _nfe_issuer_only),
    DirectionRule("empresa destinatária", _nfe_recipient_only),
    DirectionRule("empresa emitente e destinatária", _nfe_own_both),
    DirectionRule("tpNF declarado", _nfe_declared_flag),
    DirectionRule("partes distintas", _nfe_distinct_parties),
    DirectionRule("padrão", _nfe_default),
]


def detect_nfe_operation(ide: Optional[etree._Element],
                         emit: Optional[etree._Element],
                         dest: Optional[etree._Element],
                         config: ParserConfig,
                         file_name: str) -> OperationType:
    """
    Detect whether an NF-e is inbound (Entrada) or outbound (Saída).

    The company's CNPJ decides when found; tpNF is used otherwise.
    """
    issuer_id = _party_id(emit)
    recipient_id = _party_id(dest)
    ctx = DirectionContext(
        own_is_issuer=config.is_own_cnpj(issuer_id),
        own_is_counterpart=config.is_own_cnpj(recipient_id),
        issuer_id=issuer_id,
        counterpart_id=recipient_id,
        declared_flag=text_of(ide, 'tpNF'),
    )
    return resolve_direction(NFE_DIRECTION_RULES, ctx, file_name)


# CT-e: own company as carrier/shipper, then tpCTe, then textual inference

def _cte_carrier_only(ctx: DirectionContext) -> RuleResult:
    if ctx.own_is_issuer and not ctx.own_is_counterpart:
        return OperationType.SAIDA, None
    return None, None


def _cte_shipper(ctx: DirectionContext) -> RuleResult:
    if ctx.own_is_counterpart:
        return OperationType.ENTRADA, None
    return None, None


def _cte_declared_type(ctx: DirectionContext) -> RuleResult:
    # tpCTe: 0=Normal, 1=Complementar, 2=Anulação, 3=Substituto
    if ctx.declared_flag == '0':
        return OperationType.SAIDA, "tpCTe=0 (Normal/Saída) em CT-e de terceiro"
    return None, None


def _cte_distinct_parties(ctx: DirectionContext) -> RuleResult:
    if ctx.issuer_id and ctx.counterpart_id and ctx.issuer_id != ctx.counterpart_id:
        return OperationType.SAIDA, "CT-e de terceiro sem identificação clara, inferindo como Saída"
    return None, None


def _cte_default(ctx: DirectionContext) -> RuleResult:
    return OperationType.ENTRADA, "Não foi possível determinar tipo do CT-e, assumindo Entrada"


CTE_DIRECTION_RULES = [
    DirectionRule("empresa transportadora", _cte_carrier_only),
    DirectionRule("empresa remetente", _cte_shipper),
    DirectionRule("tpCTe declarado", _cte_declared_type),
    DirectionRule("partes distintas", _cte_distinct_parties),
    DirectionRule("padrão", _cte_default),
]


def detect_cte_operation(ide: Optional[etree._Element],
                         emit: Optional[etree._Element],
                         rem: Optional[etree._Element],
                         config: ParserConfig,
                         file_name: str) -> OperationType:
    """
    Detect whether a CT-e is inbound (Entrada) or outbound (Saída).

    Carrier (emit) is the company ⇒ Saída; shipper (rem) is the company ⇒
    Entrada; otherwise tpCTe and the parties decide.
    """
    carrier_id = _party_id(emit)
    shipper_id = _party_id(rem)
    ctx = DirectionContext(
        own_is_issuer=config.is_own_cnpj(carrier_id),
        own_is_counterpart=config.is_own_cnpj(shipper_id),
        issuer_id=carrier_id,
        counterpart_id=shipper_id,
        declared_flag=text_of(ide, 'tpCTe'),
    )
    return resolve_direction(CTE_DIRECTION_RULES, ctx, file_name)
