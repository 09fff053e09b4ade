"""
Document parsers: turn a located NF-e or CT-e element into output rows.
"""
from typing import List, Optional
from lxml import etree
from loguru import logger

from xml_fiscal.models import (
    DocumentType,
    FiscalRecord,
    OperationType,
    ParserConfig,
    RecordExtras,
    Situacao,
)
from xml_fiscal.core.classifiers import (
    ProtocolStatus,
    detect_cte_operation,
    detect_nfe_operation,
    extract_protocol,
)
from xml_fiscal.core.dom import attribute_of, find_first, find_self_or_first, number_of, text_of
from xml_fiscal.core.numeric import (
    format_cnpj_cpf,
    format_date,
    normalize_access_key,
    truncate_to_four_decimals,
)
from xml_fiscal.core.products import (
    extract_materials,
    extract_products,
    extract_referenced_cte,
    extract_referenced_nfe,
)
from xml_fiscal.core.taxes import (
    aggregate_difal,
    aggregate_icms,
    aggregate_ipi,
    aggregate_pis_cofins,
    icms_block,
    max_icms_reduction,
    reconcile,
)


def _emission_date(ide: Optional[etree._Element]) -> str:
    return format_date(text_of(ide, 'dhEmi') or text_of(ide, 'dEmi'))


def _party_document(party: Optional[etree._Element]) -> str:
    return format_cnpj_cpf(text_of(party, 'CNPJ') or text_of(party, 'CPF'))


def _apply_protocol(extras: RecordExtras, status: ProtocolStatus):
    extras.situacao = status.situacao
    extras.situacao_info = status.info
    extras.data_mudanca_situacao = status.data_mudanca


# ==================== NF-e ====================

def _nfe_tax_extras(doc: etree._Element, extras: RecordExtras, config: ParserConfig):
    """Fill tax aggregates and consistency checks of an NF-e"""
    checks = [
        ('pis', aggregate_pis_cofins(doc, 'PIS'), config.default_pis_rate),
        ('cofins', aggregate_pis_cofins(doc, 'COFINS'), config.default_cofins_rate),
        ('ipi', aggregate_ipi(doc), config.default_ipi_rate),
    ]

    for name, aggregation, default_rate in checks:
        check = reconcile(aggregation, default_rate)
        setattr(extras, f"aliquota_{name}", truncate_to_four_decimals(aggregation.declared_pct_weighted))
        setattr(extras, f"valor_{name}", aggregation.value)
        setattr(extras, f"flag_{name}", aggregation.value > 0)
        setattr(extras, f"base_{name}", aggregation.base)
        setattr(extras, f"declared_{name}", aggregation.declared_pct_weighted)
        setattr(extras, f"expected_{name}", check.expected)
        setattr(extras, f"verified_{name}", check.verified)

    icms = aggregate_icms(doc)
    icms_check = reconcile(icms, 0.0)
    extras.aliquota_icms = truncate_to_four_decimals(icms.declared_pct_weighted)
    extras.valor_icms = icms.value
    extras.flag_icms = icms.value > 0
    extras.expected_icms = icms_check.expected
    extras.verified_icms = icms_check.verified

    difal = aggregate_difal(doc)
    extras.aliquota_difal = truncate_to_four_decimals(difal.declared_pct_weighted)
    extras.valor_difal = difal.value
    extras.reducao_icms = max_icms_reduction(doc)

    icms_tot = find_first(find_first(doc, 'total'), 'ICMSTot')
    extras.valor_total = number_of(icms_tot, 'vNF')
    extras.base_calculo_icms = number_of(icms_tot, 'vBC') or icms.base


def parse_nfe(doc: etree._Element, file_name: str, config: ParserConfig) -> List[FiscalRecord]:
    """
    Parse an NF-e into one record per product.

    Args:
        doc: Element containing infNFe (NFe, nfeProc or a synthetic wrapper)
        file_name: File name for log messages
        config: Company identity and default tax rates

    Returns:
        One record per product, or a single header-only record when the
        invoice has no usable product lines
    """
    inf_nfe = find_self_or_first(doc, 'infNFe')
    ide = find_first(doc, 'ide')
    emit = find_first(doc, 'emit')
    dest = find_first(doc, 'dest')
    transporta = find_first(find_first(doc, 'transp'), 'transporta')

    chave_acesso = normalize_access_key(attribute_of(inf_nfe, 'Id'))
    if not chave_acesso:
        logger.debug(f"NF-e sem chave de acesso válida em {file_name}")

    empresa = text_of(emit, 'xNome')
    cliente = text_of(dest, 'xNome')
    referenced = extract_referenced_nfe(ide)
    tipo_operacao = detect_nfe_operation(ide, emit, dest, config, file_name)

    header = {
        'tipo': DocumentType.NFE,
        'chave_acesso': chave_acesso,
        'data': _emission_date(ide),
        'cte': referenced.cte_referenciado,
        'transportadora': text_of(transporta, 'xNome'),
        'cliente': cliente,
        'uf': text_of(find_first(dest, 'enderDest'), 'UF'),
        'danfe': text_of(ide, 'nNF'),
        'empresa_xml': empresa,
    }

    # Counterpart depends on the direction: supplier on Entrada, client on Saída
    counterpart = emit if tipo_operacao == OperationType.ENTRADA else dest
    extras = RecordExtras(
        tipo_operacao=tipo_operacao,
        numero=header['danfe'] or None,
        serie=text_of(ide, 'serie') or None,
        data_emissao=header['data'] or None,
        fornecedor_cliente=text_of(counterpart, 'xNome') or None,
        cnpj_cpf=_party_document(counterpart) or None,
        nfe_referenciada=referenced.nfe_referenciada or None,
        cte_referenciado=referenced.cte_referenciado or None,
        chave_referenciada=referenced.chave_referenciada or None,
        material=extract_materials(doc) or None,
    )
    _nfe_tax_extras(doc, extras, config)
    _apply_protocol(extras, extract_protocol(doc, 'protNFe'))

    produtos = extract_products(doc)

    if not produtos:
        logger.debug(f"NF-e sem produtos em {file_name}, gerando linha de cabeçalho")
        return [FiscalRecord(**header, extras=extras)]

    records = []
    for prod in produtos:
        valor_sem_ipi = prod.valor_unitario
        valor_com_ipi = valor_sem_ipi * (1 + prod.aliquota_ipi / 100)
        records.append(FiscalRecord(
            **header,
            produto=prod.descricao,
            peso=prod.quantidade,
            valor_unitario=valor_com_ipi,
            valor_kg_venda_sem_ipi=valor_sem_ipi,
            extras=extras.model_copy(deep=True),
        ))

    logger.debug(f"NF-e {chave_acesso or file_name}: {len(records)} produto(s)")
    return records


# ==================== CT-e ====================

def parse_cte(doc: etree._Element, file_name: str, config: ParserConfig) -> List[FiscalRecord]:
    """
    Parse a CT-e into a single record.

    CT-e documents are never exploded per product; the product column holds
    the first material name found, if any.
    """
    inf_cte = find_self_or_first(doc, 'infCte')
    ide = find_first(doc, 'ide')
    emit = find_first(doc, 'emit')
    dest = find_first(doc, 'dest')
    rem = find_first(doc, 'rem')

    chave_acesso = normalize_access_key(attribute_of(inf_cte, 'Id'))

    # The carrier issues the CT-e
    transportadora = text_of(emit, 'xNome')
    cliente = text_of(dest, 'xNome') or text_of(rem, 'xNome')

    ender = find_first(dest, 'enderDest')
    if ender is None:
        ender = find_first(rem, 'enderReme')

    material = extract_materials(doc)
    referenced = extract_referenced_cte(doc)
    tipo_operacao = detect_cte_operation(ide, emit, rem, config, file_name)

    counterpart = emit if tipo_operacao == OperationType.ENTRADA else (dest if dest is not None else rem)
    icms = icms_block(find_first(find_first(doc, 'imp'), 'ICMS'))
    icms_check = reconcile(icms, 0.0)

    extras = RecordExtras(
        tipo_operacao=tipo_operacao,
        numero_cte=text_of(ide, 'nCT') or None,
        serie=text_of(ide, 'serie') or None,
        data_emissao=_emission_date(ide) or None,
        fornecedor_cliente=text_of(counterpart, 'xNome') or None,
        cnpj_cpf=_party_document(counterpart) or None,
        valor_total=number_of(find_first(doc, 'vPrest'), 'vTPrest'),
        base_calculo_icms=icms.base,
        aliquota_icms=truncate_to_four_decimals(icms.declared_pct_weighted),
        valor_icms=icms.value,
        flag_icms=icms.value > 0,
        expected_icms=icms_check.expected,
        verified_icms=icms_check.verified,
        nfe_referenciada=referenced.nfe_referenciada or None,
        chave_referenciada=referenced.chave_referenciada or None,
        material=material or None,
    )
    _apply_protocol(extras, extract_protocol(doc, 'protCTe'))

    return [FiscalRecord(
        tipo=DocumentType.CTE,
        chave_acesso=chave_acesso,
        data=_emission_date(ide),
        cte=text_of(ide, 'nCT'),
        transportadora=transportadora,
        cliente=cliente,
        uf=text_of(ender, 'UF'),
        danfe="",
        produto=material,
        empresa_xml=transportadora,
        extras=extras,
    )]


# ==================== CANCELLATION ====================

def build_cancellation_record(cancel_root: etree._Element) -> FiscalRecord:
    """
    Minimal record for a cancellation result (retCancNFe / retCancCTe).

    Only the access key is known; everything else stays empty.
    """
    inf_canc = find_first(cancel_root, 'infCanc')
    if inf_canc is None:
        inf_canc = cancel_root

    chave = text_of(inf_canc, 'chNFe') or text_of(inf_canc, 'chCTe')

    return FiscalRecord(
        tipo=DocumentType.NFE,
        chave_acesso=normalize_access_key(chave),
        extras=RecordExtras(situacao=Situacao.CANCELADA, is_cancellation_file=True),
    )
