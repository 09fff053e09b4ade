"""
Line-item and referenced-document extraction.
"""
from typing import List, NamedTuple, Optional
from lxml import etree

from xml_fiscal.core.dom import find_all, find_first, number_of, text_of
from xml_fiscal.core.numeric import numero_da_chave


class ProductLine(NamedTuple):
    """Product extracted from one det element"""
    descricao: str
    quantidade: float
    valor_unitario: float
    aliquota_ipi: float


class ReferencedDocuments(NamedTuple):
    nfe_referenciada: str = ""
    cte_referenciado: str = ""
    chave_referenciada: str = ""


def extract_products(doc: Optional[etree._Element]) -> List[ProductLine]:
    """
    Extract every product of an NF-e with quantity, unit price and IPI rate.

    Items without a description are skipped. Repeated products are kept,
    since the same product may appear once per lot.
    """
    produtos = []

    for det in find_all(doc, 'det'):
        prod = find_first(det, 'prod')
        if prod is None:
            continue

        descricao = text_of(prod, 'xProd')
        if not descricao:
            continue

        aliquota_ipi = 0.0
        ipi = find_first(find_first(det, 'imposto'), 'IPI')
        ipi_trib = find_first(ipi, 'IPITrib')
        if ipi_trib is not None:
            aliquota_ipi = number_of(ipi_trib, 'pIPI')

        produtos.append(ProductLine(
            descricao=descricao,
            quantidade=number_of(prod, 'qCom'),
            valor_unitario=number_of(prod, 'vUnCom'),
            aliquota_ipi=aliquota_ipi,
        ))

    return produtos


def extract_materials(doc: Optional[etree._Element]) -> str:
    """Name of the first distinct product found in the items, or empty string"""
    for det in find_all(doc, 'det'):
        prod = find_first(det, 'prod')
        nome = text_of(prod, 'xProd') if prod is not None else text_of(det, 'xProd')
        if nome:
            return nome
    return ""


def extract_referenced_nfe(ide: Optional[etree._Element]) -> ReferencedDocuments:
    """
    Scan NFref entries of an NF-e and stop at the first resolved reference.

    A referenced NF-e fills ``nfe_referenciada``; a referenced CT-e fills
    ``cte_referenciado``. Both keep the full key in ``chave_referenciada``.
    """
    for nf_ref in find_all(ide, 'NFref'):
        ref_nfe = text_of(nf_ref, 'refNFe')
        if ref_nfe:
            return ReferencedDocuments(
                nfe_referenciada=numero_da_chave(ref_nfe),
                chave_referenciada=ref_nfe,
            )

        ref_cte = text_of(nf_ref, 'refCTe')
        if ref_cte:
            return ReferencedDocuments(
                cte_referenciado=numero_da_chave(ref_cte),
                chave_referenciada=ref_cte,
            )

    return ReferencedDocuments()


def extract_referenced_cte(doc: Optional[etree._Element]) -> ReferencedDocuments:
    """NF-e transported by a CT-e (infDoc/infNFe/chave)"""
    inf_nfe = find_first(find_first(doc, 'infDoc'), 'infNFe')
    chave = text_of(inf_nfe, 'chave')
    if not chave:
        return ReferencedDocuments()
    return ReferencedDocuments(nfe_referenciada=numero_da_chave(chave), chave_referenciada=chave)
