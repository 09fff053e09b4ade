"""
Per-document tax aggregation across line items (det).

Each line may declare its tax under a different regime (PISAliq, PISOutr,
PISNT, PISST, ...). Values are always summed; only regimes with a
calculation base feed the base total and the base-weighted declared rate.
"""
from decimal import Decimal
from typing import NamedTuple, Optional
from lxml import etree

from xml_fiscal.models import TaxAggregation
from xml_fiscal.core.dom import find_all, find_first, first_child, number_of
from xml_fiscal.core.numeric import amounts_close


class TaxCheck(NamedTuple):
    """Result of reconciling a declared tax with its base"""
    rate: float
    expected: float
    verified: bool


class _Accumulator:
    """Running totals for one tax"""

    def __init__(self):
        self.base = 0.0
        self.value = 0.0
        # Decimal copies of the XML figures keep the weighted rate free of float noise
        self._exact_base = Decimal(0)
        self._weighted_sum = Decimal(0)

    def add_value(self, value: float):
        self.value += value

    def add_base(self, base: float, percent: float, always: bool = False):
        if always or base > 0:
            self.base += base
            self._exact_base += Decimal(repr(base))
        if base > 0 and percent > 0:
            self._weighted_sum += Decimal(repr(percent)) * Decimal(repr(base))

    def result(self) -> TaxAggregation:
        declared = float(self._weighted_sum / self._exact_base) if self._exact_base > 0 else 0.0
        return TaxAggregation(base=self.base, value=self.value, declared_pct_weighted=declared)


def _line_taxes(doc: Optional[etree._Element]):
    """Yield the imposto block of every line item"""
    for det in find_all(doc, 'det'):
        imposto = find_first(det, 'imposto')
        if imposto is not None:
            yield imposto


def aggregate_pis_cofins(doc: Optional[etree._Element], tax: str) -> TaxAggregation:
    """
    Aggregate PIS or COFINS over all items.

    Supported regimes:
    - <TAX>Aliq: normal rate over base
    - <TAX>Outr: other operations (base only counted when positive)
    - <TAX>NT / <TAX>ST: value only

    Args:
        doc: Document element
        tax: "PIS" or "COFINS"

    Returns:
        TaxAggregation with total base, total value and weighted rate
    """
    acc = _Accumulator()
    if doc is None:
        return acc.result()

    value_tag = f"v{tax}"
    percent_tag = f"p{tax}"

    for imposto in _line_taxes(doc):
        tax_node = find_first(imposto, tax)
        if tax_node is None:
            continue

        acc.add_value(number_of(tax_node, value_tag))

        aliq_node = find_first(tax_node, f"{tax}Aliq")
        outr_node = find_first(tax_node, f"{tax}Outr")

        if aliq_node is not None:
            acc.add_base(number_of(aliq_node, 'vBC'), number_of(aliq_node, percent_tag), always=True)
        elif outr_node is not None:
            # Outr may be declared as quantity x unit rate, leaving vBC empty
            acc.add_base(number_of(outr_node, 'vBC'), number_of(outr_node, percent_tag))

    return acc.result()


def aggregate_ipi(doc: Optional[etree._Element]) -> TaxAggregation:
    """
    Aggregate IPI over all items.

    IPITrib contributes value, base and rate; IPINT contributes value only.
    """
    acc = _Accumulator()
    if doc is None:
        return acc.result()

    for imposto in _line_taxes(doc):
        ipi = find_first(imposto, 'IPI')
        if ipi is None:
            continue

        ipi_trib = find_first(ipi, 'IPITrib')
        if ipi_trib is not None:
            acc.add_value(number_of(ipi_trib, 'vIPI'))
            acc.add_base(number_of(ipi_trib, 'vBC'), number_of(ipi_trib, 'pIPI'))

        ipi_nt = find_first(ipi, 'IPINT')
        if ipi_nt is not None:
            acc.add_value(number_of(ipi_nt, 'vIPI'))

    return acc.result()


def icms_block(icms: Optional[etree._Element]) -> TaxAggregation:
    """Value, base and rate of a single ICMS element (first regime group)"""
    acc = _Accumulator()
    group = first_child(icms)
    if group is not None:
        acc.add_value(number_of(group, 'vICMS'))
        acc.add_base(number_of(group, 'vBC'), number_of(group, 'pICMS'))
    return acc.result()


def aggregate_icms(doc: Optional[etree._Element]) -> TaxAggregation:
    """
    Aggregate ICMS over all items.

    The ICMS element wraps exactly one regime group (ICMS00, ICMS20,
    ICMSSN102, ...); groups without vBC/pICMS contribute value only.
    """
    acc = _Accumulator()
    if doc is None:
        return acc.result()

    for imposto in _line_taxes(doc):
        group = first_child(find_first(imposto, 'ICMS'))
        if group is None:
            continue
        acc.add_value(number_of(group, 'vICMS'))
        acc.add_base(number_of(group, 'vBC'), number_of(group, 'pICMS'))

    return acc.result()


def aggregate_difal(doc: Optional[etree._Element]) -> TaxAggregation:
    """Aggregate the interstate rate differential (ICMSUFDest)"""
    acc = _Accumulator()
    if doc is None:
        return acc.result()

    for imposto in _line_taxes(doc):
        uf_dest = find_first(imposto, 'ICMSUFDest')
        if uf_dest is None:
            continue
        acc.add_value(number_of(uf_dest, 'vICMSUFDest'))
        acc.add_base(number_of(uf_dest, 'vBCUFDest'), number_of(uf_dest, 'pICMSUFDest'))

    return acc.result()


def max_icms_reduction(doc: Optional[etree._Element]) -> float:
    """Highest base reduction percentage (pRedBC) declared on any item"""
    reduction = 0.0
    for imposto in _line_taxes(doc):
        group = first_child(find_first(imposto, 'ICMS'))
        if group is not None:
            reduction = max(reduction, number_of(group, 'pRedBC'))
    return reduction


def reconcile(aggregation: TaxAggregation, default_rate: float) -> TaxCheck:
    """
    Check the declared tax value against base x rate.

    The declared weighted rate is used when present, otherwise the
    configured default rate.
    """
    rate = aggregation.declared_pct_weighted or default_rate
    expected = aggregation.base * rate / 100 if aggregation.base > 0 else 0.0
    return TaxCheck(rate=rate, expected=expected, verified=amounts_close(aggregation.value, expected))
