"""
Tests for the NF-e and CT-e document parsers.
"""
import unittest
from pathlib import Path
import sys
from lxml import etree

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from xml_fiscal.models import DocumentType, OperationType, ParserConfig, Situacao
from xml_fiscal.core.dispatcher import clean_xml_content
from xml_fiscal.core.parsers import build_cancellation_record, parse_cte, parse_nfe
from xml_fiscal.core.products import extract_products, extract_referenced_cte, extract_referenced_nfe

from fixtures import (
    BOBINA,
    CHAPA,
    CLIENT_CNPJ,
    CTE_KEY,
    NFE_KEY,
    OWN_CNPJ,
    REF_CTE_KEY,
    SHIPPER_CNPJ,
    cancellation_xml,
    cte_body,
    cte_proc_xml,
    nfe_body,
    nfe_proc_xml,
)

CONFIG = ParserConfig(empresa_cnpjs=[OWN_CNPJ])


def load(xml: str) -> etree._Element:
    return etree.fromstring(clean_xml_content(xml))


class TestParseNFe(unittest.TestCase):
    """Test NF-e parsing"""

    def setUp(self):
        tree = load(nfe_proc_xml())
        self.records = parse_nfe(tree.find('NFe'), "nota.xml", CONFIG)

    def test_one_record_per_product(self):
        """Test one record per item"""
        self.assertEqual(len(self.records), 2)
        self.assertEqual({r.chave_acesso for r in self.records}, {NFE_KEY})
        self.assertEqual([r.produto for r in self.records], [BOBINA.descricao, CHAPA.descricao])

    def test_header_fields(self):
        """Test fields read from the invoice header"""
        record = self.records[0]
        self.assertEqual(record.tipo, DocumentType.NFE)
        self.assertEqual(record.data, "10/05/2023")
        self.assertEqual(record.danfe, "123")
        self.assertEqual(record.cliente, "Cliente Industrial SA")
        self.assertEqual(record.uf, "MG")
        self.assertEqual(record.transportadora, "Transportes Rapido Ltda")
        self.assertEqual(record.empresa_xml, "Metalurgica Exemplo Ltda")
        self.assertEqual(record.cte, "")

    def test_unit_price_includes_ipi(self):
        """Test the IPI uplift of the unit price"""
        bobina, chapa = self.records
        self.assertAlmostEqual(bobina.peso, 1000.5)
        self.assertAlmostEqual(bobina.valor_kg_venda_sem_ipi, 8.5)
        self.assertAlmostEqual(bobina.valor_unitario, 8.5 * 1.0325)
        self.assertAlmostEqual(chapa.valor_unitario, 12.0)
        self.assertAlmostEqual(chapa.valor_kg_venda_sem_ipi, 12.0)

    def test_manual_fields_are_empty(self):
        """Test that manual fields start empty"""
        record = self.records[0]
        self.assertEqual(record.vendedor, "")
        self.assertEqual(record.valor_frete, 0.0)
        self.assertEqual(record.cmv, 0.0)

    def test_extras(self):
        """Test identity and protocol extras"""
        extras = self.records[0].extras
        self.assertEqual(extras.tipo_operacao, OperationType.SAIDA)
        self.assertEqual(extras.fornecedor_cliente, "Cliente Industrial SA")
        self.assertEqual(extras.cnpj_cpf, "98.765.432/0001-10")
        self.assertEqual(extras.numero, "123")
        self.assertEqual(extras.serie, "1")
        self.assertEqual(extras.material, BOBINA.descricao)
        self.assertEqual(extras.situacao, Situacao.ATIVA)
        self.assertIsNone(extras.situacao_info)

    def test_tax_extras(self):
        """Test tax extras"""
        extras = self.records[0].extras
        v_bobina = BOBINA.quantidade * BOBINA.valor_unitario
        v_total = v_bobina + CHAPA.quantidade * CHAPA.valor_unitario

        self.assertEqual(extras.aliquota_pis, 1.65)
        self.assertEqual(extras.aliquota_cofins, 7.6)
        self.assertEqual(extras.aliquota_ipi, 3.25)
        self.assertEqual(extras.aliquota_icms, 18.0)
        self.assertAlmostEqual(extras.base_pis, v_total, places=2)
        self.assertAlmostEqual(extras.base_ipi, v_bobina, places=2)
        self.assertTrue(extras.flag_pis)
        self.assertTrue(extras.flag_ipi)
        self.assertTrue(extras.verified_pis)
        self.assertTrue(extras.verified_cofins)
        self.assertTrue(extras.verified_ipi)
        self.assertTrue(extras.verified_icms)
        self.assertAlmostEqual(extras.base_calculo_icms, v_total, places=2)
        self.assertGreater(extras.valor_total, v_total)

    def test_rows_do_not_share_extras(self):
        """Test that rows get their own extras"""
        self.records[0].extras.data_insercao = "01/01/2024"
        self.assertIsNone(self.records[1].extras.data_insercao)

    def test_inbound_counterpart_is_supplier(self):
        """Test the counterpart of inbound invoices"""
        records = parse_nfe(load(nfe_body(emit_cnpj=CLIENT_CNPJ, emit_name="Usina Fornecedora SA",
                                          dest_cnpj=OWN_CNPJ)), "nota.xml", CONFIG)
        extras = records[0].extras
        self.assertEqual(extras.tipo_operacao, OperationType.ENTRADA)
        self.assertEqual(extras.fornecedor_cliente, "Usina Fornecedora SA")

    def test_no_products_gives_header_row(self):
        """Test the header row of invoices without items"""
        records = parse_nfe(load(nfe_body(items=[])), "nota.xml", CONFIG)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].produto, "")
        self.assertEqual(records[0].peso, 0.0)
        self.assertEqual(records[0].chave_acesso, NFE_KEY)

    def test_referenced_cte_number(self):
        """Test the referenced CT-e number"""
        records = parse_nfe(load(nfe_body(ref_cte=REF_CTE_KEY)), "nota.xml", CONFIG)
        self.assertEqual(records[0].cte, "789")
        self.assertEqual(records[0].extras.chave_referenciada, REF_CTE_KEY)

    def test_cancelled_protocol(self):
        """Test an invoice with a cancelled protocol"""
        tree = load(nfe_proc_xml(c_stat="101", motivo="Cancelamento de NF-e homologado"))
        extras = parse_nfe(tree.find('NFe'), "nota.xml", CONFIG)[0].extras
        self.assertEqual(extras.situacao, Situacao.CANCELADA)
        self.assertEqual(extras.situacao_info.c_stat, "101")
        self.assertEqual(extras.data_mudanca_situacao, "12/05/2023")


class TestParseCTe(unittest.TestCase):
    """Test CT-e parsing"""

    def test_single_record(self):
        """Test that a CT-e yields one record"""
        tree = load(cte_proc_xml())
        records = parse_cte(tree.find('CTe'), "cte.xml", ParserConfig(empresa_cnpjs=[SHIPPER_CNPJ]))
        self.assertEqual(len(records), 1)

        record = records[0]
        self.assertEqual(record.tipo, DocumentType.CTE)
        self.assertEqual(record.chave_acesso, CTE_KEY)
        self.assertEqual(record.cte, "456")
        self.assertEqual(record.data, "01/06/2023")
        self.assertEqual(record.transportadora, "Transportadora Exemplo Ltda")
        self.assertEqual(record.empresa_xml, "Transportadora Exemplo Ltda")
        self.assertEqual(record.cliente, "Cliente Destino Ltda")
        self.assertEqual(record.uf, "RJ")
        self.assertEqual(record.danfe, "")

        extras = record.extras
        self.assertEqual(extras.tipo_operacao, OperationType.ENTRADA)
        self.assertEqual(extras.fornecedor_cliente, "Transportadora Exemplo Ltda")
        self.assertEqual(extras.numero_cte, "456")
        self.assertEqual(extras.valor_total, 1500.0)
        self.assertEqual(extras.valor_icms, 180.0)
        self.assertEqual(extras.aliquota_icms, 12.0)
        self.assertTrue(extras.verified_icms)
        self.assertEqual(extras.nfe_referenciada, "123")
        self.assertEqual(extras.chave_referenciada, NFE_KEY)
        self.assertEqual(extras.situacao, Situacao.ATIVA)

    def test_shipper_used_without_recipient(self):
        """Test the shipper as fallback counterpart"""
        records = parse_cte(load(cte_body(with_dest=False)), "cte.xml", ParserConfig())
        self.assertEqual(records[0].cliente, "Metalurgica Origem SA")
        self.assertEqual(records[0].uf, "PR")


class TestCancellation(unittest.TestCase):
    """Test cancellation records"""

    def test_cancellation_record(self):
        """Test the record built from a cancellation result"""
        record = build_cancellation_record(load(cancellation_xml()))
        self.assertEqual(record.chave_acesso, NFE_KEY)
        self.assertEqual(record.extras.situacao, Situacao.CANCELADA)
        self.assertTrue(record.extras.is_cancellation_file)
        self.assertEqual(record.produto, "")


class TestProducts(unittest.TestCase):
    """Test item and reference extraction"""

    def test_items_without_description_are_skipped(self):
        """Test that items without description are skipped"""
        doc = etree.fromstring(
            "<infNFe>"
            "<det><prod><xProd>A</xProd><qCom>2</qCom><vUnCom>3.5</vUnCom></prod></det>"
            "<det><prod><xProd></xProd><qCom>1</qCom></prod></det>"
            "<det><imposto/></det>"
            "<det><prod><xProd>A</xProd><qCom>4</qCom><vUnCom>3.5</vUnCom></prod></det>"
            "</infNFe>"
        )
        produtos = extract_products(doc)
        self.assertEqual([(p.descricao, p.quantidade) for p in produtos], [("A", 2.0), ("A", 4.0)])
        self.assertEqual(produtos[0].aliquota_ipi, 0.0)

    def test_first_reference_wins(self):
        """Test that the first reference is used"""
        ide = etree.fromstring(
            f"<ide><NFref><refNFe>{NFE_KEY}</refNFe></NFref>"
            f"<NFref><refCTe>{REF_CTE_KEY}</refCTe></NFref></ide>"
        )
        refs = extract_referenced_nfe(ide)
        self.assertEqual(refs.nfe_referenciada, "123")
        self.assertEqual(refs.cte_referenciado, "")
        self.assertEqual(refs.chave_referenciada, NFE_KEY)

    def test_no_reference(self):
        """Test documents without references"""
        self.assertEqual(extract_referenced_nfe(None).chave_referenciada, "")
        self.assertEqual(extract_referenced_cte(etree.fromstring("<CTe/>")).nfe_referenciada, "")


if __name__ == '__main__':
    unittest.main()
