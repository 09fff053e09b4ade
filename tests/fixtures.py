"""
Inline XML documents shared by the test modules.
"""
from typing import List, NamedTuple, Optional

NFE_KEY = "35230512345678000164550010000001234567890123"
CTE_KEY = "35230698765432000110570010000004561234567890"
REF_CTE_KEY = "35230598765432000110570010000007891234567890"

OWN_CNPJ = "12345678000164"
CLIENT_CNPJ = "98765432000110"
CARRIER_CNPJ = "11222333000144"
SHIPPER_CNPJ = "55666777000188"


class Item(NamedTuple):
    descricao: str
    quantidade: float
    valor_unitario: float
    aliquota_ipi: float = 0.0
    aliquota_icms: float = 18.0


BOBINA = Item("Bobina de Aco", 1000.5, 8.50, 3.25)
CHAPA = Item("Chapa Galvanizada", 200.0, 12.00)


def det_xml(number: int, item: Item) -> str:
    v_prod = item.quantidade * item.valor_unitario
    if item.aliquota_ipi:
        ipi = (f"<IPI><cEnq>999</cEnq><IPITrib><CST>50</CST><vBC>{v_prod:.2f}</vBC>"
               f"<pIPI>{item.aliquota_ipi:.2f}</pIPI><vIPI>{v_prod * item.aliquota_ipi / 100:.2f}</vIPI>"
               f"</IPITrib></IPI>")
    else:
        ipi = "<IPI><cEnq>999</cEnq><IPINT><CST>53</CST></IPINT></IPI>"

    return (
        f'<det nItem="{number}">'
        f"<prod><cProd>{number:03d}</cProd><xProd>{item.descricao}</xProd><NCM>72104910</NCM>"
        f"<CFOP>5101</CFOP><uCom>KG</uCom><qCom>{item.quantidade:.4f}</qCom>"
        f"<vUnCom>{item.valor_unitario:.10f}</vUnCom><vProd>{v_prod:.2f}</vProd></prod>"
        f"<imposto>"
        f"<ICMS><ICMS00><orig>0</orig><CST>00</CST><modBC>3</modBC><vBC>{v_prod:.2f}</vBC>"
        f"<pICMS>{item.aliquota_icms:.2f}</pICMS><vICMS>{v_prod * item.aliquota_icms / 100:.2f}</vICMS></ICMS00></ICMS>"
        f"{ipi}"
        f"<PIS><PISAliq><CST>01</CST><vBC>{v_prod:.2f}</vBC><pPIS>1.65</pPIS>"
        f"<vPIS>{v_prod * 0.0165:.2f}</vPIS></PISAliq></PIS>"
        f"<COFINS><COFINSAliq><CST>01</CST><vBC>{v_prod:.2f}</vBC><pCOFINS>7.60</pCOFINS>"
        f"<vCOFINS>{v_prod * 0.076:.2f}</vCOFINS></COFINSAliq></COFINS>"
        f"</imposto>"
        f"</det>"
    )


def nfe_body(items: List[Item] = (BOBINA, CHAPA),
             emit_cnpj: str = OWN_CNPJ,
             emit_name: str = "Metalurgica Exemplo Ltda",
             dest_cnpj: str = CLIENT_CNPJ,
             dest_name: str = "Cliente Industrial SA",
             tp_nf: Optional[str] = "1",
             ref_cte: Optional[str] = None,
             key: str = NFE_KEY) -> str:
    """The signed NFe element without envelope"""
    tp_nf_xml = f"<tpNF>{tp_nf}</tpNF>" if tp_nf is not None else ""
    nfref = f"<NFref><refCTe>{ref_cte}</refCTe></NFref>" if ref_cte else ""
    dets = "".join(det_xml(i, item) for i, item in enumerate(items, start=1))
    v_nf = sum(item.quantidade * item.valor_unitario * (1 + item.aliquota_ipi / 100) for item in items)

    return (
        '<NFe xmlns="http://www.portalfiscal.inf.br/nfe">'
        f'<infNFe Id="NFe{key}" versao="4.00">'
        f"<ide><cUF>35</cUF><natOp>VENDA</natOp><mod>55</mod><serie>1</serie><nNF>123</nNF>"
        f"<dhEmi>2023-05-10T10:00:00-03:00</dhEmi>{tp_nf_xml}{nfref}</ide>"
        f"<emit><CNPJ>{emit_cnpj}</CNPJ><xNome>{emit_name}</xNome><enderEmit><UF>SP</UF></enderEmit></emit>"
        f"<dest><CNPJ>{dest_cnpj}</CNPJ><xNome>{dest_name}</xNome><enderDest><UF>MG</UF></enderDest></dest>"
        f"{dets}"
        f"<total><ICMSTot><vBC>0.00</vBC><vNF>{v_nf:.2f}</vNF></ICMSTot></total>"
        "<transp><modFrete>0</modFrete><transporta><CNPJ>11222333000144</CNPJ>"
        "<xNome>Transportes Rapido Ltda</xNome></transporta></transp>"
        "</infNFe>"
        "</NFe>"
    )


def prot_xml(tag: str, key: str, c_stat: str = "100", motivo: str = "Autorizado o uso da NF-e") -> str:
    return (
        f'<{tag} versao="4.00"><infProt><tpAmb>1</tpAmb><chNFe>{key}</chNFe>'
        f"<dhRecbto>2023-05-12T09:30:00-03:00</dhRecbto><nProt>135230000000001</nProt>"
        f"<cStat>{c_stat}</cStat><xMotivo>{motivo}</xMotivo></infProt></{tag}>"
    )


def nfe_proc_xml(c_stat: str = "100", motivo: str = "Autorizado o uso da NF-e", **kwargs) -> str:
    """Authorized NF-e inside nfeProc, as delivered by SEFAZ"""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<nfeProc xmlns="http://www.portalfiscal.inf.br/nfe" versao="4.00">'
        f"{nfe_body(**kwargs)}"
        f"{prot_xml('protNFe', kwargs.get('key', NFE_KEY), c_stat, motivo)}"
        "</nfeProc>"
    )


def cte_body(carrier_cnpj: str = CARRIER_CNPJ,
             shipper_cnpj: str = SHIPPER_CNPJ,
             tp_cte: str = "0",
             with_dest: bool = True,
             nfe_key: str = NFE_KEY) -> str:
    dest = (
        f"<dest><CNPJ>{CLIENT_CNPJ}</CNPJ><xNome>Cliente Destino Ltda</xNome>"
        f"<enderDest><UF>RJ</UF></enderDest></dest>"
    ) if with_dest else ""

    return (
        '<CTe xmlns="http://www.portalfiscal.inf.br/cte">'
        f'<infCte Id="CTe{CTE_KEY}" versao="4.00">'
        f"<ide><cUF>35</cUF><serie>1</serie><nCT>456</nCT>"
        f"<dhEmi>2023-06-01T08:00:00-03:00</dhEmi><tpCTe>{tp_cte}</tpCTe></ide>"
        f"<emit><CNPJ>{carrier_cnpj}</CNPJ><xNome>Transportadora Exemplo Ltda</xNome>"
        f"<enderEmit><UF>SP</UF></enderEmit></emit>"
        f"<rem><CNPJ>{shipper_cnpj}</CNPJ><xNome>Metalurgica Origem SA</xNome>"
        f"<enderReme><UF>PR</UF></enderReme></rem>"
        f"{dest}"
        "<vPrest><vTPrest>1500.00</vTPrest><vRec>1500.00</vRec></vPrest>"
        "<imp><ICMS><ICMS00><CST>00</CST><vBC>1500.00</vBC><pICMS>12.00</pICMS>"
        "<vICMS>180.00</vICMS></ICMS00></ICMS></imp>"
        "<infCTeNorm><infCarga><vCarga>50000.00</vCarga><proPred>Bobinas de aco</proPred></infCarga>"
        f"<infDoc><infNFe><chave>{nfe_key}</chave></infNFe></infDoc></infCTeNorm>"
        "</infCte>"
        "</CTe>"
    )


def cte_proc_xml(c_stat: str = "100", **kwargs) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<cteProc xmlns="http://www.portalfiscal.inf.br/cte" versao="4.00">'
        f"{cte_body(**kwargs)}"
        f"{prot_xml('protCTe', CTE_KEY, c_stat, 'Autorizado o uso do CT-e')}"
        "</cteProc>"
    )


def event_xml() -> str:
    """Cancellation event wrapping the original invoice"""
    return (
        '<procEventoNFe xmlns="http://www.portalfiscal.inf.br/nfe" versao="1.00">'
        f'<evento versao="1.00"><infEvento Id="ID110111{NFE_KEY}01"><chNFe>{NFE_KEY}</chNFe>'
        "<tpEvento>110111</tpEvento><detEvento><descEvento>Cancelamento</descEvento></detEvento>"
        "</infEvento></evento>"
        f"{nfe_body()}"
        "</procEventoNFe>"
    )


def cancellation_xml(key: str = NFE_KEY) -> str:
    return (
        '<retCancNFe xmlns="http://www.portalfiscal.inf.br/nfe" versao="2.00">'
        f"<infCanc><tpAmb>1</tpAmb><cStat>101</cStat><xMotivo>Cancelamento homologado</xMotivo>"
        f"<chNFe>{key}</chNFe></infCanc>"
        "</retCancNFe>"
    )
