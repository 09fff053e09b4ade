"""
Data models for normalized fiscal records (one row per product or per CT-e).
"""
import re
import uuid
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


ACCESS_KEY_LENGTH = 44


class DocumentType(str, Enum):
    """Type of fiscal document"""
    NFE = "NF-e"  # Nota Fiscal Eletrônica
    CTE = "CT-e"  # Conhecimento de Transporte Eletrônico


class Situacao(str, Enum):
    """Document status according to the SEFAZ protocol"""
    ATIVA = "Ativa"
    CANCELADA = "Cancelada"
    NEGADA = "Negada"
    REJEITADA = "Rejeitada"
    DESCONHECIDA = "Desconhecida"


class OperationType(str, Enum):
    """Direction of the operation from the company's point of view"""
    ENTRADA = "Entrada"
    SAIDA = "Saída"


class ProtocolInfo(BaseModel):
    """Authorization protocol metadata (infProt)"""
    c_stat: Optional[str] = None
    x_motivo: Optional[str] = None
    n_prot: Optional[str] = None


class TaxAggregation(BaseModel):
    """Per-document aggregation of a tax across all line items"""
    base: float = 0.0
    value: float = 0.0
    declared_pct_weighted: float = 0.0


class RecordExtras(BaseModel):
    """
    Extension fields kept alongside the exported columns.

    Every member is optional so each parser fills only what makes sense
    for its document type.
    """
    tipo_operacao: Optional[OperationType] = None
    numero: Optional[str] = None
    numero_cte: Optional[str] = None
    serie: Optional[str] = None
    data_emissao: Optional[str] = None
    fornecedor_cliente: Optional[str] = None
    cnpj_cpf: Optional[str] = None
    valor_total: Optional[float] = None
    base_calculo_icms: Optional[float] = None

    # PIS
    aliquota_pis: Optional[float] = None
    flag_pis: Optional[bool] = None
    valor_pis: Optional[float] = None

    # COFINS
    aliquota_cofins: Optional[float] = None
    flag_cofins: Optional[bool] = None
    valor_cofins: Optional[float] = None

    # IPI
    aliquota_ipi: Optional[float] = None
    flag_ipi: Optional[bool] = None
    valor_ipi: Optional[float] = None

    # ICMS
    aliquota_icms: Optional[float] = None
    flag_icms: Optional[bool] = None
    valor_icms: Optional[float] = None

    # DIFAL
    aliquota_difal: Optional[float] = None
    valor_difal: Optional[float] = None

    reducao_icms: Optional[float] = None
    nfe_referenciada: Optional[str] = None
    cte_referenciado: Optional[str] = None
    chave_referenciada: Optional[str] = None
    material: Optional[str] = None

    # Consistency checks of declared vs. computed tax values
    verified_pis: Optional[bool] = None
    verified_cofins: Optional[bool] = None
    verified_ipi: Optional[bool] = None
    verified_icms: Optional[bool] = None
    expected_pis: Optional[float] = None
    expected_cofins: Optional[float] = None
    expected_ipi: Optional[float] = None
    expected_icms: Optional[float] = None

    base_pis: Optional[float] = None
    base_cofins: Optional[float] = None
    base_ipi: Optional[float] = None
    declared_pis: Optional[float] = None
    declared_cofins: Optional[float] = None
    declared_ipi: Optional[float] = None

    # Metadata
    data_insercao: Optional[str] = None
    situacao: Optional[Situacao] = None
    situacao_info: Optional[ProtocolInfo] = None
    data_mudanca_situacao: Optional[str] = None
    is_cancellation_file: bool = False

    model_config = {"validate_assignment": True}


class FiscalRecord(BaseModel):
    """
    One output row.

    NF-e documents are exploded into one record per product line; CT-e
    documents always produce a single record. Fields marked (manual) are
    left empty by the parser and filled in by hand after export.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tipo: DocumentType = DocumentType.NFE
    chave_acesso: str = ""

    data: str = ""
    empresa: str = ""                   # (manual)
    vendedor: str = ""                  # (manual)
    representante: str = ""             # (manual)
    segmento: str = ""                  # (manual)
    cte: str = ""
    transportadora: str = ""
    valor_frete: float = 0.0            # (manual)
    cliente: str = ""
    uf: str = ""
    danfe: str = ""
    matriz_mc_nf: str = ""              # (manual)

    produto: str = ""
    tipo_mat: str = ""                  # (manual)
    fornecedor: str = ""                # (manual)
    lote: str = ""                      # (manual)
    peso: float = 0.0
    valor_kg_compra: float = 0.0        # (manual)
    valor_kg_compra_sem_ipi: float = 0.0  # (manual)
    valor_compra: float = 0.0           # (manual)
    valor_unitario: float = 0.0         # $ KG (VENDA), with IPI
    valor_kg_venda_sem_ipi: float = 0.0  # $ KG VENDA S/IPI, as declared
    valor_venda: float = 0.0            # (manual)
    custo_frete_kg: float = 0.0         # (manual)
    nome: str = ""                      # (manual)
    comissao_representante: float = 0.0  # (manual)
    comissao_vendedor: float = 0.0      # (manual)
    comissao_matriz: float = 0.0        # (manual)
    cmv: float = 0.0
    resultado: float = 0.0
    margem: float = 0.0
    estado: str = ""                    # (manual)
    venda: float = 0.0                  # (manual)
    lucro: float = 0.0                  # (manual)
    empresa_xml: str = ""

    extras: RecordExtras = Field(default_factory=RecordExtras)

    model_config = {"validate_assignment": True}

    @field_validator('chave_acesso')
    @classmethod
    def validate_chave_acesso(cls, v: Optional[str]) -> str:
        """Access key is either empty or exactly 44 digits"""
        if not v:
            return ""
        chave_clean = re.sub(r'\D', '', v)
        if len(chave_clean) == ACCESS_KEY_LENGTH:
            return chave_clean
        return ""

    @property
    def duplicate_key(self) -> str:
        """Identifier used to detect rows already imported"""
        return f"{self.chave_acesso}|{self.produto}|{self.peso}"
