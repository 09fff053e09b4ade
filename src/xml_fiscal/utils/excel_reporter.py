"""
Excel report generation utilities.
"""
from pathlib import Path
from typing import Any, Callable, Dict, List, NamedTuple, Optional
from datetime import datetime
import pandas as pd
from openpyxl import load_workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter
from loguru import logger

from xml_fiscal.models import ExportConfig, FiscalRecord, ReportSummary


CURRENCY_FORMAT = '[$R$-pt-BR] #,##0.00'
PERCENT_FORMAT = '0.00"%"'
INTEGER_FORMAT = '0'
TEXT_FORMAT = '@'


def _upper(value: str) -> str:
    return value.upper() if value else ''


def _optional(value: float) -> Any:
    """Manual numeric fields stay blank until someone fills them in"""
    return value if value else ''


def _as_number(value: str) -> Any:
    return int(value) if value and value.isdigit() else (value or '')


class ExportColumn(NamedTuple):
    """One column of the products sheet"""
    header: str
    value: Callable[[FiscalRecord], Any]
    width: int
    number_format: Optional[str] = None


EXPORT_COLUMNS: List[ExportColumn] = [
    ExportColumn('DATA', lambda r: r.data, 12),
    ExportColumn('EMPRESA', lambda r: _upper(r.empresa), 35),
    ExportColumn('VENDEDOR', lambda r: _upper(r.vendedor), 20),
    ExportColumn('REPRESENTANTE', lambda r: _upper(r.representante), 20),
    ExportColumn('SEGMENTO', lambda r: _upper(r.segmento), 15),
    ExportColumn('CTE', lambda r: _as_number(r.cte), 12, INTEGER_FORMAT),
    ExportColumn('TRANSPORTADORA', lambda r: _upper(r.transportadora), 35),
    ExportColumn('VALOR DO FRETE', lambda r: _optional(r.valor_frete), 15, CURRENCY_FORMAT),
    ExportColumn('CLIENTE', lambda r: _upper(r.cliente), 35),
    ExportColumn('UF', lambda r: _upper(r.uf), 6),
    ExportColumn('DANFE', lambda r: _as_number(r.danfe), 12, INTEGER_FORMAT),
    ExportColumn('MATRIZ/MC NF', lambda r: _upper(r.matriz_mc_nf), 20),
    ExportColumn('PRODUTO', lambda r: _upper(r.produto), 50),
    ExportColumn('TIPOMAT', lambda r: _upper(r.tipo_mat), 15),
    ExportColumn('FORNECEDOR', lambda r: _upper(r.fornecedor), 30),
    ExportColumn('LOTE', lambda r: _upper(r.lote), 15),
    ExportColumn('PESO', lambda r: r.peso, 12, 'General'),
    ExportColumn('$ KG - (COMPRA)', lambda r: _optional(r.valor_kg_compra), 15, CURRENCY_FORMAT),
    ExportColumn('$ KG - (COMPRA) S/IPI', lambda r: _optional(r.valor_kg_compra_sem_ipi), 18, CURRENCY_FORMAT),
    ExportColumn('R$ COMPRA', lambda r: _optional(r.valor_compra), 15, CURRENCY_FORMAT),
    ExportColumn('$ KG - (VENDA)', lambda r: r.valor_unitario, 15, CURRENCY_FORMAT),
    ExportColumn('$ KG VENDA - S/IPI', lambda r: r.valor_kg_venda_sem_ipi, 18, CURRENCY_FORMAT),
    ExportColumn('R$ - VENDA', lambda r: r.valor_venda, 15, CURRENCY_FORMAT),
    ExportColumn('CUSTO FRETE KG', lambda r: _optional(r.custo_frete_kg), 15, CURRENCY_FORMAT),
    ExportColumn('NOME', lambda r: _upper(r.nome), 25),
    ExportColumn('COM. REPRESENTANTE', lambda r: _optional(r.comissao_representante), 18, CURRENCY_FORMAT),
    ExportColumn('COMISSÃO VENDEDOR', lambda r: _optional(r.comissao_vendedor), 18, CURRENCY_FORMAT),
    ExportColumn('COMISSAO MATRIZ/MC NF', lambda r: '', 20, CURRENCY_FORMAT),
    ExportColumn('CMV', lambda r: _optional(r.cmv), 15, CURRENCY_FORMAT),
    ExportColumn('RESULTADO', lambda r: _optional(r.resultado), 15, CURRENCY_FORMAT),
    ExportColumn('MARGEM', lambda r: _optional(r.margem), 12, PERCENT_FORMAT),
    # Filled in by hand after export
    ExportColumn('TIPO', lambda r: '', 10, TEXT_FORMAT),
    ExportColumn('ESTADO', lambda r: '', 15, TEXT_FORMAT),
    ExportColumn('VENDA', lambda r: '', 15, TEXT_FORMAT),
    ExportColumn('LUCRO', lambda r: '', 15, TEXT_FORMAT),
    ExportColumn('EMPRESA (XML)', lambda r: _upper(r.empresa_xml), 35),
]

PRODUCTS_SHEET = 'Produtos'
SUMMARY_SHEET = 'Resumo'


class ExcelReporter:
    """Generates formatted Excel reports from fiscal records"""

    # Style definitions
    HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    HEADER_FONT = Font(bold=True, color="FFFFFF", size=11)
    BORDER_THIN = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    def __init__(self, output_dir: Path, config: Optional[ExportConfig] = None):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.config = config or ExportConfig()

    def generate_report(self, records: List[FiscalRecord], file_prefix: Optional[str] = None) -> Path:
        """
        Generate Excel report with two sheets:
        1. Produtos (one row per record, fixed column order)
        2. Resumo (totals of the exported rows)
        """
        if not records:
            raise ValueError("No records to generate report")

        prefix = file_prefix or self.config.file_prefix
        output_file = self.output_dir / f"{prefix}_{datetime.now().strftime('%Y-%m-%d')}.xlsx"

        df_products = self._create_products_dataframe(records)
        df_summary = self._create_summary_dataframe(ReportSummary.from_records(records))

        # Write to Excel
        with pd.ExcelWriter(output_file, engine='openpyxl') as writer:
            df_products.to_excel(writer, sheet_name=PRODUCTS_SHEET, index=False)
            df_summary.to_excel(writer, sheet_name=SUMMARY_SHEET, index=False)

        # Apply formatting
        self._apply_formatting(output_file)

        logger.info(f"Generated Excel report: {output_file} ({len(records)} rows)")
        return output_file

    def _create_products_dataframe(self, records: List[FiscalRecord]) -> pd.DataFrame:
        """Create DataFrame for the products sheet"""
        today = datetime.now().strftime("%d/%m/%Y")
        rows = []

        for record in records:
            row: Dict[str, Any] = {column.header: column.value(record) for column in EXPORT_COLUMNS}
            row['DATA'] = row['DATA'] or today
            rows.append(row)

        return pd.DataFrame(rows, columns=[column.header for column in EXPORT_COLUMNS])

    def _create_summary_dataframe(self, summary: ReportSummary) -> pd.DataFrame:
        """Create DataFrame for the summary sheet"""
        rows = [
            ('Total de Notas Processadas', summary.notas_unicas),
            ('Total de Linhas de Produtos', summary.total_linhas),
            ('Peso Total (kg)', summary.peso_total),
            ('Valor Total de Venda', summary.valor_total_venda),
            ('', ''),
            ('--- POR TIPO ---', ''),
            ('Notas Fiscais (NF-e)', summary.total_nfe),
            ('Conhecimentos de Transporte (CT-e)', summary.total_cte),
        ]
        return pd.DataFrame(rows, columns=['DESCRIÇÃO', 'VALOR'])

    def _style_header(self, ws):
        for cell in ws[1]:
            cell.font = self.HEADER_FONT
            cell.fill = self.HEADER_FILL
            cell.alignment = Alignment(horizontal='center', vertical='center')
            cell.border = self.BORDER_THIN

    def _keep_text_literal(self, ws):
        # Exported values never carry formulas; "=1+1" in xProd must stay text
        for row in ws.iter_rows(min_row=2):
            for cell in row:
                if cell.data_type == 'f':
                    cell.data_type = 's'

    def _finish_sheet(self, ws):
        if self.config.apply_filters:
            ws.auto_filter.ref = ws.dimensions

        if self.config.freeze_header_row:
            ws.freeze_panes = 'A2'

    def _apply_formatting(self, excel_file: Path):
        """Apply Excel formatting (headers, number formats, column widths)"""
        wb = load_workbook(excel_file)

        ws = wb[PRODUCTS_SHEET]
        self._style_header(ws)
        self._keep_text_literal(ws)
        for idx, column in enumerate(EXPORT_COLUMNS, start=1):
            column_letter = get_column_letter(idx)
            if self.config.auto_fit_columns:
                ws.column_dimensions[column_letter].width = column.width

            if not column.number_format:
                continue
            for cell in ws[column_letter][1:]:
                if cell.value is None or cell.value == '':
                    continue
                cell.number_format = column.number_format
                if column.number_format == INTEGER_FORMAT:
                    cell.alignment = Alignment(horizontal='center')
        self._finish_sheet(ws)

        ws = wb[SUMMARY_SHEET]
        self._style_header(ws)
        ws.column_dimensions['A'].width = 35
        ws.column_dimensions['B'].width = 20
        for cell in ws['B'][1:]:
            # Large figures are the monetary ones
            if isinstance(cell.value, (int, float)) and cell.value > 100:
                cell.number_format = CURRENCY_FORMAT
        self._finish_sheet(ws)

        wb.save(excel_file)
        logger.debug(f"Applied formatting to {excel_file}")
