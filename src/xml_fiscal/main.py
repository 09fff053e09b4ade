"""
Main entry point for the XML Fiscal Extractor command line.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional
from loguru import logger

from xml_fiscal.models import BatchProcessingResult, EnvironmentSettings, ParserConfig, ReportSummary, Settings
from xml_fiscal.core import ProcessingOrchestrator
from xml_fiscal.core.numeric import format_currency, format_percent
from xml_fiscal.utils import ExcelReporter


def setup_logging(log_level: str = "INFO", logs_dir: Path = Path("logs")):
    """Configure logging"""
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
    )

    logs_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        str(logs_dir / "app_{time:YYYY-MM-DD}.log"),
        rotation="1 day",
        retention="7 days",
        level=log_level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}"
    )


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="xml-fiscal",
        description="Extract NF-e / CT-e XML files into a products spreadsheet",
    )
    parser.add_argument(
        "files",
        nargs="+",
        type=Path,
        help="XML files or ZIP archives containing XMLs",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory for the Excel report (default: OUTPUT_DIR or ./output)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Directory holding settings.toml (default: CONFIG_DIR or ./config)",
    )
    parser.add_argument(
        "--empresa-cnpj",
        action="append",
        default=[],
        metavar="CNPJ",
        help="CNPJ of the company running the import; repeat for several",
    )
    parser.add_argument(
        "--prefix",
        help="Report file name prefix",
    )
    return parser


def print_summary(batch: BatchProcessingResult, summary: ReportSummary):
    """Print batch figures and per-file errors"""
    print("=" * 60)
    print(f"Arquivos processados: {batch.successful}/{batch.total_files} ({format_percent(batch.success_rate)})")
    print(f"Notas únicas: {summary.notas_unicas}")
    print(f"Linhas de produtos: {summary.total_linhas} "
          f"(NF-e: {summary.total_nfe}, CT-e: {summary.total_cte})")
    print(f"Peso total: {summary.peso_total:.2f}")
    print(f"Valor total de venda: {format_currency(summary.valor_total_venda)}")

    if batch.duplicates:
        print(f"Linhas duplicadas ignoradas: {len(batch.duplicates)}")

    if batch.errors:
        print("-" * 60)
        print("Erros:")
        for error in batch.errors:
            print(f"  {error.filename}: {error.error_message}")
    print("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """Entrypoint for running a batch from the command line."""
    args = build_parser().parse_args(argv)

    env_settings = EnvironmentSettings()
    setup_logging(env_settings.log_level)
    logger.info("Starting XML Fiscal Extractor")

    config_dir = args.config or Path(env_settings.config_dir)
    settings = Settings.load_from_toml(config_dir / "settings.toml")
    if args.empresa_cnpj:
        parser_data = settings.parser.model_dump()
        parser_data["empresa_cnpjs"] = parser_data["empresa_cnpjs"] + args.empresa_cnpj
        settings.parser = ParserConfig(**parser_data)

    if not settings.parser.empresa_cnpjs:
        logger.warning("No company CNPJ configured, operation direction will be inferred")

    output_dir = args.output_dir or Path(env_settings.output_dir)

    orchestrator = ProcessingOrchestrator(
        config=settings.parser,
        skip_event_files=settings.processing.skip_event_files,
        accepted_extensions=settings.processing.accepted_extensions,
    )
    batch = orchestrator.process_files(args.files)

    summary = ReportSummary.from_records(batch.records)
    print_summary(batch, summary)

    if not batch.records:
        logger.error("No records extracted, report not generated")
        return 1

    reporter = ExcelReporter(output_dir=output_dir, config=settings.export)
    output_file = reporter.generate_report(batch.records, file_prefix=args.prefix)
    print(f"Relatório gerado: {output_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
