"""
XML Fiscal Extractor - Launcher Script

This script configures the Python path and runs the command line without
installing the package.

Usage:
    python run.py notas/*.xml lote.zip --empresa-cnpj 12.345.678/0001-90
"""
import sys
from pathlib import Path

# Add src directory to Python path
project_root = Path(__file__).parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

from xml_fiscal.main import main


if __name__ == "__main__":
    sys.exit(main())
