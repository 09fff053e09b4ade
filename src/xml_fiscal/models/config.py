"""
Configuration models and loaders.
"""
import re
from typing import List
from pathlib import Path
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings
import tomli
from loguru import logger


class AppConfig(BaseModel):
    """Application configuration"""
    name: str = "Extrator XML Fiscal"
    version: str = "2.0.0"


class ProcessingConfig(BaseModel):
    """Processing configuration"""
    skip_event_files: bool = True
    accepted_extensions: List[str] = Field(default_factory=lambda: [".xml"])


class ParserConfig(BaseModel):
    """
    Values the parser needs about the company running it.

    Passed explicitly to the classifiers and parsers so different company
    identities can be used side by side.
    """
    empresa_cnpjs: List[str] = Field(default_factory=list)
    default_pis_rate: float = Field(1.65, ge=0)
    default_cofins_rate: float = Field(7.6, ge=0)
    default_ipi_rate: float = Field(3.25, ge=0)

    @field_validator('empresa_cnpjs')
    @classmethod
    def normalize_cnpjs(cls, v: List[str]) -> List[str]:
        """Keep only digits so formatted CNPJs match raw XML values"""
        cleaned = [re.sub(r'\D', '', cnpj) for cnpj in v]
        return [cnpj for cnpj in cleaned if cnpj]

    def is_own_cnpj(self, cnpj: str) -> bool:
        """Check whether a CNPJ/CPF belongs to the company"""
        if not cnpj:
            return False
        return re.sub(r'\D', '', cnpj) in self.empresa_cnpjs


class ExportConfig(BaseModel):
    """Excel export configuration"""
    file_prefix: str = "notas_produtos"
    auto_fit_columns: bool = True
    apply_filters: bool = True
    freeze_header_row: bool = True


class Settings(BaseModel):
    """Complete application settings"""
    app: AppConfig = Field(default_factory=AppConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    parser: ParserConfig = Field(default_factory=ParserConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)

    @classmethod
    def load_from_toml(cls, config_path: Path) -> "Settings":
        """Load settings from TOML file"""
        try:
            with open(config_path, "rb") as f:
                data = tomli.load(f)
            return cls(**data)
        except Exception as e:
            logger.warning(f"Failed to load config from {config_path}: {e}. Using defaults.")
            return cls()


class EnvironmentSettings(BaseSettings):
    """Environment variables"""
    log_level: str = "INFO"
    output_dir: str = "./output"
    config_dir: str = "./config"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}
