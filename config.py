"""
============================================================================
BOX OFFICE SQL - Configuration Manager
============================================================================
This module loads and validates all configuration from .env file.
Provides type-safe access to settings throughout the pipeline.

🔧 USAGE:
    from config import config

    # Access settings with autocomplete and type checking
    csv_path = config.paths.movies_file
    table = config.pipeline.table_name
    url = config.database.database_url

🔧 CUSTOMIZE:
    - Add new settings in the appropriate Config class section
    - Update validation logic in validators as needed
    - Modify default values to match your data layout

📝 FEATURES:
    - Automatic .env loading
    - Type validation with Pydantic
    - Helpful error messages for missing/invalid settings
    - Organized by functional area
============================================================================
"""

import logging
import os
import re
import sys
from pathlib import Path
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from dotenv import load_dotenv


# ============================================================================
# FIND AND LOAD .env FILE
# ============================================================================
# This searches for .env file starting from current directory up to project root

def find_dotenv() -> Optional[Path]:
    """
    Find .env file by searching up the directory tree.

    Returns:
        Path to .env file if found, None otherwise
    """
    current = Path.cwd()

    # Search up to 5 levels up
    for _ in range(5):
        env_file = current / ".env"
        if env_file.exists():
            return env_file

        # Stop at root directory
        if current.parent == current:
            break

        current = current.parent

    return None


# Load environment variables
env_path = find_dotenv()
if env_path:
    load_dotenv(env_path)
    print(f"✅ Loaded environment from: {env_path}")
else:
    print("⚠️  No .env file found. Using environment variables or defaults.")


# ============================================================================
# DATABASE CONFIGURATION
# ============================================================================
# Settings for the embedded SQL store

class DatabaseConfig(BaseModel):
    """
    Database connection configuration.

    🔧 CUSTOMIZE: Point DATABASE_URL at another SQLite file
    """

    database_url: str = Field(
        default="sqlite:///data/movies.sqlite",
        description="Database connection URL"
    )

    echo: bool = Field(
        default=False,
        description="Echo SQL queries (useful for debugging)"
    )

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite."""
        return self.database_url.startswith('sqlite')

    @property
    def database_path(self) -> Optional[Path]:
        """Get database file path for SQLite (None for in-memory databases)."""
        if self.is_sqlite:
            # Extract path from sqlite:///path/to/db.sqlite
            path_str = self.database_url.replace('sqlite:///', '', 1)
            if path_str and path_str != self.database_url and path_str != ':memory:':
                return Path(path_str)
        return None

    model_config = ConfigDict(extra='ignore')


# ============================================================================
# PATHS CONFIGURATION
# ============================================================================
# File and directory paths for data, logs, reports

class PathsConfig(BaseModel):
    """
    Project directory structure and file paths.

    🔧 CUSTOMIZE: Adjust paths to match your preferred structure
    """

    # Base directories
    data_dir: Path = Field(
        default=Path("./data"),
        description="Main data directory"
    )
    raw_data_dir: Path = Field(
        default=Path("./data/raw"),
        description="Raw input data (movie_data.csv)"
    )
    reports_dir: Path = Field(
        default=Path("./data/reports"),
        description="Analysis reports and charts"
    )
    logs_dir: Path = Field(
        default=Path("./data/logs"),
        description="Application logs"
    )

    # Input files
    movies_file: Path = Field(
        default=Path("./data/raw/movie_data.csv"),
        description="Source CSV of movie records"
    )

    @model_validator(mode='after')
    def create_directories(self) -> 'PathsConfig':
        """Create directories if they don't exist."""
        directories = [
            self.data_dir,
            self.raw_data_dir,
            self.reports_dir,
            self.logs_dir,
        ]

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

        return self

    model_config = ConfigDict(extra='ignore')


# ============================================================================
# PIPELINE CONFIGURATION
# ============================================================================
# Table names and normalization policy

_IDENTIFIER_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


class PipelineConfig(BaseModel):
    """
    Settings for the load -> normalize -> write -> reclassify run.

    🔧 IMPORTANT: parse_failure_policy decides what happens to a date or
    currency field that cannot be parsed:
        - coerce: keep the record, store NULL, log a warning
        - reject: stop the run on the first malformed field
    """

    table_name: str = Field(
        default="movies",
        description="Canonical table holding the classified movies"
    )
    staging_table_name: str = Field(
        default="new_movies",
        description="Temporary table used while reclassifying"
    )
    parse_failure_policy: str = Field(
        default="coerce",
        description="coerce or reject"
    )
    batch_size: int = Field(
        default=1000,
        ge=1,
        le=100000,
        description="Rows per INSERT batch"
    )
    top_n_genres: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Genres shown in the revenue-by-genre chart"
    )

    @field_validator('table_name', 'staging_table_name')
    @classmethod
    def validate_identifier(cls, v: str, info) -> str:
        """Table names end up in SQL text, so only plain identifiers are allowed."""
        if not _IDENTIFIER_RE.match(v):
            raise ValueError(f"{info.field_name} must be a plain SQL identifier, got '{v}'")
        return v

    @field_validator('parse_failure_policy')
    @classmethod
    def validate_policy(cls, v: str) -> str:
        """Validate parse failure policy is supported."""
        allowed = ['coerce', 'reject']
        if v.lower() not in allowed:
            raise ValueError(f"parse_failure_policy must be one of {allowed}, got '{v}'")
        return v.lower()

    @model_validator(mode='after')
    def validate_distinct_tables(self) -> 'PipelineConfig':
        """The staging table is dropped during the swap; it can't be the canonical one."""
        if self.table_name.lower() == self.staging_table_name.lower():
            raise ValueError(
                f"staging_table_name must differ from table_name ('{self.table_name}')"
            )
        return self

    model_config = ConfigDict(extra='ignore')


# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================
# Settings for application logging

class LoggingConfig(BaseModel):
    """
    Logging configuration.

    🔧 CUSTOMIZE: Adjust log levels and formats
    """

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )
    log_file: Path = Field(
        default=Path("./data/logs/box_office.log"),
        description="Log file path"
    )

    # Console logging
    console_output: bool = Field(
        default=True,
        description="Print logs to console"
    )

    # Log format
    log_format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        description="Log message format"
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        allowed = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got '{v}'")
        return v_upper

    model_config = ConfigDict(extra='ignore')


def setup_logging(log_config: LoggingConfig) -> None:
    """
    Configure the root logger from LoggingConfig.

    Writes to log_file and, when console_output is on, to stderr.
    Safe to call more than once: existing handlers are replaced.
    """
    handlers = []

    log_config.log_file.parent.mkdir(parents=True, exist_ok=True)
    handlers.append(logging.FileHandler(log_config.log_file, encoding='utf-8'))

    if log_config.console_output:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=getattr(logging, log_config.log_level, logging.INFO),
        format=log_config.log_format,
        datefmt=log_config.date_format,
        handlers=handlers,
        force=True,
    )


# ============================================================================
# MAIN CONFIGURATION
# ============================================================================
# Central configuration object combining all settings

class Config(BaseModel):
    """
    Main configuration class combining all settings.

    🔧 USAGE:
        from config import config

        # Access nested settings
        csv_path = config.paths.movies_file
        policy = config.pipeline.parse_failure_policy
    """

    # Configuration sections
    database: DatabaseConfig
    paths: PathsConfig
    pipeline: PipelineConfig
    logging: LoggingConfig

    # Environment
    environment: str = Field(
        default="development",
        description="Environment: development, production, testing"
    )

    # Project metadata
    project_name: str = Field(
        default="Box Office SQL",
        description="Project name"
    )
    version: str = Field(
        default="0.1.0",
        description="Project version"
    )

    def print_summary(self):
        """
        Print configuration summary.

        🔧 USAGE: Call this to verify your configuration loaded correctly
            from config import config
            config.print_summary()
        """
        print("\n" + "="*70)
        print(f"🎬 {self.project_name} v{self.version} - Configuration Summary")
        print("="*70)

        print(f"\n📍 Environment: {self.environment.upper()}")
        print(f"📂 Data Directory: {self.paths.data_dir.absolute()}")
        print(f"📊 Movies File: {self.paths.movies_file.absolute()}")

        print("\n💾 Database:")
        print(f"  • URL: {self.database.database_url}")
        print(f"  • Table: {self.pipeline.table_name} (staging: {self.pipeline.staging_table_name})")

        print("\n⚡ Processing:")
        print(f"  • Parse failures: {self.pipeline.parse_failure_policy.upper()}")
        print(f"  • Batch Size: {self.pipeline.batch_size}")
        print(f"  • Top genres in report: {self.pipeline.top_n_genres}")

        print("\n📝 Logging:")
        print(f"  • Level: {self.logging.log_level}")
        print(f"  • File: {self.logging.log_file.absolute()}")

        print("\n" + "="*70 + "\n")

    model_config = ConfigDict(extra='ignore')


# ============================================================================
# LOAD CONFIGURATION
# ============================================================================
# Load settings from environment variables

def load_config() -> Config:
    """
    Load configuration from environment variables.

    Returns:
        Configured Config object

    Exits the process with status 1 if a value is invalid.
    """

    def get_env(key: str, default: Any = None) -> Any:
        """Get environment variable with fallback."""
        return os.getenv(key, default)

    try:
        config_obj = Config(
            database=DatabaseConfig(
                database_url=get_env('DATABASE_URL', 'sqlite:///data/movies.sqlite'),
                echo=get_env('DATABASE_ECHO', 'False').lower() == 'true',
            ),
            paths=PathsConfig(
                data_dir=Path(get_env('DATA_DIR', './data')),
                raw_data_dir=Path(get_env('RAW_DATA_DIR', './data/raw')),
                reports_dir=Path(get_env('REPORTS_DIR', './data/reports')),
                logs_dir=Path(get_env('LOGS_DIR', './data/logs')),
                movies_file=Path(get_env('MOVIES_FILE', './data/raw/movie_data.csv')),
            ),
            pipeline=PipelineConfig(
                table_name=get_env('MOVIES_TABLE', 'movies'),
                staging_table_name=get_env('STAGING_TABLE', 'new_movies'),
                parse_failure_policy=get_env('PARSE_FAILURE_POLICY', 'coerce'),
                batch_size=int(get_env('BATCH_SIZE', 1000)),
                top_n_genres=int(get_env('TOP_N_GENRES', 5)),
            ),
            logging=LoggingConfig(
                log_level=get_env('LOG_LEVEL', 'INFO'),
                log_file=Path(get_env('LOG_FILE', './data/logs/box_office.log')),
                console_output=get_env('LOG_CONSOLE', 'True').lower() == 'true',
            ),
            environment=get_env('ENVIRONMENT', 'development'),
        )

        return config_obj

    except Exception as e:
        print(f"❌ Error loading configuration: {e}")
        print("Please check your .env file and ensure all values are valid.")
        sys.exit(1)


# ============================================================================
# GLOBAL CONFIG INSTANCE
# ============================================================================
# Single configuration instance used throughout the application

# Load configuration on module import
config = load_config()

# Print summary if running as main script
if __name__ == "__main__":
    config.print_summary()
