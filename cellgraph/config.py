"""cellgraph configuration."""

import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field


class CellGraphConfig(BaseModel):
    """Configuration for graphs, execution and the command line.

    All settings can be overridden via environment variables
    with the CELLGRAPH_ prefix.
    """

    # Logging
    log_level: str = "INFO"
    log_format: str = "simple"  # "simple" or "detailed"

    # Cells
    default_decimal_precision: int = Field(default=2, ge=0, le=12)
    short_id_length: int = Field(default=2, ge=1, le=8)
    default_cell_width: float = 200.0
    default_cell_height: float = 100.0

    # Persistence
    manifest_version: str = "0.1.0"

    # Execution
    enable_code_cells: bool = True  # Wire PythonCodeEvaluator in the CLI
    max_output_length: int = 80  # Truncate outputs shown by the CLI

    @classmethod
    def from_env(cls) -> "CellGraphConfig":
        """Create config from environment variables (and a .env file if present)."""
        load_dotenv(find_dotenv(usecwd=True))
        return cls(
            log_level=os.getenv("CELLGRAPH_LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("CELLGRAPH_LOG_FORMAT", "simple"),
            default_decimal_precision=int(
                os.getenv("CELLGRAPH_DEFAULT_DECIMAL_PRECISION", "2")
            ),
            short_id_length=int(os.getenv("CELLGRAPH_SHORT_ID_LENGTH", "2")),
            default_cell_width=float(os.getenv("CELLGRAPH_DEFAULT_CELL_WIDTH", "200")),
            default_cell_height=float(
                os.getenv("CELLGRAPH_DEFAULT_CELL_HEIGHT", "100")
            ),
            manifest_version=os.getenv("CELLGRAPH_MANIFEST_VERSION", "0.1.0"),
            enable_code_cells=os.getenv("CELLGRAPH_ENABLE_CODE_CELLS", "true").lower()
            == "true",
            max_output_length=int(os.getenv("CELLGRAPH_MAX_OUTPUT_LENGTH", "80")),
        )


# Global config instance
_config: Optional[CellGraphConfig] = None


def get_config() -> CellGraphConfig:
    """Get the global cellgraph config instance."""
    global _config
    if _config is None:
        _config = CellGraphConfig.from_env()
    return _config


def set_config(config: Optional[CellGraphConfig]) -> None:
    """Set (or reset, with None) the global cellgraph config instance."""
    global _config
    _config = config
