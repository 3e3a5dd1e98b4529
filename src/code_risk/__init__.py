"""Repository risk profiler: security findings, code structure and bus factor."""

__version__ = "0.1.0"

# Import main components
from .config import Config
from .logging import get_logger
from .service import RiskProfiler

__all__ = [
    "Config",
    "RiskProfiler",
    "get_logger",
]
