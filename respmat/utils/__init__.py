from .logging_utils import setup_logging, log_run_banner
from .config import SolverConfig, ResponseConfig, SIDES
