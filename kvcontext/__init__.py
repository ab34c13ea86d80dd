"""
Process context for kvsample: environment, settings and logging.
"""

from kvcontext.config import Settings, WorkflowConfig
from kvcontext.envloader import EnvLoader
from kvcontext.logger import Logger, log_func

__all__ = ["Settings", "WorkflowConfig", "EnvLoader", "Logger", "log_func"]
