import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional

from loguru import logger

# Context variables voor quote en scenario IDs
quote_id_var: ContextVar[Optional[str]] = ContextVar("quote_id", default=None)
scenario_id_var: ContextVar[Optional[str]] = ContextVar("scenario_id", default=None)

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<blue>quote_id={extra[quote_id]}</blue> | <magenta>scenario_id={extra[scenario_id]}</magenta> | "
    "<level>{message}</level>"
)


def get_context_info() -> Dict[str, Any]:
    """Haal context informatie op voor logging"""
    return {
        "quote_id": quote_id_var.get(),
        "scenario_id": scenario_id_var.get(),
    }


def _inject_context(record: Dict[str, Any]) -> None:
    # patcher: runs per record, so the values are read at log time, not at import time
    for key, value in get_context_info().items():
        record["extra"].setdefault(key, value)


def setup_logging(level: str = "INFO", json: bool = False) -> None:
    """Configureer Loguru logging met context-aware formatting"""
    logger.remove()
    logger.configure(patcher=_inject_context)

    if json:
        logger.add(sys.stdout, level=level, serialize=True, backtrace=False, diagnose=False)
        return

    logger.add(
        sys.stdout,
        format=_FORMAT,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )


def get_logger(name: Optional[str] = None):
    """Krijg een logger met module naam; quote/scenario ids komen via de patcher."""
    if name:
        return logger.bind(component=name)
    return logger


class LoggingContext:
    """Context manager: zet quote/scenario ids voor de duur van één pipeline run."""

    def __init__(self, quote_id: Optional[str] = None, scenario_id: Optional[str] = None):
        self.quote_id = quote_id
        self.scenario_id = scenario_id
        self._tokens: list = []

    def __enter__(self):
        self._tokens = [
            (quote_id_var, quote_id_var.set(self.quote_id)),
            (scenario_id_var, scenario_id_var.set(self.scenario_id)),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []
