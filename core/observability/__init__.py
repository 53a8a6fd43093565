"""
Observability Module for the ledger sync

Provides structured logging with correlation IDs (run, destination, phase,
source, sku, order) shared by the engine, the connectors and the sources.
"""

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    get_correlation_context,
    with_correlation,
)

__all__ = [
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "get_correlation_context",
    "with_correlation",
]
