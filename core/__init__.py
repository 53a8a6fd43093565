"""Core module - ledger-neutral models, configuration and observability.

This module contains the canonical commerce records, the environment
configuration and the logging setup. It is intentionally ledger-agnostic.

Ledger-specific logic (Holded) belongs in /connectors/.
"""

__version__ = "1.0.0"
