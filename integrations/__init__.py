"""
PAR Brink Bridge External Integrations

Connectors for the POS and the time service.
"""

from integrations.base import (
    BrinkProtocolError,
    BrinkUnavailableError,
    Employee,
    Order,
    POSIntegration,
    Shift,
    UpstreamError,
)

__all__ = [
    "BrinkProtocolError",
    "BrinkUnavailableError",
    "Employee",
    "Order",
    "POSIntegration",
    "Shift",
    "UpstreamError",
]
