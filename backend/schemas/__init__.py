"""Pydantic API Schemas for the PAR Brink bridge."""

from backend.schemas.report import (
    AllLocationsRequest,
    DashboardData,
    Envelope,
    ReportRequest,
)

__all__ = [
    "AllLocationsRequest",
    "DashboardData",
    "Envelope",
    "ReportRequest",
]
