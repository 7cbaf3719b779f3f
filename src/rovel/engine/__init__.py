"""Rovel engine - lease core and record services."""

from rovel.engine.catalog import CatalogService
from rovel.engine.gate import AccessGate, GateDecision, GateOutcome
from rovel.engine.leases import LeaseManager, validate_lease_key
from rovel.engine.records import AdsConfigService, UploadService, UserService

__all__ = [
    "AccessGate",
    "AdsConfigService",
    "CatalogService",
    "GateDecision",
    "GateOutcome",
    "LeaseManager",
    "UploadService",
    "UserService",
    "validate_lease_key",
]
