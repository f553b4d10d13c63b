from token_audit.models.burn import BurnEvent, BurnMethod, BurnSummary, LPMintEvent, SinkHolding
from token_audit.models.pool import LPPool
from token_audit.models.report import (
    AuditFailure,
    AuditStage,
    HolderStats,
    RiskAssessment,
    RiskCategory,
    RiskReport,
    TopHolder,
)
from token_audit.models.token import TokenDescriptor

__all__ = [
    "TokenDescriptor",
    "LPPool",
    "BurnMethod",
    "BurnEvent",
    "BurnSummary",
    "SinkHolding",
    "LPMintEvent",
    "HolderStats",
    "TopHolder",
    "RiskCategory",
    "RiskAssessment",
    "AuditStage",
    "RiskReport",
    "AuditFailure",
]
