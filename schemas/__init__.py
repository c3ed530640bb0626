from schemas.application import (
    ApplicationCreate,
    DisbursementResult,
    DisburseRequest,
    DocumentRequest,
    StatusUpdate,
    TransitionResult,
)
from schemas.commission import CommissionPayRequest, CommissionSummary, PaymentResult
from schemas.document import DocumentAttach, DocumentReadiness, DocumentVerify, VerificationResult
from schemas.marketplace import (
    ApprovalResult,
    DistributeRequest,
    DistributionBatchResult,
    OfferCreate,
    SelectOfferRequest,
)
from schemas.party import BankCreate, BankStatusUpdate, CustomerCreate

__all__ = [
    "ApplicationCreate",
    "ApprovalResult",
    "BankCreate",
    "BankStatusUpdate",
    "CommissionPayRequest",
    "CommissionSummary",
    "CustomerCreate",
    "DisbursementResult",
    "DisburseRequest",
    "DistributeRequest",
    "DistributionBatchResult",
    "DocumentAttach",
    "DocumentReadiness",
    "DocumentRequest",
    "DocumentVerify",
    "OfferCreate",
    "PaymentResult",
    "SelectOfferRequest",
    "StatusUpdate",
    "TransitionResult",
    "VerificationResult",
]
