from models.application import LoanApplication
from models.audit import SystemLog
from models.commission import CommissionPayment, CommissionRecord
from models.document import CustomerDocument
from models.marketplace import ApplicationDistribution, LoanOffer
from models.party import Bank, Banker, Connector, Customer, DocumentType, LoanCategory

__all__ = [
    "ApplicationDistribution",
    "Bank",
    "Banker",
    "CommissionPayment",
    "CommissionRecord",
    "Connector",
    "Customer",
    "CustomerDocument",
    "DocumentType",
    "LoanApplication",
    "LoanCategory",
    "LoanOffer",
    "SystemLog",
]
