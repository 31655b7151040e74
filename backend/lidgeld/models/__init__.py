from lidgeld.models.period import PaymentTerm, Period
from lidgeld.models.fee import Fee, FeeStatus, PaymentMethod
from lidgeld.models.member import Member, MemberCategory
from lidgeld.models.transaction import BankFileType, TransactionType

__all__ = [
    "PaymentTerm",
    "Period",
    "Fee",
    "FeeStatus",
    "PaymentMethod",
    "Member",
    "MemberCategory",
    "BankFileType",
    "TransactionType",
]
