"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.investment import Investment, InvestmentStatus, InvestmentType
from ledger_kernel.models.loan import LOAN_INTEREST_RATES, Loan, LoanStatus, LoanType
from ledger_kernel.models.transaction import Transaction, TransactionKind

__all__ = [
    "Account",
    "AccountType",
    "Investment",
    "InvestmentStatus",
    "InvestmentType",
    "Loan",
    "LoanStatus",
    "LoanType",
    "LOAN_INTEREST_RATES",
    "Transaction",
    "TransactionKind",
]
