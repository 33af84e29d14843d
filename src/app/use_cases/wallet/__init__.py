"""Wallet use cases"""
from .get_balance import GetBalance
from .initiate_topup import InitiateTopUp
from .deduct_tokens import DeductTokens
from .list_transactions import ListTransactions
from .transaction_summary import TransactionSummary
from .reconcile_ledger import ReconcileLedger
from .dtos import (
    BalanceResponseDTO,
    TopUpCommandDTO,
    TopUpResponseDTO,
    DeductCommandDTO,
    DeductResponseDTO,
    ListTransactionsQueryDTO,
    TransactionDTO,
    PaginationDTO,
    ListTransactionsResponseDTO,
    SummaryBucketDTO,
    TransactionSummaryResponseDTO,
    LedgerDiscrepancyDTO,
    FlaggedTransactionDTO,
    ReconciliationResultDTO,
)

__all__ = [
    "GetBalance",
    "InitiateTopUp",
    "DeductTokens",
    "ListTransactions",
    "TransactionSummary",
    "ReconcileLedger",
    "BalanceResponseDTO",
    "TopUpCommandDTO",
    "TopUpResponseDTO",
    "DeductCommandDTO",
    "DeductResponseDTO",
    "ListTransactionsQueryDTO",
    "TransactionDTO",
    "PaginationDTO",
    "ListTransactionsResponseDTO",
    "SummaryBucketDTO",
    "TransactionSummaryResponseDTO",
    "LedgerDiscrepancyDTO",
    "FlaggedTransactionDTO",
    "ReconciliationResultDTO",
]
