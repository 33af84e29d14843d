"""ReconcileLedger Use Case

Reconciles wallet balances against successful transaction history and reports
transactions that need manual attention.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Optional
from libs.result import Result, Return, Error
from src.app.repositories.user_repository import UserRepository
from src.app.repositories.transaction_repository import TransactionRepository
from src.domain.transaction import Transaction
from .dtos import FlaggedTransactionDTO, LedgerDiscrepancyDTO, ReconciliationResultDTO

logger = logging.getLogger(__name__)


class ReconcileLedger:
    """
    Use Case: Reconcile wallets against transactions

    Business Rules:
    1. Expected balance = successful credits (topup, earnings, refund)
       minus successful debits (deduction, withdrawal)
    2. Every wallet whose balance differs is reported as a discrepancy
    3. Transactions flagged requires_reconciliation are listed
    4. Transactions still pending after stale_after are listed
    5. Does NOT modify any data (read-only reconciliation)
    """

    def __init__(
        self,
        user_repo: UserRepository,
        transaction_repo: TransactionRepository,
        stale_after: timedelta = timedelta(hours=24),
    ):
        self.user_repo = user_repo
        self.transaction_repo = transaction_repo
        self.stale_after = stale_after

    async def execute(self, now: Optional[datetime] = None) -> Result[ReconciliationResultDTO]:
        """
        Execute ledger reconciliation

        Returns:
            Result[ReconciliationResultDTO]: Discrepancies, flagged and stale transactions
        """
        start_time = time.time()
        reconciliation_time = now or datetime.utcnow()

        try:
            logger.info("Starting wallet ledger reconciliation")

            # Step 1: Compare every wallet with its transaction sum
            users = await self.user_repo.get_all()
            total_wallets = len(users)
            logger.info(f"Found {total_wallets} wallets to reconcile")

            discrepancies: list[LedgerDiscrepancyDTO] = []
            for user in users:
                transaction_sum = await self.transaction_repo.get_wallet_sum_by_user(user.id)
                if user.wallet_balance != transaction_sum:
                    discrepancy_amount = user.wallet_balance - transaction_sum
                    discrepancies.append(
                        LedgerDiscrepancyDTO(
                            user_id=user.id,
                            wallet_balance=user.wallet_balance,
                            calculated_balance=transaction_sum,
                            discrepancy=discrepancy_amount,
                        )
                    )
                    logger.warning(
                        f"Discrepancy found for user {user.id}: "
                        f"wallet_balance={user.wallet_balance}, "
                        f"transaction_sum={transaction_sum}, "
                        f"discrepancy={discrepancy_amount}"
                    )

            # Step 2: Transactions awaiting manual reconciliation
            flagged = [
                self._to_flagged(txn)
                for txn in await self.transaction_repo.get_flagged_for_reconciliation()
            ]

            # Step 3: Pending transactions nobody resolved
            stale = [
                self._to_flagged(txn)
                for txn in await self.transaction_repo.get_stale_pending(
                    reconciliation_time - self.stale_after
                )
            ]

            execution_time_ms = int((time.time() - start_time) * 1000)

            response = ReconciliationResultDTO(
                total_wallets_checked=total_wallets,
                discrepancies_found=len(discrepancies),
                discrepancies=discrepancies,
                flagged_transactions=flagged,
                stale_pending_transactions=stale,
                reconciliation_time=reconciliation_time,
                execution_time_ms=execution_time_ms,
            )

            if discrepancies or flagged or stale:
                logger.warning(
                    f"Reconciliation complete. {len(discrepancies)} discrepancies out of "
                    f"{total_wallets} wallets, {len(flagged)} flagged and {len(stale)} stale "
                    f"pending transactions in {execution_time_ms}ms"
                )
            else:
                logger.info(
                    f"Reconciliation complete. All {total_wallets} wallets balanced "
                    f"in {execution_time_ms}ms"
                )

            return Return.ok(response)

        except Exception as e:
            logger.error(f"Ledger reconciliation failed: {e}")
            return Return.err(
                Error(
                    code="RECONCILIATION_FAILED",
                    message="Failed to reconcile wallet ledger",
                    reason=str(e),
                )
            )

    @staticmethod
    def _to_flagged(txn: Transaction) -> FlaggedTransactionDTO:
        return FlaggedTransactionDTO(
            transaction_id=txn.id,
            tx_ref=txn.tx_ref,
            user_id=txn.user_id,
            transaction_type=txn.transaction_type.value,
            status=txn.status.value,
            amount=txn.amount,
            reason=txn.failure_reason,
            created_at=txn.created_at,
        )
