"""Ledger Reconciliation Background Worker

Compares every wallet with its successful transactions and surfaces the
transactions that settlement could not resolve on its own. Read-only.
Run it standalone (see main) or from an external scheduler.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.user_repository import SqlAlchemyUserRepository
from src.adapter.repositories.transaction_repository import SqlAlchemyTransactionRepository
from src.app.use_cases.wallet import ReconcileLedger, ReconciliationResultDTO

logger = logging.getLogger(__name__)


def describe_report(report: ReconciliationResultDTO) -> List[str]:
    """Human-readable lines for a reconciliation report"""
    lines = [
        f"Wallets checked: {report.total_wallets_checked}",
        f"Discrepancies: {report.discrepancies_found}",
        f"Awaiting manual reconciliation: {len(report.flagged_transactions)}",
        f"Stale pending: {len(report.stale_pending_transactions)}",
        f"Took {report.execution_time_ms}ms",
    ]
    lines.extend(
        f"  user {d.user_id}: wallet={d.wallet_balance} ledger={d.calculated_balance} ({d.discrepancy:+d})"
        for d in report.discrepancies
    )
    lines.extend(
        f"  {t.tx_ref} [{t.transaction_type}/{t.status}] user {t.user_id}: {t.reason or 'no reason recorded'}"
        for t in report.flagged_transactions
    )
    return lines


class LedgerReconcilerWorker:
    """
    Periodic wallet/ledger reconciliation

    A wallet is consistent when wallet_balance equals the signed sum of its
    successful transactions. Each run also lists transactions flagged with
    requires_reconciliation and pending transactions older than the stale window.

    Usage:
        worker = LedgerReconcilerWorker()
        report = await worker.run_once()
        await worker.run_forever(interval_seconds=3600)
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        session_factory: Optional[sessionmaker] = None,
        stale_pending_hours: Optional[float] = None,
    ):
        self.engine = None
        if session_factory is None:
            self.db_uri = db_uri or ApplicationConfig.DB_URI
            self.engine = create_async_engine(self.db_uri, echo=False, future=True)
            session_factory = sessionmaker(
                self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
            )
        self.async_session_factory = session_factory

        if stale_pending_hours is None:
            stale_pending_hours = float(ApplicationConfig.STALE_PENDING_HOURS)
        self.stale_after = timedelta(hours=stale_pending_hours)

        logger.info(f"LedgerReconcilerWorker ready (stale after {self.stale_after})")

    @staticmethod
    def _skipped_report() -> ReconciliationResultDTO:
        return ReconciliationResultDTO(
            total_wallets_checked=0,
            discrepancies_found=0,
            discrepancies=[],
            flagged_transactions=[],
            stale_pending_transactions=[],
            reconciliation_time=datetime.utcnow(),
            execution_time_ms=0,
        )

    def _log_findings(self, report: ReconciliationResultDTO) -> None:
        for d in report.discrepancies:
            logger.error(
                f"Wallet of user {d.user_id} is off by {d.discrepancy} "
                f"(wallet={d.wallet_balance}, ledger={d.calculated_balance})"
            )
        for t in report.flagged_transactions:
            logger.warning(
                f"{t.tx_ref} ({t.transaction_type}, user {t.user_id}) awaits manual reconciliation: {t.reason}"
            )
        for t in report.stale_pending_transactions:
            logger.warning(
                f"{t.tx_ref} ({t.transaction_type}, user {t.user_id}) pending since {t.created_at.isoformat()}"
            )

    async def run_once(self) -> ReconciliationResultDTO:
        """
        Produce one reconciliation report

        Raises:
            RuntimeError: If the report could not be produced
        """
        if not ApplicationConfig.RECONCILIATION_ENABLED:
            logger.info("Ledger reconciliation is disabled, skipping")
            return self._skipped_report()

        async with self.async_session_factory() as session:
            result = await ReconcileLedger(
                user_repo=SqlAlchemyUserRepository(session),
                transaction_repo=SqlAlchemyTransactionRepository(session),
                stale_after=self.stale_after,
            ).execute()

        if result.is_err():
            logger.error(f"Reconciliation failed: {result.error.message}")
            raise RuntimeError(f"Reconciliation failed: {result.error.message}")

        self._log_findings(result.value)
        return result.value

    async def run_forever(self, interval_seconds: int = 86400):
        """Reconcile every interval_seconds; a failed run is logged and retried next cycle"""
        logger.info(f"Ledger reconciliation every {interval_seconds}s")

        while True:
            try:
                report = await self.run_once()
                logger.info(
                    f"Reconciliation cycle done: {report.discrepancies_found} discrepancies in "
                    f"{report.total_wallets_checked} wallets, "
                    f"{len(report.flagged_transactions)} flagged"
                )
            except Exception as e:
                logger.error(f"Reconciliation cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("LedgerReconcilerWorker shutdown complete")


async def main():
    """
    python -m src.worker.ledger_reconciler [--once] [--interval SECONDS]
    """
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Wallet ledger reconciliation")
    parser.add_argument("--once", action="store_true", help="Print one report and exit")
    parser.add_argument(
        "--interval",
        type=int,
        default=int(ApplicationConfig.RECONCILIATION_INTERVAL_SECONDS),
        help="Seconds between runs when running continuously",
    )
    args = parser.parse_args()

    worker = LedgerReconcilerWorker()

    try:
        if args.once:
            for line in describe_report(await worker.run_once()):
                print(line)
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
