"""Wallet ledger service.

All balance changes go through credit() and debit(). Each call appends one
Transaction and updates the cached Wallet balance in the same flush; the
caller's commit publishes both together. The service never commits on the
happy path so it can take part in larger units of work (approvals,
generation cycles).

After every write the cached balance is checked against the signed sum of
the wallet's transactions. A mismatch rolls back the unit of work, freezes
the wallet and raises LedgerInvariantError.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from chorequest.models import db, Wallet, Transaction
from chorequest.schemas import TransactionMeta, dump_meta
from chorequest.services.errors import (
    BadRequestError,
    ConcurrencyConflictError,
    InsufficientFloorError,
    InsufficientFundsError,
    LedgerInvariantError,
    NotFoundError,
    WalletFrozenError,
)

logger = logging.getLogger(__name__)


def _validate_amounts(pence: int, stars: int) -> None:
    if pence < 0 or stars < 0:
        raise BadRequestError('Ledger amounts must be non-negative')
    if pence == 0 and stars == 0:
        raise BadRequestError('Amount cannot be zero')


class LedgerService:
    """Service for wallet credits, debits and balance verification."""

    @staticmethod
    def get_wallet(family_id: int, child_id: int) -> Optional[Wallet]:
        return Wallet.query.filter_by(family_id=family_id, child_id=child_id).first()

    @staticmethod
    def require_wallet(family_id: int, child_id: int) -> Wallet:
        """Get a wallet or raise NotFoundError."""
        wallet = LedgerService.get_wallet(family_id, child_id)
        if not wallet:
            raise NotFoundError(f'Wallet for child {child_id} not found')
        return wallet

    @staticmethod
    def get_or_create_wallet(family_id: int, child_id: int) -> Wallet:
        """Wallets are created lazily on the first credit or debit."""
        wallet = LedgerService.get_wallet(family_id, child_id)
        if wallet is None:
            wallet = Wallet(family_id=family_id, child_id=child_id, balance_pence=0, stars=0)
            db.session.add(wallet)
        return wallet

    @staticmethod
    def get_balance(family_id: int, child_id: int) -> Tuple[int, int]:
        """Return (pence, stars) for a child; zero if no wallet exists yet."""
        wallet = LedgerService.get_wallet(family_id, child_id)
        if wallet is None:
            return 0, 0
        return wallet.balance_pence, wallet.stars

    @staticmethod
    def calculate_balance(wallet_id: int) -> Tuple[int, int]:
        """
        Calculate the balance from the transaction log (audit verification).

        Returns:
            tuple: (pence, stars) signed sums of all transactions
        """
        pence_delta = case((Transaction.type == 'credit', Transaction.amount_pence),
                           else_=-Transaction.amount_pence)
        star_delta = case((Transaction.type == 'credit', Transaction.stars),
                          else_=-Transaction.stars)
        pence, stars = db.session.query(
            func.coalesce(func.sum(pence_delta), 0),
            func.coalesce(func.sum(star_delta), 0)
        ).filter(Transaction.wallet_id == wallet_id).one()
        return int(pence), int(stars)

    @staticmethod
    def verify_wallet(wallet: Wallet) -> bool:
        """Check that the cached balance matches the transaction log."""
        return (wallet.balance_pence, wallet.stars) == LedgerService.calculate_balance(wallet.id)

    @staticmethod
    def freeze_wallet(wallet: Wallet, reason: str) -> None:
        """Block further writes until the wallet is reconciled by hand."""
        wallet.frozen = True
        wallet.frozen_reason = reason

    @staticmethod
    def find_transaction(idempotency_key: str) -> Optional[Transaction]:
        return Transaction.query.filter_by(idempotency_key=idempotency_key).first()

    @staticmethod
    def list_transactions(wallet_id: int, limit: int = 10) -> List[Transaction]:
        return Transaction.query.filter_by(wallet_id=wallet_id).order_by(
            Transaction.id.desc()
        ).limit(limit).all()

    @staticmethod
    def credit(family_id: int, child_id: int, pence: int, stars: int, meta: TransactionMeta,
               source: str = 'system', idempotency_key: Optional[str] = None) -> Transaction:
        """Credit a child's wallet.

        Args:
            family_id: Family the wallet belongs to
            child_id: Child receiving the credit
            pence: Money to add (>= 0)
            stars: Stars to add (>= 0)
            meta: Typed metadata describing why
            source: system, guardian or relative
            idempotency_key: Optional unique key; a second write with it conflicts

        Returns:
            The new Transaction (flushed, not committed)

        Raises:
            BadRequestError: Negative or zero amounts
            WalletFrozenError: Wallet is frozen
            ConcurrencyConflictError: Lost a race on the wallet or key
            LedgerInvariantError: Balance no longer matches the log
        """
        _validate_amounts(pence, stars)
        wallet = LedgerService.get_or_create_wallet(family_id, child_id)
        return LedgerService._post(wallet, 'credit', pence, stars, meta, source, idempotency_key)

    @staticmethod
    def debit(family_id: int, child_id: int, pence: int, stars: int, meta: TransactionMeta,
              source: str = 'system', floor_pence: int = 0, floor_stars: int = 0,
              clamp: bool = False, idempotency_key: Optional[str] = None) -> Transaction:
        """Debit a child's wallet without crossing the floor.

        The floor is never below zero. With clamp=True the amounts are reduced
        so the balance ends exactly at the floor; if nothing is left to debit
        InsufficientFloorError is raised and no wallet or transaction is written.
        With clamp=False a debit that would cross the floor raises
        InsufficientFundsError.

        Returns:
            The new Transaction (flushed, not committed)
        """
        _validate_amounts(pence, stars)
        floor_pence = max(0, floor_pence or 0)
        floor_stars = max(0, floor_stars or 0)

        wallet = LedgerService.get_wallet(family_id, child_id)
        if wallet is not None and wallet.frozen:
            raise WalletFrozenError(f'Wallet {wallet.id} is frozen pending reconciliation')

        balance_pence = wallet.balance_pence if wallet else 0
        balance_stars = wallet.stars if wallet else 0

        if clamp:
            pence = min(pence, max(0, balance_pence - floor_pence))
            stars = min(stars, max(0, balance_stars - floor_stars))
            if pence == 0 and stars == 0:
                raise InsufficientFloorError(
                    f'Floor of {floor_pence}p / {floor_stars} stars blocks any debit '
                    f'(balance {balance_pence}p / {balance_stars} stars)'
                )
        elif balance_pence - pence < floor_pence or balance_stars - stars < floor_stars:
            raise InsufficientFundsError(
                f'Insufficient balance (have {balance_pence}p / {balance_stars} stars, '
                f'need {pence}p / {stars} stars)'
            )

        if wallet is None:
            wallet = LedgerService.get_or_create_wallet(family_id, child_id)
        return LedgerService._post(wallet, 'debit', pence, stars, meta, source, idempotency_key)

    @staticmethod
    def _post(wallet: Wallet, txn_type: str, pence: int, stars: int, meta: TransactionMeta,
              source: str, idempotency_key: Optional[str]) -> Transaction:
        if wallet.frozen:
            raise WalletFrozenError(f'Wallet {wallet.id} is frozen pending reconciliation')

        sign = 1 if txn_type == 'credit' else -1
        wallet.balance_pence += sign * pence
        wallet.stars += sign * stars

        txn = Transaction(
            wallet=wallet,
            family_id=wallet.family_id,
            type=txn_type,
            amount_pence=pence,
            stars=stars,
            source=source,
            reason=meta.reason,
            meta=dump_meta(meta),
            idempotency_key=idempotency_key
        )
        db.session.add(txn)

        try:
            db.session.flush()
        except StaleDataError as e:
            db.session.rollback()
            logger.warning(f"Concurrent update on wallet for child {wallet.child_id}")
            raise ConcurrencyConflictError('Wallet was modified concurrently, retry the operation') from e
        except IntegrityError as e:
            db.session.rollback()
            logger.warning(f"Ledger write conflict (key={idempotency_key}): {e.orig}")
            raise ConcurrencyConflictError('Ledger entry already exists or wallet was created concurrently') from e

        stored = (wallet.balance_pence, wallet.stars)
        calculated = LedgerService.calculate_balance(wallet.id)
        if stored != calculated:
            LedgerService._halt(wallet.id, stored, calculated)

        logger.info(f"Ledger {txn_type}: wallet={wallet.id} {pence}p {stars} stars ({meta.reason})")
        return txn

    @staticmethod
    def _halt(wallet_id: int, stored: Tuple[int, int], calculated: Tuple[int, int]) -> None:
        """Roll back, freeze the wallet and raise. Never returns."""
        db.session.rollback()
        reason = f'Balance mismatch: stored={stored} calculated={calculated}'

        wallet = db.session.get(Wallet, wallet_id)
        if wallet is not None:
            LedgerService.freeze_wallet(wallet, reason)
            db.session.commit()

        logger.critical(f"Ledger invariant violated for wallet {wallet_id}: {reason}; wallet frozen")
        raise LedgerInvariantError(f'Wallet {wallet_id} failed verification and has been frozen')
