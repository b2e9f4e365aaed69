"""
Wallet ledger audit job.
"""

import logging

logger = logging.getLogger(__name__)


def audit_wallet_balances():
    """
    Audit every wallet against its transaction log.

    Runs nightly at LEDGER_AUDIT_HOUR. Verifies that the cached balance and
    star count match the signed sum of transactions. A wallet that does not
    match is frozen so no further writes can compound the damage.

    Returns:
        list: Discrepancy dicts for the wallets that failed verification
    """
    logger.info("Starting wallet ledger audit")

    # Import inside function to avoid circular imports and to get app context
    from chorequest.models import db, Wallet
    from chorequest.services.ledger_service import LedgerService

    try:
        wallets = Wallet.query.order_by(Wallet.id).all()
        discrepancies = []

        for wallet in wallets:
            calculated = LedgerService.calculate_balance(wallet.id)
            stored = (wallet.balance_pence, wallet.stars)
            if stored != calculated:
                discrepancies.append({
                    'wallet_id': wallet.id,
                    'child_id': wallet.child_id,
                    'stored': stored,
                    'calculated': calculated,
                    'diff_pence': stored[0] - calculated[0],
                    'diff_stars': stored[1] - calculated[1]
                })
                if not wallet.frozen:
                    LedgerService.freeze_wallet(
                        wallet, f'Audit mismatch: stored={stored} calculated={calculated}'
                    )

        if discrepancies:
            db.session.commit()
            logger.critical(f"Ledger discrepancies found, wallets frozen: {discrepancies}")
        else:
            logger.info(f"Ledger audit complete: all {len(wallets)} wallets verified")

        return discrepancies

    except Exception as e:
        logger.error(f"Error in wallet ledger audit: {e}")
        db.session.rollback()
        raise
