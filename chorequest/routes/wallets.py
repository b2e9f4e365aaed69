"""Wallet API routes.

Balances are read-only here except for two guardian/relative actions: a
manual gift (credit) and a recorded payout (debit). Everything else that
moves money goes through approvals and the generation cycle.
"""

import logging
from flask import Blueprint, jsonify, request, g
from chorequest.models import db, Child
from chorequest.auth import family_required, roles_required, can_view_child
from chorequest.schemas import ManualGiftMeta, PayoutMeta, validate_wallet_adjustment
from chorequest.services.errors import ChoreServiceError, NotFoundError
from chorequest.routes.errors import error_response
from chorequest.services.ledger_service import LedgerService

wallets_bp = Blueprint('wallets', __name__, url_prefix='/api/wallets')
logger = logging.getLogger(__name__)


def _require_child(child_id: int) -> Child:
    child = Child.query.filter_by(id=child_id, family_id=g.family_id).first()
    if not child:
        raise NotFoundError(f'Child {child_id} not found')
    return child


def _forbidden():
    return jsonify({
        'error': 'Forbidden',
        'message': 'Children can only view their own wallet'
    }), 403


@wallets_bp.route('/<int:child_id>', methods=['GET'])
@family_required
def get_wallet(child_id: int):
    """Balance and the 10 most recent transactions for a child."""
    if not can_view_child(child_id):
        return _forbidden()

    try:
        _require_child(child_id)
    except ChoreServiceError as e:
        return error_response(e)

    wallet = LedgerService.get_wallet(g.family_id, child_id)
    if wallet is None:
        data = {
            'child_id': child_id,
            'balance_pence': 0,
            'stars': 0,
            'frozen': False,
            'transactions': []
        }
    else:
        data = wallet.to_dict()
        data['transactions'] = [t.to_dict() for t in LedgerService.list_transactions(wallet.id, limit=10)]

    return jsonify({'data': data}), 200


@wallets_bp.route('/<int:child_id>/credit', methods=['POST'])
@family_required
@roles_required('guardian', 'relative')
def credit_wallet(child_id: int):
    """Manual gift from a guardian or relative.

    Request body:
        {"amount_pence": int, "stars": int, "note": str} (amounts default to 0)
    """
    data = request.get_json(silent=True) or {}

    is_valid, error = validate_wallet_adjustment(data)
    if not is_valid:
        return jsonify({'error': 'Bad Request', 'message': error}), 400

    try:
        _require_child(child_id)
        txn = LedgerService.credit(
            g.family_id, child_id,
            data.get('amount_pence', 0), data.get('stars', 0),
            ManualGiftMeta(note=data.get('note')),
            source=g.actor_role
        )
        db.session.commit()
        logger.info(f"Manual gift to child {child_id} by {g.actor_role}: {txn.amount_pence}p {txn.stars} stars")
        return jsonify({
            'data': txn.to_dict(),
            'wallet': txn.wallet.to_dict(),
            'message': 'Wallet credited'
        }), 201
    except ChoreServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Failed to credit wallet for child {child_id}: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'Failed to credit wallet'
        }), 500


@wallets_bp.route('/<int:child_id>/debit', methods=['POST'])
@family_required
@roles_required('guardian')
def debit_wallet(child_id: int):
    """Record a payout handed to the child. No money leaves the system here."""
    data = request.get_json(silent=True) or {}

    is_valid, error = validate_wallet_adjustment(data)
    if not is_valid:
        return jsonify({'error': 'Bad Request', 'message': error}), 400

    try:
        _require_child(child_id)
        txn = LedgerService.debit(
            g.family_id, child_id,
            data.get('amount_pence', 0), data.get('stars', 0),
            PayoutMeta(note=data.get('note')),
            source='guardian'
        )
        db.session.commit()
        logger.info(f"Payout recorded for child {child_id}: {txn.amount_pence}p {txn.stars} stars")
        return jsonify({
            'data': txn.to_dict(),
            'wallet': txn.wallet.to_dict(),
            'message': 'Payout recorded'
        }), 201
    except ChoreServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Failed to debit wallet for child {child_id}: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'Failed to record payout'
        }), 500


@wallets_bp.route('/<int:child_id>/verify', methods=['GET'])
@family_required
@roles_required('guardian')
def verify_wallet(child_id: int):
    """Compare the cached balance with the sum of the wallet's transactions."""
    try:
        wallet = LedgerService.require_wallet(g.family_id, child_id)
    except ChoreServiceError as e:
        return error_response(e)

    calculated_pence, calculated_stars = LedgerService.calculate_balance(wallet.id)
    valid = (wallet.balance_pence, wallet.stars) == (calculated_pence, calculated_stars)

    return jsonify({
        'data': {
            'wallet_id': wallet.id,
            'child_id': child_id,
            'valid': valid,
            'stored': {'pence': wallet.balance_pence, 'stars': wallet.stars},
            'calculated': {'pence': calculated_pence, 'stars': calculated_stars},
            'frozen': wallet.frozen
        }
    }), 200
