"""Rivalry bidding API routes.

State machine: open → contested → claimed → approved/rejected
"""

import logging
from flask import Blueprint, jsonify, request, g
from chorequest.models import db
from chorequest.auth import family_required, roles_required
from chorequest.schemas import validate_bid_payload
from chorequest.services.bidding_service import BiddingService
from chorequest.services.errors import ChoreServiceError
from chorequest.routes.errors import error_response

bids_bp = Blueprint('bids', __name__, url_prefix='/api/bids')
logger = logging.getLogger(__name__)


@bids_bp.route('', methods=['GET'])
@family_required
def list_bids():
    """Bid history for a competitive assignment, lowest offer first.

    Query parameters:
        - assignment_id: required

    Returns:
        JSON: {data: [bids], champion: bid or null, assignment: assignment}
    """
    assignment_id = request.args.get('assignment_id', type=int)
    if not assignment_id:
        return jsonify({
            'error': 'Bad Request',
            'message': 'assignment_id query parameter is required'
        }), 400

    try:
        assignment = BiddingService.get_assignment(assignment_id, g.family_id)
    except ChoreServiceError as e:
        return error_response(e)

    champion = BiddingService.get_champion(assignment)
    bids = []
    for bid in BiddingService.list_bids(assignment):
        data = bid.to_dict()
        data['is_champion'] = champion is not None and bid.id == champion.id
        bids.append(data)

    return jsonify({
        'data': bids,
        'champion': champion.to_dict() if champion else None,
        'assignment': assignment.to_dict()
    }), 200


@bids_bp.route('', methods=['POST'])
@family_required
@roles_required('child')
def place_bid():
    """Child places a bid on a competitive assignment.

    Request body:
        {"assignment_id": int, "amount_pence": int}

    Returns:
        JSON: {data: bid, is_champion: bool, message: str}, 201
    """
    data = request.get_json(silent=True) or {}

    is_valid, error = validate_bid_payload(data)
    if not is_valid:
        return jsonify({'error': 'Bad Request', 'message': error}), 400

    try:
        bid = BiddingService.place_bid(data['assignment_id'], g.family_id, g.child_id, data['amount_pence'])
        champion = BiddingService.get_champion(bid.assignment)
        return jsonify({
            'data': bid.to_dict(),
            'is_champion': champion is not None and champion.id == bid.id,
            'message': 'Bid placed'
        }), 201
    except ChoreServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Failed to place bid: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'Failed to place bid'
        }), 500
