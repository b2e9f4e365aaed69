"""Rivalry feed API routes."""

import logging
from flask import Blueprint, jsonify, g
from chorequest.auth import family_required
from chorequest.services.bidding_service import BiddingService

rivalry_bp = Blueprint('rivalry', __name__, url_prefix='/api/rivalry')
logger = logging.getLogger(__name__)

FEED_LIMIT = 20


@rivalry_bp.route('/feed', methods=['GET'])
@family_required
def feed():
    """Recent bids across the family's contests, newest first.

    Entries of type 'underbid' name the sibling whose champion bid was
    undercut in target_child_id.

    Returns:
        JSON: {data: [entries], total: int}
    """
    bids = BiddingService.rivalry_feed(g.family_id, limit=FEED_LIMIT)
    return jsonify({
        'data': [bid.to_feed_dict() for bid in bids],
        'total': len(bids)
    }), 200
