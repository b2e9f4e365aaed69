"""Streak stats API routes."""

from flask import Blueprint, jsonify, g
from chorequest.models import Child
from chorequest.auth import family_required, can_view_child
from chorequest.services.streak_service import StreakService

streaks_bp = Blueprint('streaks', __name__, url_prefix='/api/streaks')


@streaks_bp.route('/<int:child_id>', methods=['GET'])
@family_required
def get_streaks(child_id: int):
    """Current and best streak per chore for a child."""
    if not can_view_child(child_id):
        return jsonify({
            'error': 'Forbidden',
            'message': 'Children can only view their own streaks'
        }), 403

    if not Child.query.filter_by(id=child_id, family_id=g.family_id).first():
        return jsonify({
            'error': 'Not Found',
            'message': f'Child {child_id} not found'
        }), 404

    streaks = StreakService.list_for_child(g.family_id, child_id)
    return jsonify({
        'data': [s.to_dict() for s in streaks],
        'best': max((s.best for s in streaks), default=0)
    }), 200
