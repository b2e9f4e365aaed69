"""Assignment API routes.

Assignments are created by the generation cycle; the only write exposed here
is a guardian opening a rivalry contest for a chore.
"""

import logging
from flask import Blueprint, jsonify, request, g
from sqlalchemy import or_
from chorequest.models import db, Assignment
from chorequest.auth import family_required, roles_required
from chorequest.services.bidding_service import BiddingService
from chorequest.services.errors import ChoreServiceError
from chorequest.routes.errors import error_response

assignments_bp = Blueprint('assignments', __name__, url_prefix='/api/assignments')
logger = logging.getLogger(__name__)

OPEN_STATUSES = ('open', 'contested', 'claimed')


@assignments_bp.route('', methods=['GET'])
@family_required
def list_assignments():
    """List assignments in the caller's family.

    Query parameters:
        - child_id: Only this child's assignments (plus competitive ones)
        - status: open, contested, claimed, approved, rejected or 'all'
                  (default: every not-yet-decided assignment)
        - limit: Maximum number of results (default 50, max 200)

    Children always see only their own and the competitive assignments.

    Returns:
        JSON: {data: [assignments], total: int}
    """
    query = Assignment.query.filter_by(family_id=g.family_id)

    child_id = g.child_id if g.actor_role == 'child' else request.args.get('child_id', type=int)
    if child_id:
        query = query.filter(or_(
            Assignment.child_id == child_id,
            Assignment.competitive.is_(True)
        ))

    limit = min(request.args.get('limit', 50, type=int), 200)
    assignments = query.order_by(Assignment.period_start.desc(), Assignment.id.desc()).all()

    status = request.args.get('status')
    if status == 'all':
        selected = assignments
    elif status:
        selected = [a for a in assignments if a.status == status]
    else:
        selected = [a for a in assignments if a.status in OPEN_STATUSES]

    return jsonify({
        'data': [a.to_dict() for a in selected[:limit]],
        'total': len(selected)
    }), 200


@assignments_bp.route('/contests', methods=['POST'])
@family_required
@roles_required('guardian')
def open_contest():
    """Guardian opens a rivalry contest for a chore.

    Request body:
        {"chore_id": int}

    Returns:
        JSON: {data: assignment, message: str}, 201
    """
    data = request.get_json(silent=True) or {}
    chore_id = data.get('chore_id')

    if not isinstance(chore_id, int) or isinstance(chore_id, bool):
        return jsonify({
            'error': 'Bad Request',
            'message': 'chore_id must be an integer'
        }), 400

    try:
        assignment = BiddingService.open_contest(chore_id, g.family_id)
        return jsonify({
            'data': assignment.to_dict(),
            'message': 'Rivalry contest opened'
        }), 201
    except ChoreServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Failed to open contest for chore {chore_id}: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'Failed to open contest'
        }), 500
