"""Completion workflow API routes.

This module implements the completion workflow:
- Submitting a completion (child marks an assignment as done)
- Approving a completion (guardian pays the reward)
- Rejecting a completion (guardian declines, no ledger effect)

State machine: pending → approved/rejected
"""

import logging
from flask import Blueprint, jsonify, request, g
from chorequest.models import db
from chorequest.auth import family_required, roles_required
from chorequest.schemas import validate_completion_payload
from chorequest.services.completion_service import CompletionService
from chorequest.services.errors import ChoreServiceError
from chorequest.routes.errors import error_response

completions_bp = Blueprint('completions', __name__, url_prefix='/api/completions')
logger = logging.getLogger(__name__)

STATUSES = ('pending', 'approved', 'rejected')


@completions_bp.route('', methods=['POST'])
@family_required
@roles_required('child')
def submit_completion():
    """Child submits a completion for an assignment.

    Request body:
        {"assignment_id": int, "note": str (optional)}

    Returns:
        JSON: {data: completion, message: str}, 201
    """
    data = request.get_json(silent=True) or {}

    is_valid, error = validate_completion_payload(data)
    if not is_valid:
        return jsonify({'error': 'Bad Request', 'message': error}), 400

    try:
        completion = CompletionService.submit(data['assignment_id'], g.family_id, g.child_id, data.get('note'))
        return jsonify({
            'data': completion.to_dict(),
            'message': 'Completion submitted for approval'
        }), 201
    except ChoreServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Failed to submit completion: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'Failed to submit completion'
        }), 500


@completions_bp.route('', methods=['GET'])
@family_required
def list_completions():
    """List completions in the caller's family.

    Query parameters:
        - status: pending, approved or rejected
        - child_id: Filter by child (children always see only their own)
    """
    status = request.args.get('status')
    if status and status not in STATUSES:
        return jsonify({
            'error': 'Bad Request',
            'message': f"Invalid status. Must be one of: {', '.join(STATUSES)}"
        }), 400

    child_id = g.child_id if g.actor_role == 'child' else request.args.get('child_id', type=int)
    completions = CompletionService.list_completions(g.family_id, status=status, child_id=child_id)

    return jsonify({
        'data': [c.to_dict() for c in completions],
        'total': len(completions)
    }), 200


@completions_bp.route('/<int:completion_id>/approve', methods=['POST'])
@family_required
@roles_required('guardian')
def approve_completion(completion_id: int):
    """Guardian approves a pending completion.

    Returns:
        JSON: {data: {completion, credited_pence, credited_stars, streak_bonus, rivalry_bonus}}
    """
    try:
        result = CompletionService.approve(completion_id, g.family_id)
        return jsonify({
            'data': result.to_dict(),
            'message': 'Completion approved'
        }), 200
    except ChoreServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Failed to approve completion {completion_id}: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'Failed to approve completion'
        }), 500


@completions_bp.route('/<int:completion_id>/reject', methods=['POST'])
@family_required
@roles_required('guardian')
def reject_completion(completion_id: int):
    """Guardian rejects a pending completion.

    Request body:
        {"reason": str (optional)}
    """
    data = request.get_json(silent=True) or {}
    reason = data.get('reason')

    if reason is not None and not isinstance(reason, str):
        return jsonify({'error': 'Bad Request', 'message': 'reason must be a string'}), 400

    try:
        completion = CompletionService.reject(completion_id, g.family_id, reason)
        return jsonify({
            'data': completion.to_dict(),
            'message': 'Completion rejected'
        }), 200
    except ChoreServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Failed to reject completion {completion_id}: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'Failed to reject completion'
        }), 500
