"""Generation cycle API routes.

Lets a guardian reprocess their own family, or the external scheduler
(role 'system') trigger a cycle for one or all families.
"""

import logging
from flask import Blueprint, jsonify, request, g
from chorequest.models import db
from chorequest.auth import roles_required
from chorequest.scheduler import get_job_status
from chorequest.services.errors import ChoreServiceError
from chorequest.routes.errors import error_response
from chorequest.services.generation_service import run_generation_cycle

generation_bp = Blueprint('generation', __name__, url_prefix='/api/generation')
logger = logging.getLogger(__name__)


@generation_bp.route('/run', methods=['POST'])
@roles_required('guardian', 'system')
def run_cycle():
    """Run the generation cycle now.

    Request body:
        {"family_id": int (system only), "dry_run": bool}

    Guardians are always scoped to their own family. The system role may
    name a family or omit it to process every family.

    Returns:
        JSON: {data: GenerationReport}
    """
    data = request.get_json(silent=True) or {}
    dry_run = bool(data.get('dry_run', False))

    if g.actor_role == 'guardian':
        if g.family_id is None:
            return jsonify({
                'error': 'Unauthorized',
                'message': 'Family scope required'
            }), 401
        family_id = g.family_id
    else:
        family_id = data.get('family_id', g.family_id)
        if family_id is not None and (not isinstance(family_id, int) or isinstance(family_id, bool)):
            return jsonify({'error': 'Bad Request', 'message': 'family_id must be an integer'}), 400

    try:
        report = run_generation_cycle(family_id=family_id, dry_run=dry_run)
        return jsonify({
            'data': report.to_dict(),
            'message': 'Dry run complete' if dry_run else 'Generation cycle complete'
        }), 200
    except ChoreServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Generation cycle failed: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'Generation cycle failed'
        }), 500


@generation_bp.route('/jobs', methods=['GET'])
@roles_required('guardian', 'system')
def list_jobs():
    """Scheduled job status."""
    return jsonify({'data': get_job_status()}), 200
