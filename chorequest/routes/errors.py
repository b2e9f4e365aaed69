"""JSON error responses shared by the API blueprints."""

from flask import jsonify

from chorequest.services.errors import ChoreServiceError


def error_response(e: ChoreServiceError):
    """Translate a service error into {error, message} with its status code."""
    return jsonify({
        'error': e.__class__.__name__.replace('Error', ' Error'),
        'message': e.message
    }), e.status_code
