"""Request identity for ChoreQuest.

Accounts and sessions are handled by the upstream gateway. Every request that
reaches this service carries trusted headers naming the family, the actor's
role and, for children, the child's id. load_identity() copies them onto
flask.g; the decorators below guard routes on them.
"""

from functools import wraps
from flask import g, jsonify, request

ROLES = ('guardian', 'child', 'relative', 'system')


def _int_header(name):
    value = request.headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def load_identity():
    """Populate g.family_id, g.actor_role and g.child_id from gateway headers."""
    role = request.headers.get('X-Actor-Role')
    g.actor_role = role if role in ROLES else None
    g.family_id = _int_header('X-Family-Id')
    g.child_id = _int_header('X-Child-Id') if g.actor_role == 'child' else None


def family_required(f):
    """Decorator to ensure the request is scoped to a family."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if getattr(g, 'actor_role', None) is None:
            return jsonify({
                'error': 'Unauthorized',
                'message': 'Authentication required'
            }), 401

        if getattr(g, 'family_id', None) is None:
            return jsonify({
                'error': 'Unauthorized',
                'message': 'Family scope required'
            }), 401

        if g.actor_role == 'child' and g.child_id is None:
            return jsonify({
                'error': 'Unauthorized',
                'message': 'Child identity required'
            }), 401

        return f(*args, **kwargs)
    return decorated_function


def roles_required(*roles):
    """Decorator to restrict a route to the given actor roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            role = getattr(g, 'actor_role', None)
            if role is None:
                return jsonify({
                    'error': 'Unauthorized',
                    'message': 'Authentication required'
                }), 401

            if role not in roles:
                return jsonify({
                    'error': 'Forbidden',
                    'message': f"Requires role: {', '.join(roles)}"
                }), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def can_view_child(child_id: int) -> bool:
    """Children may only look at their own wallet and streaks."""
    if g.actor_role == 'child':
        return g.child_id == child_id
    return True
