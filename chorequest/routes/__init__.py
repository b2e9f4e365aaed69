"""API blueprints for ChoreQuest."""

from chorequest.routes.assignments import assignments_bp
from chorequest.routes.bids import bids_bp
from chorequest.routes.completions import completions_bp
from chorequest.routes.generation import generation_bp
from chorequest.routes.rivalry import rivalry_bp
from chorequest.routes.streaks import streaks_bp
from chorequest.routes.wallets import wallets_bp

__all__ = [
    'assignments_bp',
    'bids_bp',
    'completions_bp',
    'generation_bp',
    'rivalry_bp',
    'streaks_bp',
    'wallets_bp',
]
