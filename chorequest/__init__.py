"""ChoreQuest - chore lifecycle engine for family pocket money."""

__version__ = '0.1.0'
