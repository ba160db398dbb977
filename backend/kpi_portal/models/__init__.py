from .auth import User
from .metrics import Submission, FinancialRecord
from .decks import DeckGeneration

__all__ = [
    'User',
    'Submission', 'FinancialRecord',
    'DeckGeneration',
]
