from .user import User, UserCredentials, SessionToken, Profile, ProfileUpdate
from .pagination import Pagination
from .deck import Deck, DeckCreate, DeckUpdate, DeckList
from .card import Flashcard, FlashcardCreate, FlashcardUpdate, FlashcardList, FlashcardBulkCreate, FlashcardBulkResult
from .review import Rating, StudyState, SubmitReview, ReviewResult
from .study import StudyCard, StudySession, StudyStats

__all__ = [
    'User', 'UserCredentials', 'SessionToken', 'Profile', 'ProfileUpdate',
    'Pagination',
    'Deck', 'DeckCreate', 'DeckUpdate', 'DeckList',
    'Flashcard', 'FlashcardCreate', 'FlashcardUpdate', 'FlashcardList',
    'FlashcardBulkCreate', 'FlashcardBulkResult',
    'Rating', 'StudyState', 'SubmitReview', 'ReviewResult',
    'StudyCard', 'StudySession', 'StudyStats',
]
