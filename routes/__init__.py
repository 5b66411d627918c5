# Routes package __init__.py - re-exports routers for main.py convenience
from .auth import router as auth_router
from .decks import router as decks_router
from .cards import router as cards_router
from .study import router as study_router
from .profile import router as profile_router

__all__ = ['auth_router', 'decks_router', 'cards_router', 'study_router', 'profile_router']
