"""Repository abstractions for database interactions."""

from .broadcast_repository import BroadcastStateRepository
from .vote_repository import VoteRepository

__all__ = [
    "BroadcastStateRepository",
    "VoteRepository",
]
