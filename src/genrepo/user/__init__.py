"""
User

Sample record type and its repository, bound to the Users table.
"""

from genrepo.user.model import User
from genrepo.user.repository import UserRepository

__all__ = ["User", "UserRepository"]
