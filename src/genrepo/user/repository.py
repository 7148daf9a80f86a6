from genrepo.repository import GenericRepository
from genrepo.user.model import User


class UserRepository(GenericRepository[User]):
    """
    Repository for the Users table.
    All SQL is generated from the User record's fields.
    """

    record_type = User

    def __init__(self, table_name: str = "Users"):
        super().__init__(table_name)
