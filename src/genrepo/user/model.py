import uuid
from dataclasses import dataclass


@dataclass
class User:
    Id: uuid.UUID
    FirstName: str
    LastName: str
