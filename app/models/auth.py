# app/models/auth.py
from enum import Enum
from pydantic import BaseModel

class Role(str, Enum):
    CLIENT = "client"
    CLEANER = "cleaner"
    ADMIN = "admin"
    TEAM_LEADER = "team_leader"

class Token(BaseModel):
    access_token: str
    token_type: str
