from pydantic import BaseModel
from school_roster.schemas.user import UserOut

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class AuthResponse(Token):
    message: str
    user: UserOut
