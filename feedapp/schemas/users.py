from pydantic import BaseModel

class SignupIn(BaseModel):
    email: str = ''
    name: str = ''
    password: str = ''

class SignupOut(BaseModel):
    message: str
    userId: int

class LoginIn(BaseModel):
    email: str = ''
    password: str = ''

class TokenOut(BaseModel):
    token: str
    userId: int

class StatusIn(BaseModel):
    status: str = ''

class StatusOut(BaseModel):
    message: str
    status: str
