import os
import hmac
import asyncio
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from fastapi import Header
from passlib.context import CryptContext
from .errors import AuthError

# Prefer JWT_SECRET but support legacy JWT_SECRET_KEY for compatibility
SECRET = os.getenv('JWT_SECRET') or os.getenv('JWT_SECRET_KEY', 'devsecret')
ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv('ACCESS_TOKEN_EXPIRE_MINUTES', '60'))

pwd_ctx = CryptContext(schemes=['bcrypt'], deprecated='auto', bcrypt__rounds=12)

async def hash_password(password: str) -> str:
    # bcrypt is cpu bound; keep it off the event loop
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, pwd_ctx.hash, password)

async def verify_password(password: str, hashed: str) -> bool:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, pwd_ctx.verify, password, hashed)

def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({'exp': expire})
    encoded = jwt.encode(to_encode, SECRET, algorithm=ALGORITHM)
    return encoded

def decode_token(token: str):
    try:
        payload = jwt.decode(token, SECRET, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        return None

def verified_claims(token: str) -> dict:
    """Decode a session token and return its claims with `userId` as an int.

    Raises AuthError for a missing, malformed, tampered or expired token.
    """
    if not token:
        raise AuthError('Not authenticated.')
    payload = decode_token(token)
    if not payload:
        raise AuthError('Not authenticated.')
    try:
        payload['userId'] = int(payload['userId'])
    except (KeyError, TypeError, ValueError):
        raise AuthError('Not authenticated.')
    return payload

def verify_token(token: str) -> int:
    """Return the user id a session token was issued for."""
    return verified_claims(token)['userId']

def same_identity(a, b) -> bool:
    """Compare two user identifiers in their canonical string form."""
    if a is None or b is None:
        return False
    return hmac.compare_digest(str(a).strip(), str(b).strip())

async def get_current_user(authorization: str = Header(None)) -> dict:
    if not authorization:
        raise AuthError('Not authenticated.')
    scheme, _, token = authorization.partition(' ')
    if scheme.lower() != 'bearer':
        raise AuthError('Not authenticated.')
    claims = verified_claims(token.strip())
    return {'id': claims['userId'], 'email': claims.get('email')}
