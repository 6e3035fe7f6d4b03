from .models import AsyncSessionLocal
from .models.users import User
from .models.posts import Post
from .auth import create_access_token, hash_password, verify_password
from .errors import ValidationError, NotFoundError, AuthError
from email_validator import validate_email, EmailNotValidError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
import logging

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 5

def normalize_email(email: str) -> str:
    return (email or '').strip().lower()

def _signup_errors(email: str, name: str, password: str) -> list:
    errors = []
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        errors.append({'field': 'email', 'message': 'Please enter a valid email.', 'value': email})
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append({'field': 'password', 'message': f'Password must be at least {MIN_PASSWORD_LENGTH} characters long.'})
    if not name:
        errors.append({'field': 'name', 'message': 'Name must not be empty.', 'value': name})
    return errors

async def create_user(email: str, name: str, password: str) -> int:
    email = normalize_email(email)
    name = (name or '').strip()
    password = password or ''
    errors = _signup_errors(email, name, password)
    if errors:
        raise ValidationError('Validation failed.', errors)

    hashed = await hash_password(password)
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User.id).where(User.email == email))
        if q.scalars().first() is not None:
            raise ValidationError('Validation failed.', [
                {'field': 'email', 'message': 'E-Mail address already exists!', 'value': email}
            ])
        user = User(email=email, name=name, hashed_password=hashed)
        session.add(user)
        try:
            await session.commit()
        except IntegrityError:
            # lost a race against a concurrent signup with the same address
            await session.rollback()
            raise ValidationError('Validation failed.', [
                {'field': 'email', 'message': 'E-Mail address already exists!', 'value': email}
            ])
        await session.refresh(user)
        logger.info(f'user {user.id} signed up')
        return user.id

async def authenticate_user(email: str, password: str) -> dict:
    email = normalize_email(email)
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.email == email))
        user = q.scalars().first()
    if not user:
        raise NotFoundError('A user with this email could not be found.')
    if not await verify_password(password or '', user.hashed_password):
        raise AuthError('Wrong password!')
    token = create_access_token({'email': user.email, 'userId': str(user.id)})
    logger.info(f'user {user.id} logged in')
    return {'token': token, 'userId': user.id}

async def get_user_by_id(user_id: int):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.id == user_id))
        return q.scalars().first()

async def get_user_by_email(email: str):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.email == normalize_email(email)))
        return q.scalars().first()

async def get_status(user_id: int) -> str:
    user = await get_user_by_id(user_id)
    if not user:
        raise AuthError('Could not find user.')
    return user.status

async def update_status(user_id: int, status: str) -> str:
    status = (status or '').strip()
    if not status:
        raise ValidationError('Validation failed.', [{'field': 'status', 'message': 'Status must not be empty.'}])
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.id == user_id))
        user = q.scalars().first()
        if not user:
            raise AuthError('Could not find user.')
        user.status = status
        await session.commit()
        return user.status

async def list_user_post_ids(user_id: int) -> list:
    """Ids making up a user's owned-post set"""
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(Post.id).where(Post.creator_id == user_id).order_by(Post.id))
        return list(q.scalars().all())
