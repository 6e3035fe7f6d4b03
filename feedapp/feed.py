from datetime import datetime
from typing import Optional, Union
import logging

from fastapi import UploadFile
from sqlalchemy import select, func, delete

from .models import AsyncSessionLocal
from .models.posts import Post, utcnow
from .models.users import User
from .auth import same_identity
from .errors import ValidationError, NotFoundError, ForbiddenError
from .storage import ImageStorage
from .ws_manager import ChangeNotifier

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 5
MIN_CONTENT_LENGTH = 5

def post_view(post: Post, creator_id: int, creator_name: str) -> dict:
    """Plain joined view of a post; only the creator's public identity"""
    return {
        'id': post.id,
        'title': post.title,
        'content': post.content,
        'image_url': post.image_url,
        'creator': {'id': creator_id, 'name': creator_name},
        'created_at': post.created_at,
        'updated_at': post.updated_at,
    }

def validate_post_fields(title: str, content: str):
    errors = []
    if len(title) < MIN_TITLE_LENGTH:
        errors.append({'field': 'title', 'message': f'Title must be at least {MIN_TITLE_LENGTH} characters long.', 'value': title})
    if len(content) < MIN_CONTENT_LENGTH:
        errors.append({'field': 'content', 'message': f'Content must be at least {MIN_CONTENT_LENGTH} characters long.', 'value': content})
    if errors:
        raise ValidationError('Validation failed, entered data is incorrect.', errors)

def serialize_event(event: dict) -> dict:
    """Make datetimes JSON friendly before they go on the wire"""
    out = {}
    for key, value in event.items():
        if isinstance(value, dict):
            out[key] = serialize_event(value)
        elif isinstance(value, datetime):
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out

class FeedService:
    def __init__(self, notifier: ChangeNotifier, images: ImageStorage, per_page: int = 3):
        self.notifier = notifier
        self.images = images
        self.per_page = per_page

    def _notify(self, event: dict):
        self.notifier.emit(serialize_event(event))

    async def _joined(self, session, post_id: int):
        q = await session.execute(
            select(Post, User.id, User.name)
            .join(User, Post.creator_id == User.id)
            .where(Post.id == post_id)
        )
        return q.first()

    async def list_posts(self, page: int = 1, per_page: Optional[int] = None):
        if per_page is None:
            per_page = self.per_page
        errors = []
        if page is None or page < 1:
            errors.append({'field': 'page', 'message': 'Page must be a positive integer.', 'value': page})
        if per_page < 1:
            errors.append({'field': 'per_page', 'message': 'Page size must be a positive integer.', 'value': per_page})
        if errors:
            raise ValidationError('Validation failed, entered data is incorrect.', errors)

        async with AsyncSessionLocal() as session:
            total = (await session.execute(select(func.count(Post.id)))).scalar_one()
            q = await session.execute(
                select(Post, User.id, User.name)
                .join(User, Post.creator_id == User.id)
                .order_by(Post.created_at.desc(), Post.id.desc())
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
            rows = q.all()
        if rows is None:
            raise NotFoundError('Could not find post.')
        return [post_view(p, uid, name) for p, uid, name in rows], total

    async def create_post(self, acting_user_id: int, title: str, content: str, image: Optional[UploadFile]):
        title = (title or '').strip()
        content = (content or '').strip()
        validate_post_fields(title, content)
        if image is None:
            raise ValidationError('No image provided.')

        async with AsyncSessionLocal() as session:
            q = await session.execute(select(User).where(User.id == acting_user_id))
            user = q.scalars().first()
        if not user:
            raise NotFoundError('Could not find user.')

        image_url = await self.images.store(image)

        try:
            async with AsyncSessionLocal() as session:
                post = Post(title=title, content=content, image_url=image_url, creator_id=user.id)
                session.add(post)
                await session.commit()
                await session.refresh(post)
        except Exception:
            # no post references the stored file
            await self.images.delete(image_url)
            raise

        creator = {'id': user.id, 'name': user.name}
        view = post_view(post, user.id, user.name)
        logger.info(f'user {user.id} created post {post.id}')
        self._notify({'action': 'create', 'post': view, 'creator': creator})
        return view, creator

    async def get_post(self, post_id: int) -> dict:
        async with AsyncSessionLocal() as session:
            row = await self._joined(session, post_id)
        if not row:
            raise NotFoundError('Could not find post.')
        post, uid, name = row
        return post_view(post, uid, name)

    async def update_post(self, acting_user_id: int, post_id: int, title: str, content: str,
                          image: Union[UploadFile, str, None]):
        title = (title or '').strip()
        content = (content or '').strip()
        validate_post_fields(title, content)
        new_file = image if image is not None and not isinstance(image, str) else None
        image_path = image.strip() if isinstance(image, str) else None
        if new_file is None and not image_path:
            raise ValidationError('No file picked.')

        async with AsyncSessionLocal() as session:
            row = await self._joined(session, post_id)
            if not row:
                raise NotFoundError('Could not find post.')
            post, uid, name = row
            if not same_identity(post.creator_id, acting_user_id):
                raise ForbiddenError('You cannot edit posts by another user!')

            old_image = post.image_url
            if new_file is not None:
                image_path = await self.images.store(new_file)
            else:
                # without a new upload the post keeps the image it already owns
                image_path = old_image

            post.title = title
            post.content = content
            post.image_url = image_path
            post.updated_at = utcnow()
            try:
                await session.commit()
            except Exception:
                if image_path != old_image:
                    await self.images.delete(image_path)
                raise
            await session.refresh(post)

        if old_image != post.image_url:
            await self.images.delete(old_image)
        view = post_view(post, uid, name)
        logger.info(f'user {acting_user_id} updated post {post.id}')
        self._notify({'action': 'update', 'post': view})
        return view

    async def delete_post(self, acting_user_id: int, post_id: int):
        async with AsyncSessionLocal() as session:
            q = await session.execute(select(Post).where(Post.id == post_id))
            post = q.scalars().first()
            if not post:
                raise NotFoundError('Could not find post.')
            if not same_identity(post.creator_id, acting_user_id):
                raise ForbiddenError('You cannot delete posts by another user!')
            image_url = post.image_url
            # owned-post set is keyed on creator_id, so this also drops it from the user's posts
            await session.execute(delete(Post).where(Post.id == post.id))
            await session.commit()

        await self.images.delete(image_url)
        logger.info(f'user {acting_user_id} deleted post {post_id}')
        self._notify({'action': 'delete', 'postId': post_id})
