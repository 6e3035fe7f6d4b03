from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from starlette.datastructures import UploadFile as StarletteUploadFile
from ..schemas.posts import PostListOut, PostCreatedOut, PostDetailOut, MessageOut
from ..auth import get_current_user
from ..feed import FeedService

router = APIRouter()


def get_feed_service(request: Request) -> FeedService:
    feed = getattr(request.app.state, 'feed', None)
    if feed is None:
        raise RuntimeError('feed service not initialized')
    return feed


@router.get('/posts', response_model=PostListOut)
async def list_posts(
    page: int = Query(1),
    current_user: dict = Depends(get_current_user),
    feed: FeedService = Depends(get_feed_service)
):
    posts, total = await feed.list_posts(page)
    return {'message': 'Fetched posts successfully.', 'posts': posts, 'totalItems': total}


@router.post('/post', response_model=PostCreatedOut, status_code=201)
async def create_post(
    title: str = Form(''),
    content: str = Form(''),
    image: UploadFile = File(None),
    current_user: dict = Depends(get_current_user),
    feed: FeedService = Depends(get_feed_service)
):
    post, creator = await feed.create_post(current_user['id'], title, content, image)
    return {'message': 'Post created successfully!', 'post': post, 'creator': creator}


@router.get('/post/{post_id}', response_model=PostDetailOut)
async def get_post(
    post_id: int,
    current_user: dict = Depends(get_current_user),
    feed: FeedService = Depends(get_feed_service)
):
    post = await feed.get_post(post_id)
    return {'message': 'Post fetched.', 'post': post}


@router.put('/post/{post_id}', response_model=PostDetailOut)
async def update_post(
    post_id: int,
    request: Request,
    title: str = Form(''),
    content: str = Form(''),
    current_user: dict = Depends(get_current_user),
    feed: FeedService = Depends(get_feed_service)
):
    # 'image' is either a fresh upload or the url the post already has
    form = await request.form()
    image = form.get('image')
    if not isinstance(image, (StarletteUploadFile, str)):
        image = None
    post = await feed.update_post(current_user['id'], post_id, title, content, image)
    return {'message': 'Post updated!', 'post': post}


@router.delete('/post/{post_id}', response_model=MessageOut)
async def delete_post(
    post_id: int,
    current_user: dict = Depends(get_current_user),
    feed: FeedService = Depends(get_feed_service)
):
    await feed.delete_post(current_user['id'], post_id)
    return {'message': 'Deleted post.'}
