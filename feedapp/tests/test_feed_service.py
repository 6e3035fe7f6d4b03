import io
import os

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from feedapp.crud import create_user
from feedapp.errors import ForbiddenError, AuthError, NotFoundError, ValidationError, ImageUploadError
from feedapp.feed import FeedService
from feedapp.storage import ImageStorage
from feedapp.ws_manager import ChangeNotifier


class RecordingNotifier(ChangeNotifier):
    def __init__(self):
        super().__init__()
        self.events = []
        self.start()

    def emit(self, event):
        super().emit(event)
        self.events.append(event)


@pytest.fixture
def service(tmp_path):
    return FeedService(RecordingNotifier(), ImageStorage(upload_dir=str(tmp_path), bucket=None))


def image(data):
    return UploadFile(file=io.BytesIO(data), filename='pic.png')


@pytest.mark.asyncio
async def test_ownership_is_checked_against_stored_creator(db, service, png_bytes):
    owner = await create_user('svc-owner@example.com', 'Owner', 'secret1')
    intruder = await create_user('svc-intruder@example.com', 'Intruder', 'secret1')
    post, creator = await service.create_post(owner, 'Hello world', 'First post body', image(png_bytes))
    assert creator == {'id': owner, 'name': 'Owner'}

    with pytest.raises(ForbiddenError) as exc:
        await service.update_post(intruder, post['id'], 'New title!', 'New content', post['image_url'])
    assert isinstance(exc.value, AuthError)
    assert exc.value.status_code == 403
    with pytest.raises(ForbiddenError):
        await service.delete_post(intruder, post['id'])

    # a string id from the token still matches the integer creator id
    updated = await service.update_post(str(owner), post['id'], 'New title!', 'New content', post['image_url'])
    assert updated['title'] == 'New title!'
    await service.delete_post(owner, post['id'])
    with pytest.raises(NotFoundError):
        await service.get_post(post['id'])

    assert [e['action'] for e in service.notifier.events] == ['create', 'update', 'delete']


@pytest.mark.asyncio
async def test_list_rejects_bad_window(db, service):
    with pytest.raises(ValidationError):
        await service.list_posts(page=0)
    with pytest.raises(ValidationError):
        await service.list_posts(page=1, per_page=-1)
    with pytest.raises(ValidationError):
        await service.list_posts(page=1, per_page=0)
    items, total = await service.list_posts(page=1)
    assert items == [] and total == 0


@pytest.mark.asyncio
async def test_create_for_unknown_user_fails(db, service, png_bytes):
    with pytest.raises(NotFoundError):
        await service.create_post(999, 'Hello world', 'First post body', image(png_bytes))
    assert service.notifier.events == []


@pytest.mark.asyncio
async def test_strict_upload_failure_creates_nothing(db, tmp_path, png_bytes):
    storage = ImageStorage(upload_dir=str(tmp_path), bucket='feed-images', strict=True)

    async def broken(content, key, content_type):
        raise OSError('network down')

    storage._upload_to_s3 = broken
    service = FeedService(RecordingNotifier(), storage)
    owner = await create_user('strict@example.com', 'Strict', 'secret1')

    with pytest.raises(ImageUploadError):
        await service.create_post(owner, 'Hello world', 'First post body', image(png_bytes))
    items, total = await service.list_posts()
    assert total == 0
    assert service.notifier.events == []
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_lenient_upload_failure_still_creates_post(db, tmp_path, png_bytes):
    storage = ImageStorage(upload_dir=str(tmp_path), bucket='feed-images', strict=False)

    async def broken(content, key, content_type):
        raise OSError('network down')

    storage._upload_to_s3 = broken
    service = FeedService(RecordingNotifier(), storage)
    owner = await create_user('lenient@example.com', 'Lenient', 'secret1')

    post, _ = await service.create_post(owner, 'Hello world', 'First post body', image(png_bytes))
    assert post['image_url'].startswith('/images/')
    assert len(service.notifier.events) == 1


@pytest.mark.asyncio
async def test_unstarted_notifier_is_fatal(db, tmp_path, png_bytes):
    service = FeedService(ChangeNotifier(), ImageStorage(upload_dir=str(tmp_path), bucket=None))
    owner = await create_user('early@example.com', 'Early', 'secret1')
    with pytest.raises(RuntimeError):
        await service.create_post(owner, 'Hello world', 'First post body', image(png_bytes))


@pytest.mark.asyncio
async def test_failed_commit_removes_stored_image(db, service, tmp_path, png_bytes, monkeypatch):
    owner = await create_user('commit@example.com', 'Commit', 'secret1')
    post, _ = await service.create_post(owner, 'Hello world', 'First post body', image(png_bytes))
    kept = os.listdir(tmp_path)
    assert len(kept) == 1

    async def broken_commit(self):
        raise RuntimeError('database went away')

    monkeypatch.setattr(AsyncSession, 'commit', broken_commit)
    with pytest.raises(RuntimeError):
        await service.create_post(owner, 'Second post', 'Second post body', image(png_bytes))
    with pytest.raises(RuntimeError):
        await service.update_post(owner, post['id'], 'New title!', 'New content', image(png_bytes))
    monkeypatch.undo()

    # only the first post's image is left, and it is still referenced
    assert os.listdir(tmp_path) == kept
    assert (await service.get_post(post['id']))['image_url'] == post['image_url']
    assert [e['action'] for e in service.notifier.events] == ['create']
