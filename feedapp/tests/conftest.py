import io
import os
import sys
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image

# Configure test environment before the app reads it at import time
TEST_ROOT = tempfile.mkdtemp(prefix='feedapp_test_')
os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{os.path.join(TEST_ROOT, 'test.db')}"
os.environ['IMAGE_DIR'] = os.path.join(TEST_ROOT, 'images')
os.environ['METRICS_PORT'] = '0'
os.environ['LOG_LEVEL'] = 'WARNING'
os.environ.pop('AWS_S3_BUCKET', None)
os.environ.pop('AWS_S3_BUCKET_NAME', None)
os.environ.pop('IMAGE_UPLOAD_STRICT', None)

# Ensure the package root is on sys.path when pytest changes CWD to this tests dir
HERE = Path(__file__).resolve()
PKG_ROOT = HERE.parents[2]
if str(PKG_ROOT) not in sys.path:
    sys.path.insert(0, str(PKG_ROOT))

from feedapp.models import Base, engine  # noqa: E402
from feedapp.main import app  # noqa: E402
from feedapp import core  # noqa: E402


class FakeSocket:
    """Stands in for a connected websocket client"""

    def __init__(self, fail=False):
        self.fail = fail
        self.accepted = False
        self.closed = False
        self.messages = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError('socket gone')
        self.messages.append(data)

    async def close(self, code=1000):
        self.closed = True


@pytest_asyncio.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(db):
    async with app.router.lifespan_context(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as ac:
            yield ac


@pytest_asyncio.fixture
async def live_socket(client):
    sock = FakeSocket()
    await core.get_notifier().connect(sock)
    return sock


@pytest.fixture
def register(client):
    async def _register(email, name='Tester', password='secret1'):
        r = await client.put('/auth/signup', json={'email': email, 'name': name, 'password': password})
        assert r.status_code == 201, r.text
        login = await client.post('/auth/login', json={'email': email, 'password': password})
        assert login.status_code == 200, login.text
        body = login.json()
        return {'Authorization': f"Bearer {body['token']}"}, body['userId']
    return _register


@pytest.fixture
def png_bytes():
    buf = io.BytesIO()
    Image.new('RGB', (4, 4), color='red').save(buf, format='PNG')
    return buf.getvalue()


@pytest.fixture
def make_socket():
    return FakeSocket
