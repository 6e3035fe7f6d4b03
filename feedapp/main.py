import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .routes import router
from .core import init_metrics, notifier_startup, shutdown_connections
from .errors import FeedError
from .feed import FeedService
from .storage import ImageStorage
import logging
from pythonjsonlogger import jsonlogger

# setup structured logging
logger = logging.getLogger('feedapp')
handler = logging.StreamHandler()
formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s')
handler.setFormatter(formatter)
logger.addHandler(handler)
logger.setLevel(os.getenv('LOG_LEVEL', 'INFO').upper())

POSTS_PER_PAGE = int(os.getenv('POSTS_PER_PAGE', '3'))
CORS_ORIGINS = [o.strip() for o in os.getenv('CORS_ORIGINS', '*').split(',') if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_metrics()
    notifier = notifier_startup()
    app.state.feed = FeedService(notifier, ImageStorage(), per_page=POSTS_PER_PAGE)
    logger.info({'msg': 'startup_complete'})
    yield
    await shutdown_connections()
    app.state.feed = None


app = FastAPI(title="Feed API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(router)

@app.get('/healthz')
async def healthz():
    return {'status': 'ok'}

@app.middleware('http')
async def log_requests(request: Request, call_next):
    logger.info({'msg':'request_start','method':request.method,'path':request.url.path})
    response = await call_next(request)
    logger.info({'msg':'request_end','status': response.status_code})
    return response

@app.exception_handler(FeedError)
async def handle_feed_error(request: Request, exc: FeedError):
    if exc.status_code >= 500:
        logger.error({'msg': 'request_failed', 'path': request.url.path, 'error': exc.message})
    body = {'message': exc.message}
    if exc.data is not None:
        body['data'] = exc.data
    return JSONResponse(status_code=exc.status_code, content=body)

@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    data = [
        {'field': '.'.join(str(p) for p in err.get('loc', ())[1:]), 'message': err.get('msg')}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=422, content={'message': 'Validation failed.', 'data': data})

@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={'message': str(exc.detail)})

@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception):
    logger.exception({'msg': 'unhandled_error', 'path': request.url.path})
    return JSONResponse(status_code=500, content={'message': 'Internal server error.'})
