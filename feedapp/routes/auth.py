from fastapi import APIRouter, Depends
from ..schemas.users import SignupIn, SignupOut, LoginIn, TokenOut, StatusIn, StatusOut
from ..crud import create_user, authenticate_user, get_status, update_status
from ..auth import get_current_user

router = APIRouter()


@router.put('/signup', response_model=SignupOut, status_code=201)
async def signup(payload: SignupIn):
    user_id = await create_user(payload.email, payload.name, payload.password)
    return {'message': 'User created!', 'userId': user_id}


@router.post('/login', response_model=TokenOut)
async def login(payload: LoginIn):
    return await authenticate_user(payload.email, payload.password)


@router.get('/status', response_model=StatusOut)
async def read_status(current_user: dict = Depends(get_current_user)):
    status = await get_status(current_user['id'])
    return {'message': 'User status fetched.', 'status': status}


@router.put('/status', response_model=StatusOut)
async def write_status(payload: StatusIn, current_user: dict = Depends(get_current_user)):
    status = await update_status(current_user['id'], payload.status)
    return {'message': 'User status updated.', 'status': status}
