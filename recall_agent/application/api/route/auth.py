from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from .agent import get_services

router = APIRouter()


class Credentials(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class SignupResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    user_id: int = Field(alias="userId")


class LoginResponse(BaseModel):
    token: str


@router.post("/signup", response_model=SignupResponse)
async def signup_endpoint(body: Credentials, services=Depends(get_services)):
    user_id = await services.user_store.create(body.email, body.password)
    return SignupResponse(message="User created!", user_id=user_id)


@router.post("/login", response_model=LoginResponse)
async def login_endpoint(body: Credentials, services=Depends(get_services)):
    user = await services.user_store.authenticate(body.email, body.password)
    return LoginResponse(token=services.token_validator.issue(user.id, user.is_admin))
