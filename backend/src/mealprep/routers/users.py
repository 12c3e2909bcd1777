# backend/src/mealprep/routers/users.py
import uuid

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel
from sqlmodel import Session

from mealprep.core.database import get_session
from mealprep.deps import get_current_user_id, get_recipe_service
from mealprep.models.users import UserCreate, UserRead, UserUpdate
from mealprep.repositories import users as users_repo
from mealprep.services.recipes import RecipeService

router = APIRouter()


class LoginRequest(BaseModel):
    login: str
    password: str


class PasswordChange(BaseModel):
    current_password: str
    new_password: str


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED, summary="Register")
def register(payload: UserCreate, session: Session = Depends(get_session)):
    return users_repo.create_user(session, payload)


@router.post("/login", response_model=UserRead, summary="Check credentials")
def login(payload: LoginRequest, session: Session = Depends(get_session)):
    user = users_repo.authenticate_user(session, payload.login, payload.password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return user


@router.get("/me", response_model=UserRead)
def me(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return users_repo.get_user_by_id(session, user_id)


@router.patch("/me", response_model=UserRead, summary="Update profile")
def update_me(
    payload: UserUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    return users_repo.update_user_profile(session, user_id, payload)


@router.post("/me/password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    payload: PasswordChange,
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    users_repo.change_password(session, user_id, payload.current_password, payload.new_password)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT, summary="Delete account and owned data")
def delete_me(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session: Session = Depends(get_session),
    service: RecipeService = Depends(get_recipe_service),
):
    service.delete_user_account(session, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
