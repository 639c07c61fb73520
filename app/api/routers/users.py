from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.data.database import get_db
from app.services.user_service import UserService
from app.domain.schemas import FavouritesOut, UserCreate, UserRead

router = APIRouter(prefix="/users", tags=["users"])

@router.post("/", response_model=UserRead)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    service = UserService(db)
    return service.create_user(payload)

@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, db: Session = Depends(get_db)):
    service = UserService(db)
    return service.get_user(user_id)

@router.get("/{user_id}/favourites", response_model=FavouritesOut)
def get_favourites(user_id: int, db: Session = Depends(get_db)):
    service = UserService(db)
    return service.get_favourites(user_id)
