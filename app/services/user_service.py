from sqlalchemy.orm import Session

from app.data.models.user import UserModel
from app.domain.errors import NotFound
from app.domain.schemas import FavouritesOut, UserCreate, UserRead
from app.repos.user_repo import UserRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)


class UserService:
    """Buyers are registered by id from the auth service, creation is idempotent."""

    def __init__(self, db: Session):
        self.repo = UserRepo(db)

    def create_user(self, payload: UserCreate) -> UserRead:
        existing = self.repo.get_user(payload.id)
        if existing:
            return UserRead.model_validate(existing)

        created = self.repo.create_user(UserModel(id=payload.id, name=payload.name.strip()))
        logger.info(f"Registered user {created.id}")
        return UserRead.model_validate(created)

    def get_user(self, user_id: int) -> UserRead:
        return UserRead.model_validate(self._get_existing(user_id))

    def get_favourites(self, user_id: int) -> FavouritesOut:
        self._get_existing(user_id)
        return FavouritesOut(user_id=user_id, product_ids=self.repo.get_favourite_product_ids(user_id))

    def _get_existing(self, user_id: int) -> UserModel:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFound("User not found")
        return user
