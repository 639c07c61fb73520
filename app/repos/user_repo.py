from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session
from app.data.models.user import UserModel, FavouriteProductModel

class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> UserModel | None:
        return self.db.get(UserModel, user_id)

    def create_user(self, user: UserModel) -> UserModel:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def get_favourite(self, user_id: int, product_id: int) -> FavouriteProductModel | None:
        return self.db.execute(
            select(FavouriteProductModel).where(
                FavouriteProductModel.user_id == user_id,
                FavouriteProductModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def add_favourite(self, user_id: int, product_id: int) -> None:
        # no commit, the caller owns the transaction
        if self.get_favourite(user_id, product_id) is None:
            self.db.add(FavouriteProductModel(user_id=user_id, product_id=product_id))

    def get_favourite_product_ids(self, user_id: int) -> List[int]:
        return list(
            self.db.execute(
                select(FavouriteProductModel.product_id)
                .where(FavouriteProductModel.user_id == user_id)
                .order_by(FavouriteProductModel.id)
            ).scalars().all()
        )
