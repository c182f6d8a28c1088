# backend/app/repositories/shop_repository.py
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.shop import Shop, ShopPolicy

from .base_repository import BaseRepository


class ShopRepository(BaseRepository[Shop]):
    def __init__(self, db: Session):
        super().__init__(db, Shop)

    def list_ids(self) -> List[str]:
        return [row.id for row in self.db.query(Shop.id).order_by(Shop.id.asc()).all()]

    def get_policy(self, shop_id: str) -> Optional[ShopPolicy]:
        return self.db.query(ShopPolicy).filter(ShopPolicy.shop_id == shop_id).first()
