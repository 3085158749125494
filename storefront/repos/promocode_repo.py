# storefront/repos/promocode_repo.py
from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from storefront.data.models.promocode import PromocodeModel


class PromocodeRepo:
    def __init__(self, db: Session):
        self.db = db

    def find_valid(self, code: str, now: datetime) -> PromocodeModel | None:
        stmt = select(PromocodeModel).where(
            PromocodeModel.code == code,
            PromocodeModel.is_active.is_(True),
            PromocodeModel.valid_from <= now,
            PromocodeModel.valid_to >= now,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def increment_usage(self, promocode_id: int) -> bool:
        # conditional increment, never pushes used_count past max_uses
        result = self.db.execute(
            update(PromocodeModel)
            .where(
                PromocodeModel.id == promocode_id,
                or_(
                    PromocodeModel.max_uses.is_(None),
                    PromocodeModel.used_count < PromocodeModel.max_uses,
                ),
            )
            .values(used_count=PromocodeModel.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
