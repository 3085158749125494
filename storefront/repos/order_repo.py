# storefront/repos/order_repo.py
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        stmt = select(OrderModel).options(selectinload(OrderModel.items)).where(OrderModel.id == order_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_order_by_number(self, order_number: str) -> OrderModel | None:
        stmt = (
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .where(OrderModel.order_number == order_number)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_orders(
        self,
        page: int,
        limit: int,
        user_id: int | None = None,
        status: str | None = None,
    ) -> tuple[list[OrderModel], int]:
        filters = []
        if user_id is not None:
            filters.append(OrderModel.user_id == user_id)
        if status is not None:
            filters.append(OrderModel.status == status)

        stmt = (
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .where(*filters)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        orders = list(self.db.execute(stmt).scalars().all())
        total = self.db.execute(select(func.count(OrderModel.id)).where(*filters)).scalar_one()
        return orders, total

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
