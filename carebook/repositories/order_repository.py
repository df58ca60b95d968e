"""Order repository - products, stock and marketplace orders"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from carebook.models import Order, OrderItem, OrderStatus, PaymentStatus, Product
from carebook.repositories.records import OrderRecord, ProductRecord


class OrderRepository:
    """Repository for marketplace database operations"""

    def __init__(self, db: Session):
        self.db = db

    # Products

    def get_product(self, product_id: str) -> Optional[ProductRecord]:
        row = self.db.query(Product).filter(Product.id == product_id).first()
        return ProductRecord.from_row(row) if row else None

    def create_product(self, name: str, price: int, quantity: int, is_active: bool = True) -> ProductRecord:
        row = Product(name=name, price=price, quantity=quantity, is_active=is_active)
        self.db.add(row)
        self.db.flush()
        return ProductRecord.from_row(row)

    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Take units out of stock; False when fewer than ``quantity`` remain"""
        updated = self.db.query(Product).filter(
            Product.id == product_id,
            Product.quantity >= quantity
        ).update(
            {"quantity": Product.quantity - quantity},
            synchronize_session=False
        )
        return updated == 1

    def restore_stock(self, product_id: str, quantity: int) -> None:
        self.db.query(Product).filter(Product.id == product_id).update(
            {"quantity": Product.quantity + quantity},
            synchronize_session=False
        )

    # Orders

    def _items(self, order_id: str) -> List[OrderItem]:
        return self.db.query(OrderItem).filter(OrderItem.order_id == order_id).order_by(OrderItem.product_name).all()

    def insert_order(self, items: List[dict], **fields) -> OrderRecord:
        row = Order(**fields)
        self.db.add(row)
        self.db.flush()

        item_rows = [OrderItem(order_id=row.id, **item) for item in items]
        self.db.add_all(item_rows)
        self.db.flush()
        return OrderRecord.from_row(row, item_rows)

    def get_order(self, order_id: str, for_update: bool = False) -> Optional[OrderRecord]:
        query = self.db.query(Order).filter(Order.id == order_id)
        if for_update:
            query = query.with_for_update()
        row = query.first()
        return OrderRecord.from_row(row, self._items(row.id)) if row else None

    def list_orders(
        self,
        user_id: str,
        status: Optional[OrderStatus] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[OrderRecord], int]:
        query = self.db.query(Order).filter(Order.user_id == user_id)
        if status is not None:
            query = query.filter(Order.status == status)

        total = query.count()
        rows = query.order_by(Order.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
        return [OrderRecord.from_row(row, self._items(row.id)) for row in rows], total

    def set_order_status(
        self,
        order_id: str,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        paid_at: Optional[datetime] = None
    ) -> Optional[OrderRecord]:
        row = self.db.query(Order).filter(Order.id == order_id).first()
        if not row:
            return None

        if status is not None:
            row.status = status
        if payment_status is not None:
            row.payment_status = payment_status
        if paid_at is not None:
            row.paid_at = paid_at

        self.db.flush()
        return OrderRecord.from_row(row, self._items(row.id))
