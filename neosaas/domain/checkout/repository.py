"""Checkout repository - Database operations for carts, orders and appointments"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import (
    Appointment,
    Cart,
    CartItem,
    CartStatus,
    DeliveryStatus,
    Order,
    OrderItem,
    Product,
)


class CheckoutRepository:
    """Repository for checkout database operations"""

    @staticmethod
    def get_product(db: Session, product_id: str) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id).first()

    @staticmethod
    def get_active_cart(db: Session, cart_id: str, user_id: str) -> Optional[Cart]:
        """Active cart owned by the user, with items and their products loaded"""
        return (
            db.query(Cart)
            .options(joinedload(Cart.items).joinedload(CartItem.product))
            .filter(
                Cart.id == cart_id,
                Cart.user_id == user_id,
                Cart.status == CartStatus.ACTIVE.value,
            )
            .first()
        )

    @staticmethod
    def mark_cart_converted(db: Session, cart_id: str) -> None:
        db.query(Cart).filter(Cart.id == cart_id).update(
            {"status": CartStatus.CONVERTED.value, "updated_at": datetime.utcnow()},
            synchronize_session="fetch",
        )
        db.commit()

    @staticmethod
    def create_appointment(db: Session, **fields) -> Appointment:
        appointment = Appointment(**fields)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def get_appointment(db: Session, appointment_id: str) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def create_order(db: Session, items: list[CartItem], **fields) -> Order:
        """Insert an order and one order item per cart item (delivery pending)"""
        order = Order(**fields)
        db.add(order)
        db.flush()

        for item in items:
            product = item.product
            db.add(
                OrderItem(
                    order_id=order.id,
                    item_type=product.type,
                    item_id=product.id,
                    item_name=product.title,
                    item_description=product.description,
                    quantity=item.quantity,
                    unit_price=product.price,
                    total_price=product.price * item.quantity,
                    delivery_status=DeliveryStatus.PENDING.value,
                )
            )

        db.commit()
        db.refresh(order)
        return order

    @staticmethod
    def mark_order_items_delivered(db: Session, order_id: str) -> int:
        count = (
            db.query(OrderItem)
            .filter(OrderItem.order_id == order_id)
            .update(
                {
                    "delivery_status": DeliveryStatus.DELIVERED.value,
                    "delivered_at": datetime.utcnow(),
                },
                synchronize_session="fetch",
            )
        )
        db.commit()
        return count
