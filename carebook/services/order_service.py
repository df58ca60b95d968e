import logging
import uuid
from datetime import datetime
from typing import Optional, Tuple
from sqlalchemy.orm import Session
from carebook.config.database import transactional
from carebook.config.payment_config import payment_config
from carebook.models.booking import PaymentStatus
from carebook.models.marketplace import OrderStatus
from carebook.repositories import OrderPaymentRepository, OrderRepository, UserRepository
from carebook.repositories.records import OrderRecord, PaymentRecord
from carebook.schemas.order import OrderCreate
from carebook.services.midtrans_service import MidtransGateway
from carebook.services.payment_service import build_gateway_order_id, payment_expiry, split_name
from carebook.utils.clock import utcnow
from carebook.utils.errors import (
    GatewayError,
    InsufficientStock,
    InvalidOrderState,
    OrderNotFound,
    PaymentNotFound,
    ProductNotFound,
    UserNotFound,
)

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = {OrderStatus.PENDING_PAYMENT, OrderStatus.PROCESSING}


def generate_order_number(order_id: str, now: Optional[datetime] = None) -> str:
    """ORD-YYYYMMDD-XXXXXXXXXXXX, suffix taken from the order UUID"""
    stamp = (now or utcnow()).strftime("%Y%m%d")
    suffix = order_id.replace("-", "")[:12].upper()
    return f"ORD-{stamp}-{suffix}"


def admin_fee_for(subtotal: int) -> int:
    return int(round(subtotal * payment_config.MARKETPLACE_ADMIN_FEE_RATE))


class OrderService:
    @staticmethod
    def create_order(db: Session, gateway: MidtransGateway, order_data: OrderCreate) -> Tuple[OrderRecord, PaymentRecord]:
        """Reserve stock, create the order and issue its Snap checkout"""
        user = UserRepository(db).get(order_data.user_id)
        if not user:
            raise UserNotFound(f"User with ID {order_data.user_id} not found")

        orders = OrderRepository(db)
        lines = []
        for item in order_data.items:
            product = orders.get_product(item.product_id)
            if not product or not product.is_active:
                raise ProductNotFound(f"Product with ID {item.product_id} not found")
            if product.quantity < item.quantity:
                raise InsufficientStock(
                    f"Insufficient stock for {product.name}",
                    details={"product_id": product.id, "available": product.quantity, "requested": item.quantity}
                )
            lines.append({
                "product_id": product.id,
                "product_name": product.name,
                "product_price": product.price,
                "quantity": item.quantity,
                "subtotal": product.price * item.quantity,
            })

        subtotal = sum(line["subtotal"] for line in lines)
        admin_fee = admin_fee_for(subtotal)
        total_amount = subtotal + order_data.shipping_cost + admin_fee

        order_id = str(uuid.uuid4())
        with transactional(db):
            for line in lines:
                if not orders.decrement_stock(line["product_id"], line["quantity"]):
                    raise InsufficientStock(
                        f"Insufficient stock for {line['product_name']}",
                        details={"product_id": line["product_id"], "requested": line["quantity"]}
                    )
            order = orders.insert_order(
                lines,
                id=order_id,
                user_id=user.id,
                order_number=generate_order_number(order_id),
                subtotal=subtotal,
                shipping_cost=order_data.shipping_cost,
                admin_fee=admin_fee,
                total_amount=total_amount,
                status=OrderStatus.PENDING_PAYMENT,
                payment_status=PaymentStatus.PENDING,
                courier=order_data.courier,
                notes=order_data.notes,
            )

        # Gateway item prices must add up to gross_amount
        item_details = [
            {"id": line["product_id"], "price": line["product_price"], "quantity": line["quantity"],
             "name": line["product_name"][:50]}
            for line in lines
        ]
        if order_data.shipping_cost:
            item_details.append({"id": "SHIPPING", "price": order_data.shipping_cost, "quantity": 1,
                                 "name": f"Shipping {order_data.courier or ''}".strip()})
        if admin_fee:
            item_details.append({"id": "ADMIN_FEE", "price": admin_fee, "quantity": 1, "name": "Admin fee"})

        gateway_order_id = build_gateway_order_id(order.id, marketplace=True)
        try:
            checkout = gateway.create_transaction(
                order_id=gateway_order_id,
                gross_amount=total_amount,
                customer={**split_name(user.full_name), "email": user.email, "phone": user.phone_number or ""},
                items=item_details,
            )
        except GatewayError:
            OrderService._release(db, order, OrderStatus.CANCELLED, PaymentStatus.FAILED)
            logger.error(f"❌ Checkout failed for order {order.order_number}; stock released")
            raise

        with transactional(db):
            payment = OrderPaymentRepository(db).insert(
                owner_id=order.id,
                gateway_order_id=gateway_order_id,
                amount=total_amount,
                snap_token=checkout["token"],
                snap_redirect_url=checkout["redirect_url"],
                expiry_time=payment_expiry(),
            )

        logger.info(f"✓ Order {order.order_number} created with payment {gateway_order_id}")
        return order, payment

    @staticmethod
    def _release(db: Session, order: OrderRecord, status: OrderStatus, payment_status: PaymentStatus):
        orders = OrderRepository(db)
        with transactional(db):
            for item in order.items:
                orders.restore_stock(item.product_id, item.quantity)
            orders.set_order_status(order.id, status=status, payment_status=payment_status)

    @staticmethod
    def get_order(db: Session, order_id: str, user_id: Optional[str] = None) -> OrderRecord:
        order = OrderRepository(db).get_order(order_id)
        if not order or (user_id and order.user_id != user_id):
            raise OrderNotFound(f"Order with ID {order_id} not found")
        return order

    @staticmethod
    def list_orders(
        db: Session,
        user_id: str,
        status: Optional[OrderStatus] = None,
        page: int = 1,
        limit: int = 20
    ):
        return OrderRepository(db).list_orders(user_id, status, page, limit)

    @staticmethod
    def get_order_payment(db: Session, order_payment_id: str) -> PaymentRecord:
        payment = OrderPaymentRepository(db).get_by_gateway_id(order_payment_id)
        if not payment:
            raise PaymentNotFound(f"Order payment with order_id {order_payment_id} not found")
        return payment

    @staticmethod
    def cancel_order(db: Session, gateway: MidtransGateway, user_id: str, order_id: str) -> OrderRecord:
        orders = OrderRepository(db)
        payments = OrderPaymentRepository(db)

        with transactional(db):
            order = orders.get_order(order_id, for_update=True)
            if not order or order.user_id != user_id:
                raise OrderNotFound(f"Order with ID {order_id} not found")
            if order.status not in CANCELLABLE_STATUSES:
                raise InvalidOrderState(
                    "Order cannot be cancelled at this stage",
                    details={"current_status": order.status.value}
                )

            for item in order.items:
                orders.restore_stock(item.product_id, item.quantity)
            orders.set_order_status(order.id, status=OrderStatus.CANCELLED, payment_status=PaymentStatus.FAILED)

            payment = payments.get_by_owner(order.id)
            if payment:
                payments.set_status(payment.id, PaymentStatus.FAILED)

        if payment and payment.status == PaymentStatus.PENDING:
            try:
                gateway.cancel_transaction(payment.gateway_order_id)
            except GatewayError as e:
                logger.warning(f"Gateway cancel for {payment.gateway_order_id} ignored: {e.message}")

        logger.info(f"✓ Order {order.order_number} cancelled; stock restored")
        return orders.get_order(order_id)
