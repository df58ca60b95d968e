import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from carebook.config.database import SessionLocal
from carebook.models.booking import PaymentStatus
from carebook.repositories import BookingPaymentRepository, OrderPaymentRepository
from carebook.services import reconciliation
from carebook.services.midtrans_service import MidtransGateway, get_payment_gateway
from carebook.utils.clock import utcnow
from carebook.utils.errors import CareBookError, GatewayError

logger = logging.getLogger(__name__)


class ExpiryService:
    @staticmethod
    def _expire_upstream(gateway: MidtransGateway, gateway_order_id: str) -> PaymentStatus:
        """Expire the transaction at Midtrans; if it refuses, use the status it reports"""
        try:
            gateway.expire_transaction(gateway_order_id)
            return PaymentStatus.EXPIRED
        except GatewayError as e:
            logger.warning(f"Gateway refused to expire {gateway_order_id}: {e.message}")

        try:
            status = gateway.get_transaction_status(gateway_order_id)
        except GatewayError:
            # Never opened at the gateway
            return PaymentStatus.EXPIRED
        return reconciliation.map_transaction_status(status.get("transaction_status"), status.get("fraud_status"))

    @staticmethod
    def expire_overdue(db: Session, now: Optional[datetime] = None, gateway: Optional[MidtransGateway] = None) -> int:
        """Apply the gateway 'expire' transition to PENDING payments past expiry_time"""
        now = now or utcnow()
        overdue = (
            BookingPaymentRepository(db).pending_past_expiry(now)
            + OrderPaymentRepository(db).pending_past_expiry(now)
        )
        # The read above opened a transaction; close it before each unit of work
        db.commit()

        expired = 0
        for payment in overdue:
            payment_status = PaymentStatus.EXPIRED
            if gateway:
                payment_status = ExpiryService._expire_upstream(gateway, payment.gateway_order_id)
            try:
                result = reconciliation.apply_update(db, payment.gateway_order_id, payment_status)
            except CareBookError as e:
                logger.error(f"❌ Could not expire {payment.gateway_order_id}: {e.message}")
                continue
            if result.payment_status == PaymentStatus.EXPIRED:
                expired += 1

        if expired:
            logger.info(f"✓ Expired {expired} overdue payment(s)")
        return expired


def sweep_once() -> int:
    db = SessionLocal()
    try:
        return ExpiryService.expire_overdue(db, gateway=get_payment_gateway())
    finally:
        db.close()


async def run_expiry_sweep(interval_seconds: int):
    """Background loop started from the application lifespan"""
    logger.info(f"Payment expiry sweep every {interval_seconds}s")
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(sweep_once)
        except Exception as e:
            logger.error(f"❌ Payment expiry sweep failed: {e}")
