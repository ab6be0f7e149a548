import logging
from typing import Any, List, Optional

from ..events.bus import ORDER_PAYMENT_CONFIRMED, ORDER_PLACED
from ..exceptions import ClientError, PreconditionError, ValidationError
from ..schemas.cart import Cart
from ..schemas.order import OrderHistory, OrderPaymentStatus
from ..schemas.payment import ManualPaymentAck, ManualPaymentRequest, PaymentMethod

logger = logging.getLogger(__name__)

CONFIRMED_ORDER_STATUS = "confirmed"


def default_payment_method(methods: List[PaymentMethod]) -> Optional[PaymentMethod]:
    """Метод по умолчанию: отмеченный is_default, иначе первый"""
    for method in methods:
        if method.is_default == 1:
            return method
    return methods[0] if methods else None


class OrderService:
    """Методы оплаты, ручная оплата по чеку и история заказов"""

    def __init__(self, context):
        self.context = context
        self.api = context.api
        self.persistence = context.persistence
        self.events = context.events
        self.active_order_token: Optional[str] = None
        self.last_order_status: Optional[OrderPaymentStatus] = None

    async def activate(self) -> Optional[OrderPaymentStatus]:
        """Восстанавливает токен заказа и тихо проверяет его статус"""
        self.active_order_token = self.persistence.load_order_token()
        if not self.active_order_token:
            return None
        return await self.refresh_order_status(silent=True)

    async def fetch_payment_methods(self) -> List[PaymentMethod]:
        return await self.api.fetch_payment_methods()

    async def submit_manual_payment(
            self,
            method: PaymentMethod,
            cart: Optional[Cart],
            location_id: Any,
            proof_image: Optional[bytes],
            filename: str = "payment-slip.jpg"
    ) -> ManualPaymentAck:
        """Оформить заказ с оплатой переводом и фото чека"""
        if cart is None or location_id in (None, ""):
            raise PreconditionError("Missing cart or location information.")
        if not proof_image:
            raise ValidationError("Please upload your payment slip.")

        request = ManualPaymentRequest(
            cart_id=cart.id,
            location_id=location_id,
            payment_method_id=method.id,
            amount=cart.total,
        )

        try:
            ack = await self.api.submit_manual_payment(request, proof_image, filename)
        except ClientError as e:
            logger.error(f"❌ Manual payment for cart {cart.id} failed: {e}")
            raise

        if ack.order_token:
            self.active_order_token = ack.order_token
            self.persistence.save_order_token(ack.order_token)

        logger.info(f"🧾 Order placed for cart {cart.id} via {method.slug}")
        await self.events.publish(ORDER_PLACED, {
            "cart_id": cart.id,
            "order_token": ack.order_token,
            "payment_method_id": method.id,
        })
        return ack

    async def refresh_order_status(self, silent: bool = False) -> Optional[OrderPaymentStatus]:
        """Проверить оплату активного заказа.

        В тихом режиме (при запуске) ошибки только логируются.
        """
        token = self.active_order_token
        if not token:
            return None

        try:
            status = await self.api.check_order_payment_status(token)
        except ClientError as e:
            if silent:
                logger.warning(f"⚠️ Silent order status check failed: {e}")
                return None
            raise

        self.last_order_status = status
        if status.status == CONFIRMED_ORDER_STATUS:
            self.active_order_token = None
            self.persistence.save_order_token(None)
            logger.info(f"✅ Payment for order token {token} confirmed")
            await self.events.publish(ORDER_PAYMENT_CONFIRMED, {"order_token": token})
        return status

    async def fetch_order_history(self) -> OrderHistory:
        return await self.api.fetch_order_history(self.context.session_id)
