import inspect
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# Типы событий состояния
CART_UPDATED = "cart.updated"
CART_INVALIDATED = "cart.invalidated"
PAYMENT_CODE_GENERATED = "payment.code_generated"
PAYMENT_CONFIRMED = "payment.confirmed"
PAYMENT_CANCELLED = "payment.cancelled"
PAYMENT_FAILED = "payment.failed"
ORDER_PLACED = "order.placed"
ORDER_PAYMENT_CONFIRMED = "order.payment_confirmed"


class StateEventBus:
    """Внутрипроцессная шина событий: UI подписывается на изменения состояния"""

    def __init__(self):
        self.handlers: Dict[str, List[Callable]] = {}

    def register_handler(self, event_type: str, handler: Callable):
        """Регистрирует обработчик для определенного типа событий"""
        self.handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Registered handler for event type: {event_type}")

    def unregister_handler(self, event_type: str, handler: Callable):
        handlers = self.handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event_type: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Доставляет событие всем обработчикам, ошибки обработчиков изолированы"""
        event = {
            "event_id": str(uuid.uuid4()),
            "event_type": event_type,
            "event_timestamp": datetime.now(timezone.utc).isoformat(),
            "payload": payload or {},
        }

        for handler in list(self.handlers.get(event_type, [])):
            try:
                result = handler(event["payload"], event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"❌ Error in handler for {event_type}: {e}")

        return event
