import httpx
import logging
from decimal import Decimal
from typing import Any, List, Optional

from ..config import settings
from ..exceptions import TransportError
from ..schemas.cart import Cart, CartCreate
from ..schemas.cart_item import CartItemAdd, CartItemUpdate
from ..schemas.location import Location, ProductDescriptor, TableSession, Zone
from ..schemas.order import OrderHistory, OrderPaymentStatus
from ..schemas.payment import (
    STAFF_PAYMENT_METHOD,
    ManualPaymentAck,
    ManualPaymentRequest,
    PaymentCodeRecord,
    PaymentCodeRequest,
    PaymentFamily,
    PaymentMethod,
    PaymentStatusResult,
)

logger = logging.getLogger(__name__)


class RemoteStoreClient:
    """Клиент для взаимодействия с backend QR-меню.

    Клиент не хранит состояние корзины: каждый метод делает ровно один
    запрос и возвращает разобранный ответ либо бросает ``TransportError``.
    """

    def __init__(
            self,
            base_url: Optional[str] = None,
            api_token: Optional[str] = None,
            timeout: Optional[float] = None,
            transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.api_token = api_token or settings.api_token
        self.timeout = timeout or settings.http_timeout
        self._transport = transport
        self.http: Optional[httpx.AsyncClient] = None

    async def start(self):
        """Открывает HTTP-сессию"""
        if self.http is None:
            self.http = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json", "X-API-Token": self.api_token},
            )
            logger.info(f"✅ Remote store client started ({self.base_url})")

    async def close(self):
        """Закрывает HTTP-сессию"""
        if self.http is not None:
            try:
                await self.http.aclose()
                logger.info("✅ Remote store client closed")
            except Exception as e:
                logger.error(f"❌ Error closing remote store client: {e}")
            finally:
                self.http = None

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Выполняет запрос и возвращает JSON тела"""
        if self.http is None:
            await self.start()

        try:
            response = await self.http.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"❌ Timeout on {method} {path}")
            raise TransportError(f"Request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            logger.error(f"❌ Network error on {method} {path}: {e}")
            raise TransportError(f"Network error: {e}") from e

        if response.is_error:
            fallback = f"API Error: {response.status_code} {response.reason_phrase}"
            try:
                message = response.json().get("message") or fallback
            except (ValueError, AttributeError):
                message = fallback
            logger.warning(f"⚠️ {method} {path} failed: {message}")
            raise TransportError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON in response to {method} {path}",
                                 status_code=response.status_code) from e

    async def _request_data(self, method: str, path: str, fallback: str, **kwargs) -> Any:
        """Разворачивает конверт {success, message, data}"""
        payload = await self._request(method, path, **kwargs)
        if isinstance(payload, dict) and payload.get("success") and payload.get("data") is not None:
            return payload["data"]
        message = payload.get("message") if isinstance(payload, dict) else None
        raise TransportError(message or fallback)

    # Локации, столы, меню

    async def fetch_locations(self) -> List[Location]:
        payload = await self._request("GET", "/locations")
        if isinstance(payload, list):
            rows = payload
        elif isinstance(payload, dict) and isinstance(payload.get("data"), list):
            rows = payload["data"]
        else:
            rows = []
        return [Location.model_validate(row) for row in rows]

    async def fetch_tables(self, location_id: Any) -> List[Zone]:
        payload = await self._request("GET", "/tables", params={"location_id": location_id})
        rows = payload.get("data") if isinstance(payload, dict) else None
        return [Zone.model_validate(row) for row in rows or []]

    async def fetch_products(self, location_id: Any, category_id: Any = None) -> List[ProductDescriptor]:
        params = {"location_id": location_id}
        if category_id:
            params["category_id"] = category_id

        payload = await self._request("GET", "/products", params=params)
        data = payload.get("data") if isinstance(payload, dict) else None

        # Пагинация: data.data
        if isinstance(data, dict) and isinstance(data.get("data"), list):
            return [ProductDescriptor.from_variant_payload(row) for row in data["data"]]
        if isinstance(data, list):
            return [ProductDescriptor.model_validate(row) for row in data]
        return []

    async def start_table_session(self, table_id: int) -> TableSession:
        data = await self._request_data(
            "POST", "/table-sessions/start", "Failed to start table session",
            json={"qr_code": None, "table_id": table_id},
        )
        return TableSession.model_validate(data)

    # Корзина

    async def create_cart(self, session_id: str, table_session_id: Optional[int] = None) -> Cart:
        body = CartCreate(session_id=session_id, table_session_id=table_session_id)
        data = await self._request_data(
            "POST", "/cart/create", "Failed to create cart",
            json=body.model_dump(mode="json", exclude_none=True),
        )
        return Cart.model_validate(data)

    async def fetch_cart(self, session_id: str) -> Cart:
        data = await self._request_data(
            "GET", "/cart", "Failed to fetch cart", params={"session_id": session_id}
        )
        return Cart.model_validate(data)

    async def add_to_cart(self, item: CartItemAdd) -> Cart:
        data = await self._request_data(
            "POST", "/cart/add", "Failed to add item to cart", json=item.model_dump(mode="json")
        )
        return Cart.model_validate(data)

    async def update_cart_item(self, session_id: str, item_id: int, quantity: int) -> Cart:
        body = CartItemUpdate(session_id=session_id, cart_item_id=item_id, quantity=quantity)
        data = await self._request_data(
            "PATCH", "/cart/update", "Failed to update cart item", json=body.model_dump(mode="json")
        )
        return Cart.model_validate(data)

    async def remove_cart_item(self, session_id: str, item_id: int) -> Cart:
        data = await self._request_data(
            "DELETE", "/cart/remove", "Failed to remove cart item",
            params={"session_id": session_id, "cart_item_id": item_id},
        )
        return Cart.model_validate(data)

    # Оплата

    async def fetch_payment_methods(self) -> List[PaymentMethod]:
        """Методы оплаты сервера плюс оплата через официанта"""
        data = await self._request_data("GET", "/payment-methods", "Failed to fetch payment methods")
        if not isinstance(data, list):
            raise TransportError("Failed to fetch payment methods")
        methods = [PaymentMethod.model_validate(row) for row in data]
        methods.append(STAFF_PAYMENT_METHOD.model_copy())
        return methods

    async def generate_payment_code(
            self,
            family: PaymentFamily,
            cart_id: int,
            location_id: Any,
            amount: Decimal,
            order_type: str = "dine_in"
    ) -> PaymentCodeRecord:
        body = PaymentCodeRequest(cart_id=cart_id, location_id=location_id, amount=amount, order_type=order_type)
        data = await self._request_data(
            "POST", f"/payments/{family.value}/qr", "Failed to generate QR code",
            json=body.model_dump(mode="json"),
        )
        return PaymentCodeRecord.model_validate({**data, "family": family.value})

    async def check_payment_code_status(self, family: PaymentFamily, token: str) -> PaymentStatusResult:
        data = await self._request_data(
            "GET", f"/payments/{family.value}/status", "Failed to check payment status",
            params={"token": token},
        )
        return PaymentStatusResult.model_validate(data)

    async def submit_manual_payment(
            self,
            request: ManualPaymentRequest,
            proof_image: bytes,
            filename: str = "payment-slip.jpg",
            content_type: str = "image/jpeg"
    ) -> ManualPaymentAck:
        """Отправляет чек оплаты (multipart)"""
        form = {key: str(value) for key, value in request.model_dump(mode="json").items()}
        data = await self._request_data(
            "POST", "/payments", "Failed to place order",
            data=form,
            files={"proof_image": (filename, proof_image, content_type)},
        )
        if not isinstance(data, dict):
            data = {}
        return ManualPaymentAck.model_validate(data)

    async def check_order_payment_status(self, token: str) -> OrderPaymentStatus:
        data = await self._request_data(
            "GET", "/payments/status", "Failed to check payment status", params={"token": token}
        )
        return OrderPaymentStatus.model_validate(data)

    # Заказы

    async def fetch_order_history(self, session_id: str) -> OrderHistory:
        data = await self._request_data(
            "GET", "/order-history", "Failed to load order history", params={"session_id": session_id}
        )
        return OrderHistory.model_validate(data)

