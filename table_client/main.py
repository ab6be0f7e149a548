import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from pydantic import ValidationError as SchemaValidationError

from .config import Settings, settings as default_settings
from .context import ClientContext
from .database import test_connection
from .exceptions import ClientError
from .services.api_client import RemoteStoreClient
from .services.cart_service import CartService
from .services.order_service import OrderService
from .services.payment_service import PaymentService
from .services.storage import KeyValueStore, SqlKeyValueStore

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=(level or default_settings.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@asynccontextmanager
async def open_client_context(
        settings: Optional[Settings] = None,
        store: Optional[KeyValueStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
):
    """Управление жизненным циклом клиента"""
    settings = settings or default_settings

    # Startup
    logger.info(f"Starting {settings.app_name}...")
    owns_store = store is None
    if owns_store:
        store = SqlKeyValueStore(settings.storage_url)

    api = RemoteStoreClient(
        base_url=settings.api_base_url,
        api_token=settings.api_token,
        timeout=settings.http_timeout,
        transport=transport,
    )
    await api.start()

    context = ClientContext(settings=settings, store=store, api=api)
    logger.info(f"✅ {settings.app_name} started (session {context.session_id})")

    try:
        yield context
    finally:
        # Shutdown
        logger.info(f"Shutting down {settings.app_name}...")
        await api.close()
        if owns_store:
            try:
                store.close()
            except Exception as e:
                logger.error(f"Error closing local store: {e}")
        logger.info(f"✅ {settings.app_name} shut down successfully!")


def health_check(context: ClientContext) -> dict:
    """Проверка состояния клиента"""
    store_status = "connected"
    if isinstance(context.store, SqlKeyValueStore):
        store_status = "connected" if test_connection(context.store.engine) else "disconnected"

    return {
        "status": "healthy" if store_status == "connected" else "degraded",
        "service": context.settings.app_name,
        "storage": store_status,
        "api": "started" if context.api.http is not None else "stopped",
        "session_id": context.session_id,
    }


async def resume(context: ClientContext):
    """Восстановить корзину, платёж и заказ после перезапуска"""
    cart_service = CartService(context)
    payment_service = PaymentService(context)
    order_service = OrderService(context)

    try:
        await cart_service.activate()
    except (ClientError, SchemaValidationError) as e:
        logger.error(f"❌ Failed to load cart: {e}")

    await order_service.activate()
    record = await payment_service.activate()
    if record is not None:
        logger.info(f"Waiting for payment {record.token}...")
        await payment_service.join()
        logger.info(f"Payment finished with state {payment_service.state.value}")

    payment_service.dispose()
    cart_service.close()
    return cart_service, payment_service, order_service


async def run():
    async with open_client_context() as context:
        logger.info(f"Health: {health_check(context)}")
        await resume(context)


if __name__ == "__main__":
    configure_logging()
    asyncio.run(run())
