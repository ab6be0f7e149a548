from .api_client import RemoteStoreClient
from .cart_service import CartService
from .order_service import OrderService
from .payment_service import PaymentService, PaymentState, PollingPolicy
from .persistence import PersistenceBridge
from .session_identity import SessionIdentity
from .storage import InMemoryStore, KeyValueStore, SqlKeyValueStore

__all__ = [
    "RemoteStoreClient",
    "CartService",
    "OrderService",
    "PaymentService",
    "PaymentState",
    "PollingPolicy",
    "PersistenceBridge",
    "SessionIdentity",
    "InMemoryStore",
    "KeyValueStore",
    "SqlKeyValueStore",
]
