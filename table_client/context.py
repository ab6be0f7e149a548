from dataclasses import dataclass, field
from typing import Optional

from .config import Settings
from .events.bus import StateEventBus
from .services.api_client import RemoteStoreClient
from .services.persistence import PersistenceBridge
from .services.session_identity import SessionIdentity
from .services.storage import KeyValueStore


@dataclass
class ClientContext:
    """Общие зависимости клиента, создаются один раз при запуске"""

    settings: Settings
    store: KeyValueStore
    api: RemoteStoreClient
    events: StateEventBus = field(default_factory=StateEventBus)
    session: Optional[SessionIdentity] = None
    persistence: Optional[PersistenceBridge] = None

    def __post_init__(self):
        if self.session is None:
            self.session = SessionIdentity(self.store, self.settings.session_storage_key)
        if self.persistence is None:
            self.persistence = PersistenceBridge(self.store, self.settings)

    @property
    def session_id(self) -> str:
        return self.session.get()
