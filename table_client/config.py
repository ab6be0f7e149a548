from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Настройки клиента"""

    # Основные настройки приложения
    app_name: str = "Table Client"
    debug: bool = False
    log_level: str = "INFO"

    # Настройки удалённого API
    api_base_url: str = "http://localhost:8000/api/v1/qr-menu"
    api_token: str = "change-me"
    http_timeout: float = 10.0

    # Локальное хранилище
    storage_url: str = "sqlite:///./data/table_client.db"

    # Опрос статуса платежа (секунды)
    payment_poll_interval: float = 3.0
    payment_error_base_delay: float = 2.0
    payment_backoff_factor: float = 1.5
    payment_max_delay: float = 15.0
    payment_max_wait_seconds: Optional[float] = 900.0

    # Деньги
    currency_minor_units: int = 2
    default_currency: str = "THB"

    # Ключи локального хранилища
    session_storage_key: str = "qr_menu_session_id"
    cart_storage_key: str = "qr_menu_cart_cache"
    payment_storage_key: str = "qr_menu_promptpay_data"
    location_storage_key: str = "qr_menu_location"
    table_storage_key: str = "qr_menu_table"
    view_mode_storage_key: str = "qr_menu_view_mode"
    order_token_storage_key: str = "active_order_token"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TABLE_CLIENT_",
        case_sensitive=False,
        extra="ignore",
    )


# Создаем экземпляр настроек
settings = Settings()
