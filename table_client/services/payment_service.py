import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError as SchemaValidationError

from ..config import Settings
from ..events.bus import PAYMENT_CANCELLED, PAYMENT_CODE_GENERATED, PAYMENT_CONFIRMED, PAYMENT_FAILED
from ..exceptions import ClientError, PaymentTimeoutError, PreconditionError
from ..schemas.cart import Cart
from ..schemas.payment import PaymentCodeRecord, PaymentCodeStatus, PaymentFamily, PaymentStatusResult

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Время сервера без зоны считаем UTC"""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class PaymentState(PyEnum):
    IDLE = "idle"
    CODE_REQUESTED = "code_requested"
    POLLING = "polling"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class PollingPolicy:
    """Интервалы опроса статуса, в секундах"""
    interval: float = 3.0
    error_base_delay: float = 2.0
    backoff_factor: float = 1.5
    max_delay: float = 15.0
    max_wait: Optional[float] = 900.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PollingPolicy":
        return cls(
            interval=settings.payment_poll_interval,
            error_base_delay=settings.payment_error_base_delay,
            backoff_factor=settings.payment_backoff_factor,
            max_delay=settings.payment_max_delay,
            max_wait=settings.payment_max_wait_seconds,
        )

    def next_error_delay(self, previous: Optional[float]) -> float:
        """Задержка после ошибки; previous - задержка предыдущей ошибки подряд"""
        if previous is None:
            return min(self.error_base_delay, self.max_delay)
        return min(previous * self.backoff_factor, self.max_delay)


class PaymentService:
    """Машина состояний оплаты по QR-коду.

    IDLE -> CODE_REQUESTED -> POLLING -> CONFIRMED | CANCELLED | FAILED

    Пока есть неподтверждённая запись платежа, фоновая задача опрашивает
    статус: первый запрос сразу, затем каждые ``interval`` секунд, при
    ошибках с растущей задержкой. Запись хранится в локальном хранилище,
    поэтому после перезапуска опрос продолжается без нового QR-кода.
    Срок ожидания считается от ``created_at`` записи, а истёкший
    ``expires_at`` завершает платёж ошибкой без запроса к серверу.

    Остановка кооперативная: ``cancel()`` и ``dispose()`` снимают запись или
    флаг активности, спящая задача отменяется, а ответ уже отправленного
    запроса просто отбрасывается.
    """

    def __init__(
            self,
            context,
            policy: Optional[PollingPolicy] = None,
            sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
            clock: Callable[[], float] = time.monotonic,
            now: Callable[[], datetime] = utc_now
    ):
        self.context = context
        self.api = context.api
        self.persistence = context.persistence
        self.events = context.events
        self.policy = policy or PollingPolicy.from_settings(context.settings)
        self._sleep = sleep
        self._clock = clock
        self._now = now

        self.state = PaymentState.IDLE
        self.record: Optional[PaymentCodeRecord] = None
        self.last_status: Optional[PaymentStatusResult] = None
        self.last_error: Optional[Exception] = None
        self.checks_issued = 0

        self._active = True
        self._task: Optional[asyncio.Task] = None
        self._sleeping_task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    async def activate(self) -> Optional[PaymentCodeRecord]:
        """Восстанавливает платёж после перезапуска и продолжает опрос"""
        record = self.persistence.load_payment()
        if record is None:
            return None

        self.record = record
        expired = self._deadline_error(record, self._waited_before(record))
        if expired is not None:
            await self._fail(record, expired)
            return None

        self.state = PaymentState.POLLING
        logger.info(f"🔁 Resuming payment {record.token} ({record.family.value})")
        self._start_polling()
        return record

    async def generate_code(
            self,
            family: PaymentFamily,
            cart: Optional[Cart],
            location_id: Any
    ) -> PaymentCodeRecord:
        """Запрашивает QR-код для оплаты корзины"""
        if cart is None or cart.id is None or location_id in (None, ""):
            raise PreconditionError("Missing cart or location information.")

        self.state = PaymentState.CODE_REQUESTED
        self.last_error = None

        try:
            record = await self.api.generate_payment_code(family, cart.id, location_id, cart.total)
        except (ClientError, SchemaValidationError) as e:
            self.state = PaymentState.FAILED
            self.last_error = e
            logger.error(f"❌ Failed to generate {family.value} code for cart {cart.id}: {e}")
            await self.events.publish(PAYMENT_FAILED, {"cart_id": cart.id, "error": str(e)})
            raise

        if not self._active:
            return record
        if record.created_at is None:
            record = record.model_copy(update={"created_at": self._now()})

        # Новая запись вытесняет предыдущую цепочку опроса
        self._stop_polling()
        self.record = record
        self.persistence.save_payment(record)
        self.state = PaymentState.POLLING

        logger.info(f"💳 Payment code {record.token} generated for cart {cart.id} ({record.amount} {record.currency})")
        await self.events.publish(PAYMENT_CODE_GENERATED, {
            "token": record.token,
            "family": record.family.value,
            "cart_id": cart.id,
        })

        self._start_polling()
        return record

    async def check_now(self) -> Optional[PaymentStatusResult]:
        """Ручная проверка статуса по кнопке пользователя"""
        record = self.record
        if record is None:
            return None

        try:
            result = await self.api.check_payment_code_status(record.family, record.token)
        except (ClientError, SchemaValidationError) as e:
            self.last_error = e
            logger.error(f"❌ Manual status check failed for {record.token}: {e}")
            raise

        self.last_status = result
        if not self._is_current(record):
            return result

        if result.status is PaymentCodeStatus.CONFIRMED:
            self._stop_polling()
            await self._confirm(record, result)
        elif result.status is PaymentCodeStatus.FAILED:
            self._stop_polling()
            await self._fail(record, ClientError("Payment was rejected"))
        else:
            logger.info(f"⏳ Payment {record.token} is still pending")
        return result

    async def cancel(self):
        """Отмена платежа пользователем; подтверждение спрашивает UI"""
        record = self.record
        self._stop_polling()
        self.record = None
        self.persistence.clear_payment()

        if record is not None:
            self.state = PaymentState.CANCELLED
            logger.info(f"🚫 Payment {record.token} cancelled")
            await self.events.publish(PAYMENT_CANCELLED, {"token": record.token})

    def dispose(self):
        """Остановить опрос навсегда, например при уходе со страницы"""
        self._active = False
        self._stop_polling()

    async def join(self):
        """Дождаться завершения текущей цепочки опроса"""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    # Цикл опроса

    def _is_current(self, record: PaymentCodeRecord) -> bool:
        return self._active and self.record is record

    def _start_polling(self):
        self._stop_polling()
        if not self._active or self.record is None:
            return
        self._task = asyncio.get_running_loop().create_task(self._poll(self.record))

    def _stop_polling(self):
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        # Уже отправленный запрос не прерываем, его ответ отбросит _is_current
        if self._sleeping_task is task:
            task.cancel()

    def _waited_before(self, record: PaymentCodeRecord) -> float:
        """Сколько секунд код уже ждал до начала этой цепочки опроса"""
        if record.created_at is None:
            return 0.0
        return max((self._now() - _as_utc(record.created_at)).total_seconds(), 0.0)

    def _deadline_error(self, record: PaymentCodeRecord, waited: float) -> Optional[PaymentTimeoutError]:
        if record.expires_at is not None and self._now() >= _as_utc(record.expires_at):
            return PaymentTimeoutError(f"Payment code expired at {_as_utc(record.expires_at).isoformat()}")
        if self.policy.max_wait is not None and waited >= self.policy.max_wait:
            return PaymentTimeoutError(f"Payment was not confirmed within {self.policy.max_wait:g} seconds")
        return None

    async def _poll(self, record: PaymentCodeRecord):
        waited_before = self._waited_before(record)
        started = self._clock()
        delay = 0.0
        error_delay: Optional[float] = None

        while self._is_current(record):
            current = asyncio.current_task()
            self._sleeping_task = current
            try:
                await self._sleep(delay)
            finally:
                if self._sleeping_task is current:
                    self._sleeping_task = None

            if not self._is_current(record):
                return

            expired = self._deadline_error(record, waited_before + self._clock() - started)
            if expired is not None:
                await self._fail(record, expired)
                return

            self.checks_issued += 1
            try:
                result = await self.api.check_payment_code_status(record.family, record.token)
            except (ClientError, SchemaValidationError) as e:
                if not self._is_current(record):
                    return
                error_delay = self.policy.next_error_delay(error_delay)
                delay = error_delay
                logger.warning(f"⚠️ Error polling payment {record.token}: {e}, retrying in {delay:g}s")
                continue

            if not self._is_current(record):
                return

            self.last_status = result
            error_delay = None

            if result.status is PaymentCodeStatus.CONFIRMED:
                await self._confirm(record, result)
                return
            if result.status is PaymentCodeStatus.FAILED:
                await self._fail(record, ClientError("Payment was rejected"))
                return

            delay = self.policy.interval

    async def _confirm(self, record: PaymentCodeRecord, result: PaymentStatusResult):
        self.record = None
        self.persistence.clear_payment()
        self.state = PaymentState.CONFIRMED
        self.last_error = None
        logger.info(f"✅ Payment {record.token} confirmed")
        await self.events.publish(PAYMENT_CONFIRMED, {
            "token": record.token,
            "payment_id": result.payment_id or record.payment_id,
            "amount": str(result.amount if result.amount is not None else record.amount),
            "currency": result.currency or record.currency,
        })

    async def _fail(self, record: PaymentCodeRecord, error: Exception):
        self.record = None
        self.persistence.clear_payment()
        self.state = PaymentState.FAILED
        self.last_error = error
        logger.error(f"❌ Payment {record.token} failed: {error}")
        await self.events.publish(PAYMENT_FAILED, {"token": record.token, "error": str(error)})
