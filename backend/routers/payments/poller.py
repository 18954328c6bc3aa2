"""
Background confirmation of mobile-money payments.

The customer approves a mobile-money charge on their phone some time after
requestToPay returns, so after initiating one we ask the provider for its
status on a backoff schedule until it succeeds or the deadline passes. One
task per order; starting a new one cancels the previous. The registry here
only serves cancellation and status reporting, the database stays the
authority on the transaction.
"""
from sqlalchemy import select
from models import Transaction
from payment import PaymentProvider, PaymentRequestPayload, PaymentStatusResult
from routers.orders.state import complete_transaction
from utils.response_helpers import to_uuid
from .schemas import PollState
from typing import Callable, Dict, Optional
import config
import asyncio
import logging

logger = logging.getLogger(__name__)


class PaymentPoller:

    def __init__(
        self,
        session_factory: Optional[Callable] = None,
        initial_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        backoff: Optional[float] = None,
        timeout: Optional[float] = None,
        history_size: int = 1000,
    ):
        # unset values are read from config when a poll starts
        self.session_factory = session_factory
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff = backoff
        self.timeout = timeout
        # finished polls whose last state is still reported by state()
        self.history_size = history_size
        self._tasks: Dict[str, asyncio.Task] = {}
        self._states: Dict[str, PollState] = {}

    def _schedule(self) -> tuple:
        return (
            self.initial_delay if self.initial_delay is not None else config.PAYMENT_POLL_INITIAL_DELAY,
            self.max_delay if self.max_delay is not None else config.PAYMENT_POLL_MAX_DELAY,
            self.backoff if self.backoff is not None else config.PAYMENT_POLL_BACKOFF,
            self.timeout if self.timeout is not None else config.PAYMENT_POLL_TIMEOUT,
        )

    def _get_session_factory(self):
        return self.session_factory or config.get_session_factory()

    def state(self, order_id: str) -> PollState:
        return self._states.get(str(order_id), PollState.IDLE)

    def task(self, order_id: str) -> Optional[asyncio.Task]:
        return self._tasks.get(str(order_id))

    def _set_state(self, order_id: str, state: PollState):
        # a superseded task must not overwrite the state of its replacement
        if self._tasks.get(order_id) is asyncio.current_task():
            self._states[order_id] = state

    def start(self, order_id: str, footprint: str, payload: PaymentRequestPayload,
              provider: PaymentProvider) -> asyncio.Task:
        order_id = str(order_id)
        previous = self._tasks.get(order_id)
        if previous is not None and not previous.done():
            logger.info(f"Replacing in-flight payment poll for order {order_id}")
            previous.cancel()

        task = asyncio.create_task(
            self._poll(order_id, footprint, payload, provider),
            name=f"payment-poll-{order_id}"
        )
        self._tasks[order_id] = task
        # re-insert so the newest poll sits at the end of the history
        self._states.pop(order_id, None)
        self._states[order_id] = PollState.POLLING
        task.add_done_callback(lambda finished: self._forget(order_id, finished))
        return task

    def _forget(self, order_id: str, task: asyncio.Task):
        if self._tasks.get(order_id) is task:
            del self._tasks[order_id]

        finished = [key for key in self._states if key not in self._tasks]
        for key in finished[:max(0, len(finished) - self.history_size)]:
            del self._states[key]

    def cancel(self, order_id: str) -> bool:
        order_id = str(order_id)
        task = self._tasks.get(order_id)
        if task is None or task.done():
            return False
        task.cancel()
        self._states[order_id] = PollState.CANCELLED
        logger.info(f"Payment poll for order {order_id} cancelled")
        return True

    async def shutdown(self):
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        self._states.clear()

    async def _poll(self, order_id: str, footprint: str, payload: PaymentRequestPayload,
                    provider: PaymentProvider):
        initial_delay, max_delay, backoff, timeout = self._schedule()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        delay = initial_delay
        attempt = 0

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    logger.warning(f"Payment for order {order_id} not confirmed within {timeout}s, transaction left pending")
                    self._set_state(order_id, PollState.EXPIRED)
                    return

                await asyncio.sleep(min(delay, remaining))
                attempt += 1

                try:
                    result = await provider.check_status(footprint, payload.mean_code)
                except Exception as e:
                    logger.warning(f"Status check {attempt} for order {order_id} failed: {str(e)}")
                    result = None

                if result is not None and result.success:
                    await self._complete(order_id, payload, result)
                    self._set_state(order_id, PollState.COMPLETED)
                    return

                if result is not None:
                    logger.debug(f"Status check {attempt} for order {order_id}: {result.status}")
                delay = min(delay * backoff, max_delay)

        except asyncio.CancelledError:
            self._set_state(order_id, PollState.CANCELLED)
            raise
        except Exception as e:
            logger.error(f"Payment poll for order {order_id} failed: {str(e)}")
            self._set_state(order_id, PollState.FAILED)

    async def _complete(self, order_id: str, payload: PaymentRequestPayload, result: PaymentStatusResult):
        session_factory = self._get_session_factory()
        async with session_factory() as db:
            try:
                query_result = await db.execute(
                    select(Transaction)
                    .where(Transaction.order_id == to_uuid(order_id, "order id"))
                    .with_for_update()
                )
                transaction = query_result.scalar_one_or_none()
                if transaction is None:
                    raise LookupError(f"No transaction for order {order_id}")

                if complete_transaction(
                    transaction,
                    amount=payload.amount,
                    method=payload.mean_code,
                    currency=payload.currency,
                    details=result.raw,
                ):
                    await db.commit()
                    logger.info(f"Mobile payment for order {order_id} confirmed by polling")
            except Exception:
                await db.rollback()
                raise


payment_poller = PaymentPoller()
