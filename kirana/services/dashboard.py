"""
Dashboard Aggregator

Folds the live invoice stream into the home-screen snapshot:
today's sales, pending credit, today's most recent invoices and today's count.

The snapshot is one of three states:
    DashboardLoading -> DashboardReady | DashboardFailed
Only ``refresh()`` moves a Ready or Failed dashboard back to Loading; stream
emissions while Ready replace the Ready snapshot in place.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Annotated, Callable, Iterable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from kirana.exceptions import LoadFailure
from kirana.schemas.invoice import Invoice
from kirana.services.invoice_repository import InvoiceRepository
from kirana.services.live_query import ObservableValue

logger = logging.getLogger(__name__)

RECENT_INVOICE_LIMIT = 10


class SalesTotalPolicy(str, enum.Enum):
    """When ``today_sales`` is read from the store.

    SNAPSHOT reads it once per load cycle, so invoices saved after the load
    show up in the recent list and count but not in ``today_sales`` until
    ``refresh()``. LIVE re-reads it on every invoice stream emission.
    """

    SNAPSHOT = "snapshot"
    LIVE = "live"


@dataclass(frozen=True)
class DayWindow:
    """The half-open interval ``[start, end)`` covering one local calendar day."""

    start: datetime
    end: datetime

    @classmethod
    def for_date(cls, day: date) -> "DayWindow":
        start = datetime.combine(day, time.min)
        return cls(start=start, end=start + timedelta(days=1))

    @classmethod
    def containing(cls, moment: datetime) -> "DayWindow":
        return cls.for_date(moment.date())

    def __contains__(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


class DashboardLoading(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["loading"] = "loading"

    @property
    def is_loading(self) -> bool:
        return True

    @property
    def error(self) -> Optional[str]:
        return None


class DashboardReady(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["ready"] = "ready"
    day: date
    today_sales: Decimal
    pending_credit: Decimal
    recent_invoices: tuple[Invoice, ...]
    total_invoices_today: int

    @property
    def is_loading(self) -> bool:
        return False

    @property
    def error(self) -> Optional[str]:
        return None


class DashboardFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["failed"] = "failed"
    message: str

    @property
    def is_loading(self) -> bool:
        return False

    @property
    def error(self) -> Optional[str]:
        return self.message


DashboardState = Annotated[
    Union[DashboardLoading, DashboardReady, DashboardFailed],
    Field(discriminator="status"),
]


def fold_invoices(
    invoices: Iterable[Invoice],
    *,
    window: DayWindow,
    today_sales: Decimal,
    recent_limit: int = RECENT_INVOICE_LIMIT,
) -> DashboardReady:
    """
    Reduce one emission of the invoice stream to a Ready snapshot.

    ``invoices`` must already be ordered most recent first. Pending credit is
    taken over every unpaid invoice, whatever its date.
    """
    today_invoices = []
    pending_credit = Decimal("0.00")
    for invoice in invoices:
        if invoice.timestamp in window:
            today_invoices.append(invoice)
        if not invoice.is_paid:
            pending_credit += invoice.total_amount

    return DashboardReady(
        day=window.start.date(),
        today_sales=today_sales,
        pending_credit=pending_credit,
        recent_invoices=tuple(today_invoices[:recent_limit]),
        total_invoices_today=len(today_invoices),
    )


class DashboardAggregator:
    """
    Keeps a dashboard snapshot current for one screen/session.

    Usage:
        dashboard = DashboardAggregator(repository)
        dashboard.start()
        async for snapshot in dashboard.state.watch():
            ...
        await dashboard.close()
    """

    def __init__(
        self,
        repository: InvoiceRepository,
        *,
        policy: SalesTotalPolicy = SalesTotalPolicy.SNAPSHOT,
        recent_limit: int = RECENT_INVOICE_LIMIT,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._repository = repository
        self.policy = policy
        self.recent_limit = recent_limit
        self._clock = clock
        self.state: ObservableValue = ObservableValue(DashboardLoading())
        self._task: Optional[asyncio.Task] = None

    @property
    def snapshot(self):
        return self.state.value

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Begin a load. Has no effect while a load is running."""
        if self.is_running:
            return
        if not self.snapshot.is_loading:
            self.state.set(DashboardLoading())
        self._launch()

    def refresh(self) -> None:
        """Restart the load cycle, re-reading today's sales."""
        if self._task is not None:
            self._task.cancel()
        self.state.set(DashboardLoading())
        self._launch()

    async def close(self) -> None:
        """Stop following the invoice stream. No further snapshots are emitted."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _launch(self) -> None:
        self._task = asyncio.create_task(self._run(), name="dashboard-load")

    async def _run(self) -> None:
        try:
            await self._follow()
        except Exception as exc:
            failure = LoadFailure.from_exception(exc)
            logger.warning(f"Dashboard load failed: {failure.detail}")
            self.state.set(DashboardFailed(message=failure.detail))

    async def _sales(self, window: DayWindow) -> Decimal:
        return await self._repository.total_sales_in_range(window.start, window.end)

    async def _follow(self) -> None:
        window = DayWindow.containing(self._clock())
        today_sales = None
        if self.policy is SalesTotalPolicy.SNAPSHOT:
            today_sales = await self._sales(window)

        async for invoices in self._repository.all_invoices():
            if self.policy is SalesTotalPolicy.LIVE:
                today_sales = await self._sales(window)
            self.state.set(
                fold_invoices(
                    invoices,
                    window=window,
                    today_sales=today_sales,
                    recent_limit=self.recent_limit,
                )
            )

    async def load_once(self):
        """Compute a single snapshot without following the stream."""
        try:
            window = DayWindow.containing(self._clock())
            today_sales = await self._sales(window)
            invoices = await self._repository.all_invoices().get()
            return fold_invoices(
                invoices,
                window=window,
                today_sales=today_sales,
                recent_limit=self.recent_limit,
            )
        except Exception as exc:
            failure = LoadFailure.from_exception(exc)
            logger.warning(f"Dashboard load failed: {failure.detail}")
            return DashboardFailed(message=failure.detail)
