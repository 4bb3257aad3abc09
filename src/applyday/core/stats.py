from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Literal

from applyday.core.events import ChangeNotifier
from applyday.errors import ApplyDayError
from applyday.service.client import ApplicationsService
from applyday.types import Funnel, FunnelStage, StatsSnapshot

logger = logging.getLogger(__name__)

_ONE_DECIMAL = Decimal("0.1")


def round1(numerator: int, denominator: int) -> float:
    """Percentage ``numerator / denominator * 100`` rounded half away from zero to one decimal.

    The ratio is evaluated on exact decimals so ties such as 6.25 always
    become 6.3, which the built-in ``round`` would turn into 6.2.
    """
    with localcontext() as ctx:
        # room for every integer digit of the quotient plus the fractional digits
        ctx.prec = len(str(numerator)) + 28
        value = Decimal(numerator) * 100 / Decimal(denominator)
        return float(value.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


def compute_funnel(snapshot: StatsSnapshot) -> Funnel:
    applied = snapshot.applied

    def share(count: int) -> float:
        return round1(count, applied) if applied > 0 else 0.0

    stages = [
        # Applied is the base of the funnel, so it is 100 even with no applications.
        FunnelStage(label="Applied", raw_count=applied, percentage_of_applied=100.0),
        FunnelStage(label="Interviewed", raw_count=snapshot.interviewed, percentage_of_applied=share(snapshot.interviewed)),
        FunnelStage(label="Offered", raw_count=snapshot.offered, percentage_of_applied=share(snapshot.offered)),
    ]
    return Funnel(stages=stages, overall_conversion_pct=share(snapshot.offered), snapshot=snapshot)


@dataclass(slots=True, frozen=True)
class StatsLoading:
    kind: Literal["loading"] = "loading"


@dataclass(slots=True, frozen=True)
class StatsReady:
    funnel: Funnel
    kind: Literal["ready"] = "ready"


@dataclass(slots=True, frozen=True)
class StatsFailed:
    message: str
    kind: Literal["failed"] = "failed"


StatsState = StatsLoading | StatsReady | StatsFailed


class StatsDeriver:
    def __init__(self, service: ApplicationsService):
        self.service = service
        self.state: StatsState = StatsLoading()
        self._notifier = ChangeNotifier()
        self._closed = False

    async def initialize(self) -> StatsState:
        return await self.refresh()

    async def refresh(self) -> StatsState:
        if self._closed:
            return self.state

        self._set_state(StatsLoading())
        try:
            snapshot = await asyncio.to_thread(self.service.get_stats)
        except ApplyDayError as exc:
            if self._closed:
                return self.state
            logger.warning("Failed to fetch stats: %s", exc)
            self._set_state(StatsFailed(message=exc.message))
            return self.state

        if self._closed:
            return self.state
        self._set_state(StatsReady(funnel=compute_funnel(snapshot)))
        return self.state

    def subscribe(self, listener: Callable[[StatsDeriver], None]) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    def close(self) -> None:
        self._closed = True
        self._notifier.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    def _set_state(self, state: StatsState) -> None:
        self.state = state
        self._notifier.publish(self)
