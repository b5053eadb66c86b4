from __future__ import annotations

import asyncio
import concurrent.futures as _fut
import enum
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from .config import Settings
from .exceptions import ItsFineError
from .fetcher import HeadlineFetcher
from .models import Headline
from .rewriter import HeadlineRewriter

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    def fetch(self) -> List[Headline]:  # pragma: no cover - interface
        ...


class Rewriter(Protocol):
    def rewrite(self, headlines: Sequence[Headline]) -> List[Headline]:  # pragma: no cover - interface
        ...


class PipelineState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineSnapshot:
    """What a presentation layer needs to draw the current screen."""
    state: PipelineState
    headlines: Tuple[Headline, ...]
    error_message: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self.state is PipelineState.LOADING


Listener = Callable[[PipelineSnapshot], None]


class PipelineCoordinator:
    """
    Owns the current headlines and drives fetch → show → rewrite.

    All state lives on the event loop the coroutines run on; blocking fetch and
    rewrite calls go to a thread pool and their results are applied back on the
    loop, one completion at a time.

    After every successful fetch or rewrite the next rewrite is computed in the
    background (at most one at a time). `request_rewrite()` swaps that result in
    without a network round trip when it is ready, and rewrites synchronously
    otherwise.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        rewriter: Rewriter,
        *,
        executor: Optional[_fut.Executor] = None,
    ) -> None:
        self._fetcher = fetcher
        self._rewriter = rewriter
        self._owns_executor = executor is None
        self._executor = executor or _fut.ThreadPoolExecutor(max_workers=2, thread_name_prefix="its-fine")

        self._state = PipelineState.IDLE
        self._headlines: List[Headline] = []
        self._error_message: Optional[str] = None
        self._listeners: List[Listener] = []

        # Bumped whenever _headlines is replaced; pre-fetch results from older generations are dropped
        self._generation = 0
        self._prefetched: Optional[List[Headline]] = None
        self._prefetch_in_flight = False
        self._prefetch_task: Optional[asyncio.Task] = None

    # Observable fields

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def headlines(self) -> List[Headline]:
        return list(self._headlines)

    @property
    def is_loading(self) -> bool:
        return self._state is PipelineState.LOADING

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def has_prefetched(self) -> bool:
        return self._prefetched is not None

    @property
    def prefetch_in_flight(self) -> bool:
        return self._prefetch_in_flight

    def snapshot(self) -> PipelineSnapshot:
        return PipelineSnapshot(self._state, tuple(self._headlines), self._error_message)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` with a snapshot after every published change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, state: PipelineState, *, error: Optional[str] = None) -> None:
        self._state = state
        self._error_message = error
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)

    # Operations

    async def start(self) -> None:
        """Fetch the feed (again) and show it. Also the retry path after a failed fetch."""
        self._publish(PipelineState.LOADING)
        try:
            headlines = await self._run(self._fetcher.fetch)
        except ItsFineError as e:
            logger.error("Failed to fetch headlines: %s", e)
            self._publish(PipelineState.FAILED, error=str(e))
            return
        self._replace_headlines(headlines)
        logger.info("Showing %d fetched headline(s)", len(headlines))
        self._publish(PipelineState.READY)
        self._schedule_prefetch()

    async def request_rewrite(self) -> None:
        """Replace the current headlines with their next, more optimistic rewrite."""
        if self._prefetched is not None:
            result = self._prefetched
            self._replace_headlines(result)
            logger.info("Applied pre-fetched rewrite of %d headline(s)", len(result))
            self._publish(PipelineState.READY)
            self._schedule_prefetch()
            return

        if not self._headlines:
            logger.warning("Rewrite requested with no headlines to rewrite; ignoring")
            return

        current = list(self._headlines)
        self._publish(PipelineState.LOADING)
        try:
            result = await self._run(self._rewriter.rewrite, current)
        except ItsFineError as e:
            logger.error("Failed to rewrite headlines: %s", e)
            self._publish(PipelineState.FAILED, error=str(e))
            return
        self._replace_headlines(result)
        self._publish(PipelineState.READY)
        self._schedule_prefetch()

    def _replace_headlines(self, headlines: List[Headline]) -> None:
        self._headlines = headlines
        self._generation += 1
        self._prefetched = None

    async def wait_for_prefetch(self) -> None:
        """Wait until no background rewrite is running, including one started to replace a stale one."""
        while True:
            task = self._prefetch_task
            if task is None or task.done():
                return
            await asyncio.shield(task)

    async def aclose(self) -> None:
        await self.wait_for_prefetch()
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    async def __aenter__(self) -> "PipelineCoordinator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # Background pre-fetch

    def _schedule_prefetch(self) -> None:
        if self._prefetch_in_flight:
            logger.debug("Background rewrite already running; not starting another")
            return
        self._prefetch_in_flight = True
        snapshot = list(self._headlines)
        task = asyncio.get_running_loop().create_task(self._prefetch(snapshot, self._generation))
        task.add_done_callback(_log_prefetch_crash)
        self._prefetch_task = task

    async def _prefetch(self, headlines: List[Headline], generation: int) -> None:
        try:
            result = await self._run(self._rewriter.rewrite, headlines)
        except ItsFineError as e:
            logger.warning("Background rewrite failed, will rewrite on demand: %s", e)
            result = None
        finally:
            self._prefetch_in_flight = False
        if generation != self._generation:
            logger.info("Dropping background rewrite of headlines that are no longer shown")
            self._schedule_prefetch()
        elif result is not None:
            self._prefetched = result
            logger.info("Pre-fetched rewrite of %d headline(s) is ready", len(result))

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)


def _log_prefetch_crash(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background rewrite crashed", exc_info=exc)


def build_coordinator(settings: Settings) -> PipelineCoordinator:
    fetcher = HeadlineFetcher(
        settings.feed_url,
        limit=settings.max_headlines,
        timeout=settings.feed_timeout,
    )
    rewriter = HeadlineRewriter(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        max_history_turns=settings.max_history_turns,
    )
    return PipelineCoordinator(fetcher, rewriter)
