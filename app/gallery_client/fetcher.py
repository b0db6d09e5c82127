"""
    Resilient gallery listing fetch.

    A fetch cycle moves through three states:

        loading --success--> success
        loading --failure, retries left--> (backoff timer) --> loading
        loading --failure, retries exhausted--> error

    Each cycle owns a CancellationToken. Starting a new cycle with refresh(),
    or tearing the fetcher down with close(), cancels the current token, its
    pending backoff timer and its in-flight request. A cycle whose token is no
    longer current never changes the state, so a stale response cannot
    overwrite a fresher one.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple
import asyncio
import logging
import httpx

from app.gallery_client.client import GalleryFetchError
from app.image_service.models import ImageItem, ListImagesResponse

log = logging.getLogger(__name__)

MAX_RETRIES = 5
BASE_DELAY_SECONDS = 1.0
MAX_DELAY_SECONDS = 8.0

# Expected transport failures. Anything else is retried too, but logged with a traceback.
EXPECTED_ERRORS = (GalleryFetchError, httpx.HTTPError)

class FetchStatus(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"

@dataclass(frozen=True)
class GalleryState:
    status: FetchStatus = FetchStatus.LOADING
    items: Tuple[ImageItem, ...] = field(default_factory=tuple)
    total: int = 0
    error: Optional[str] = None
    retries: int = 0

class CancellationToken:
    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True

def backoff_delay(retry: int, base: float = BASE_DELAY_SECONDS, cap: float = MAX_DELAY_SECONDS) -> float:
    """Delay before retry number `retry` (0-based): base, 2*base, 4*base ... capped."""
    return min(base * (2 ** retry), cap)

class GalleryFetcher:
    def __init__(
        self,
        fetch_page: Callable[[], Awaitable[ListImagesResponse]],
        max_retries: int = MAX_RETRIES,
        base_delay: float = BASE_DELAY_SECONDS,
        max_delay: float = MAX_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_change: Optional[Callable[[GalleryState], None]] = None,
    ):
        self._fetch_page = fetch_page
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep
        self._on_change = on_change
        self._state = GalleryState()
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> GalleryState:
        return self._state

    def refresh(self) -> asyncio.Task:
        """Supersedes the current fetch cycle with a new one."""
        self._cancel_current()
        token = CancellationToken()
        self._token = token
        self._task = asyncio.get_running_loop().create_task(self._run_cycle(token))
        return self._task

    async def close(self):
        task = self._task
        self._cancel_current()
        self._token = None
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _cancel_current(self):
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            # Aborts the in-flight request or the pending backoff timer
            self._task.cancel()

    def _transition(self, token: CancellationToken, state: GalleryState) -> bool:
        if token.cancelled or token is not self._token:
            return False
        self._state = state
        if self._on_change is not None:
            self._on_change(state)
        return True

    async def _run_cycle(self, token: CancellationToken):
        retries = 0
        while True:
            self._transition(token, GalleryState(
                status=FetchStatus.LOADING,
                items=self._state.items,
                total=self._state.total,
                retries=retries,
            ))
            try:
                page = await self._fetch_page()
            except Exception as e:
                if not isinstance(e, EXPECTED_ERRORS):
                    log.exception("Unexpected gallery fetch failure")
                failure = str(e) or "Failed to load images"
            else:
                self._transition(token, GalleryState(
                    status=FetchStatus.SUCCESS,
                    items=tuple(page.items),
                    total=page.total,
                ))
                return

            if token.cancelled:
                return
            if retries >= self.max_retries:
                log.error("Gallery fetch failed after %d retries: %s", retries, failure)
                self._transition(token, GalleryState(status=FetchStatus.ERROR, error=failure, retries=retries))
                return

            delay = backoff_delay(retries, self.base_delay, self.max_delay)
            retries += 1
            log.warning("Gallery fetch failed (%s), retry %d in %.1fs", failure, retries, delay)
            await self._sleep(delay)
            if token.cancelled:
                return
