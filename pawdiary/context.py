"""Application context.

Owns every long-lived engine component for one process: settings, draft
storage and store, query cache, retry policy, mutation coordinator, read
queries and the auto-save schedulers it hands out. Nothing here is a
module-level singleton; build one context at startup and pass it down.
"""

from datetime import timedelta
from types import TracebackType
from typing import Any, List, Optional, Type

import structlog

from pawdiary.application.activities.commands.submit_draft import SubmitDraftCommandHandler
from pawdiary.application.activities.mutations import OptimisticMutationCoordinator
from pawdiary.application.activities.queries import ActivityQueries
from pawdiary.application.drafts.autosave import AutoSaveScheduler
from pawdiary.application.drafts.draft_store import DraftStore
from pawdiary.config import Settings
from pawdiary.domain.activity.ports import IActivityService
from pawdiary.domain.draft.ports import IDraftStorage
from pawdiary.infrastructure.cache.query_cache import QueryCache
from pawdiary.infrastructure.persistence.draft_storage_factory import create_draft_storage
from pawdiary.infrastructure.remote.in_memory_activity_service import InMemoryActivityService
from pawdiary.infrastructure.retry import RetryPolicy
from pawdiary.logging_config import configure_logging

logger = structlog.get_logger(__name__)


class AppContext:
    """
    Process-wide engine context.

    Example:
        >>> async with AppContext(Settings.from_env(), service) as ctx:
        ...     autosave = ctx.new_autosave()
        ...     await autosave.start(DraftInput(pet_id=7, category="diet"))
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        activity_service: Optional[IActivityService] = None,
        draft_storage: Optional[IDraftStorage] = None,
        retry: Optional[RetryPolicy] = None,
    ) -> None:
        """
        Initialize context (components are built by init()).

        Args:
            settings: Engine settings (defaults to Settings.from_env())
            activity_service: Remote activity store (defaults to in-memory)
            draft_storage: Draft storage adapter (defaults to the configured backend)
            retry: Retry policy override (defaults to one built from settings)
        """
        self.settings = settings or Settings.from_env()
        self._activity_service = activity_service
        self._draft_storage = draft_storage
        self._retry = retry
        self._schedulers: List[AutoSaveScheduler] = []
        self._initialized = False

    def init(self) -> "AppContext":
        """Configure logging and build all components. Calling it twice is a no-op."""
        if self._initialized:
            return self

        settings = self.settings
        configure_logging(settings.log_level)
        self.activity_service = self._activity_service or InMemoryActivityService()
        self.draft_storage = self._draft_storage or create_draft_storage(settings)
        self.retry = self._retry or RetryPolicy(
            attempts=settings.retry_attempts,
            initial_delay=settings.retry_initial_delay_s,
            backoff=settings.retry_backoff,
        )
        self.drafts = DraftStore(
            self.draft_storage,
            max_drafts_per_pet=settings.max_drafts_per_pet,
            expiry=timedelta(days=settings.draft_expiry_days),
        )
        self.cache = QueryCache(gc_time=settings.cache_gc_time_s)
        self.mutations = OptimisticMutationCoordinator(
            self.cache, self.activity_service, self.retry
        )
        self.queries = ActivityQueries(
            self.cache,
            self.activity_service,
            self.retry,
            stale_time=settings.cache_stale_time_s,
        )
        self.submit_draft = SubmitDraftCommandHandler(self.drafts, self.mutations)

        self._initialized = True
        logger.info(
            "Application context initialized",
            draft_storage=type(self.draft_storage).__name__,
            activity_service=type(self.activity_service).__name__,
        )
        return self

    def new_autosave(self, **kwargs: Any) -> AutoSaveScheduler:
        """
        Create an auto-save scheduler owned by this context.

        Keyword arguments are passed to AutoSaveScheduler; delay defaults
        to settings.autosave_delay_s.
        """
        if not self._initialized:
            raise RuntimeError("AppContext.init() must be called first")

        kwargs.setdefault("delay", self.settings.autosave_delay_s)
        scheduler = AutoSaveScheduler(self.drafts, **kwargs)
        self._schedulers.append(scheduler)
        return scheduler

    async def dispose(self) -> None:
        """Dispose every scheduler (waiting for in-flight writes) and clear the cache."""
        if not self._initialized:
            return

        schedulers, self._schedulers = self._schedulers, []
        for scheduler in schedulers:
            await scheduler.dispose()
        self.cache.clear()

        self._initialized = False
        logger.info("Application context disposed", schedulers=len(schedulers))

    async def __aenter__(self) -> "AppContext":
        return self.init()

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.dispose()
