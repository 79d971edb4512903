"""Auto-save scheduler.

Debounces editor changes into durable draft writes. One scheduler serves
one editing session and owns at most one pending timer and one in-flight
write at a time.

States:

    IDLE ──edit──▶ DIRTY ──(enabled)──▶ SCHEDULED ──timer──▶ SAVING
      ▲                                    ▲  │                │
      │                                    └──┘ edit re-arms   │
      └──────────────── write ok, no edits during save ◀───────┘

An edit (or a timer firing) while SAVING re-arms the timer; a second
write never starts until the first one has finished.
"""

import asyncio
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

import structlog

from pawdiary.application.drafts.draft_store import DraftStore
from pawdiary.domain.draft.comparison import has_unsaved_changes
from pawdiary.domain.draft.models import EDITABLE_FIELDS, Draft, DraftInput, DraftUpdate
from pawdiary.domain.shared.errors import DraftNotFoundError

logger = structlog.get_logger(__name__)


class AutoSaveState(str, Enum):
    IDLE = "idle"
    DIRTY = "dirty"
    SCHEDULED = "scheduled"
    SAVING = "saving"


def _notify(callback: Optional[Callable[[Any], None]], arg: Any, name: str) -> None:
    if callback is None:
        return
    try:
        callback(arg)
    except Exception as e:
        logger.error("Auto-save callback failed", callback=name, error=str(e), exc_info=True)


class AutoSaveScheduler:
    """
    Debounced auto-save for one draft.

    Edits are synchronous and cheap: they update the working copy and
    (re)arm a single timer. The durable write happens once `delay`
    seconds pass without further edits, or on force_save().

    Example:
        >>> autosave = AutoSaveScheduler(store, delay=2.0)
        >>> await autosave.start(DraftInput(pet_id=7, category="diet"))
        >>> autosave.update_field("title", "Breakfast")
        >>> autosave.state
        <AutoSaveState.SCHEDULED: 'scheduled'>
        >>> await autosave.force_save()
        True
    """

    def __init__(
        self,
        store: DraftStore,
        delay: float = 2.0,
        enabled: bool = True,
        on_save: Optional[Callable[[Draft], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        """
        Initialize scheduler.

        Args:
            store: Draft store receiving the writes
            delay: Debounce window in seconds
            enabled: When False, edits only mark the draft dirty
            on_save: Called with the stored Draft after each successful write
            on_error: Called with the exception after each failed write
        """
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")

        self._store = store
        self.delay = delay
        self._enabled = enabled
        self.on_save = on_save
        self.on_error = on_error

        self._saved: Optional[Draft] = None
        self._working: Dict[str, Any] = {}
        self._initial: Dict[str, Any] = {}
        self._pending_fields: Set[str] = set()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._save_task: Optional["asyncio.Task[bool]"] = None
        self._last_saved: Optional[datetime] = None
        self._disposed = False

    # ===== Session lifecycle =====

    async def start(self, initial: DraftInput) -> Draft:
        """
        Create the backing draft and begin a session.

        Raises:
            StorageError: If the draft cannot be written
        """
        draft = await self._store.create_draft(initial)
        self._begin_session(draft, initial.model_dump(exclude_unset=True))
        logger.debug("Auto-save session started", draft_id=draft.id, pet_id=draft.pet_id)
        return draft

    async def resume(self, draft_id: str) -> Draft:
        """
        Continue editing a previously stored draft.

        Raises:
            DraftNotFoundError: If the draft does not exist (or expired)
        """
        draft = await self._store.get_draft(draft_id)
        if draft is None:
            raise DraftNotFoundError(f"Draft {draft_id} not found")

        self._begin_session(draft, draft.editable_fields())
        logger.debug("Auto-save session resumed", draft_id=draft.id, version=draft.version)
        return draft

    def _begin_session(self, draft: Draft, initial: Dict[str, Any]) -> None:
        self._cancel_timer()
        self._saved = draft
        self._working = draft.editable_fields()
        self._initial = initial
        self._pending_fields = set()
        self._last_saved = None
        self._disposed = False

    async def dispose(self) -> None:
        """Stop the timer and wait for an in-flight write. Pending edits are dropped."""
        self._disposed = True
        self._cancel_timer()
        await self._wait_for_save()
        if self._pending_fields:
            logger.info(
                "Auto-save disposed with unsaved edits",
                draft_id=self.draft_id,
                fields=sorted(self._pending_fields),
            )

    # ===== Observable state =====

    @property
    def draft_id(self) -> Optional[str]:
        return self._saved.id if self._saved is not None else None

    @property
    def draft(self) -> Optional[Draft]:
        """Working copy: last stored draft with unsaved edits applied."""
        if self._saved is None:
            return None
        return self._saved.model_copy(update=self._working)

    @property
    def saved_draft(self) -> Optional[Draft]:
        """Draft as last written to the store."""
        return self._saved

    @property
    def state(self) -> AutoSaveState:
        if self.is_saving:
            return AutoSaveState.SAVING
        if self._timer is not None:
            return AutoSaveState.SCHEDULED
        if self._pending_fields:
            return AutoSaveState.DIRTY
        return AutoSaveState.IDLE

    @property
    def is_dirty(self) -> bool:
        return bool(self._pending_fields)

    @property
    def is_saving(self) -> bool:
        return self._save_task is not None and not self._save_task.done()

    @property
    def last_saved(self) -> Optional[datetime]:
        return self._last_saved

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value
        if not value:
            self._cancel_timer()
        elif self._pending_fields:
            self._schedule()

    def has_unsaved_changes(self) -> bool:
        """True if the working copy differs from the data the session started with."""
        draft = self.draft
        if draft is None:
            return False
        return has_unsaved_changes(draft, self._initial)

    # ===== Edits =====

    def update_field(self, key: str, value: Any) -> None:
        """
        Change one editable field of the working copy.

        Unknown and immutable fields (pet_id, id, version, ...) are logged
        and ignored.

        Raises:
            RuntimeError: If no session was started
        """
        if self._saved is None:
            raise RuntimeError("No draft session: call start() or resume() first")
        if self._disposed:
            logger.warning("Edit ignored on disposed auto-save", draft_id=self.draft_id, field=key)
            return
        if key not in EDITABLE_FIELDS:
            logger.warning(
                "Ignoring edit of non-editable draft field",
                draft_id=self.draft_id,
                field=key,
            )
            return

        self._working[key] = value
        self._pending_fields.add(key)
        if self._enabled:
            self._schedule()

    def update_block(self, block_id: str, data: Any) -> None:
        """Set the data of one block."""
        blocks = dict(self._working.get("blocks") or {})
        blocks[block_id] = data
        self.update_field("blocks", blocks)

    def remove_block(self, block_id: str) -> None:
        """Remove one block (no-op if absent)."""
        blocks = dict(self._working.get("blocks") or {})
        if block_id not in blocks:
            return
        del blocks[block_id]
        self.update_field("blocks", blocks)

    # ===== Timer =====

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if self.is_saving:
            # Wait for the running write, then save what accumulated meanwhile
            self._schedule()
            return
        if self._pending_fields:
            self._save_task = asyncio.get_running_loop().create_task(self._save())

    # ===== Writes =====

    async def _wait_for_save(self) -> None:
        while self.is_saving:
            task = self._save_task
            if task is None:
                return
            await asyncio.shield(task)

    async def _save(self) -> bool:
        if self._saved is None:
            raise RuntimeError("No draft session to save")
        draft_id = self._saved.id
        fields = self._pending_fields
        self._pending_fields = set()
        try:
            update = DraftUpdate.model_validate({k: self._working[k] for k in fields})
            saved = await self._store.update_draft(draft_id, update)
            if saved is None:
                raise DraftNotFoundError(f"Draft {draft_id} no longer exists")
        except Exception as e:
            # Keep the edits pending; the next edit or force_save retries them
            self._pending_fields |= fields
            logger.error(
                "Auto-save failed",
                draft_id=draft_id,
                fields=sorted(fields),
                error=str(e),
            )
            _notify(self.on_error, e, "on_error")
            return False

        self._saved = saved
        self._last_saved = saved.last_modified
        logger.debug("Draft auto-saved", draft_id=draft_id, version=saved.version)
        _notify(self.on_save, saved, "on_save")
        return True

    async def force_save(self) -> bool:
        """
        Write pending edits now.

        Cancels the timer, waits for a running write, then writes whatever
        is still pending.

        Returns:
            True if nothing was pending or the write succeeded, False on failure
        """
        if self._saved is None:
            return False

        self._cancel_timer()
        await self._wait_for_save()
        if not self._pending_fields:
            return True

        task = asyncio.get_running_loop().create_task(self._save())
        self._save_task = task
        return await asyncio.shield(task)

    async def reset(self) -> Optional[Draft]:
        """
        Drop unsaved edits and reload the last stored draft.

        Returns:
            The stored draft, or None if it no longer exists
        """
        if self._saved is None:
            return None

        self._cancel_timer()
        await self._wait_for_save()

        draft = await self._store.get_draft(self._saved.id)
        self._pending_fields = set()
        if draft is not None:
            self._saved = draft
            self._working = draft.editable_fields()
        else:
            self._working = self._saved.editable_fields()
        return draft

    async def discard(self) -> bool:
        """
        Delete the backing draft and end the session.

        Returns:
            True if a stored draft was deleted
        """
        if self._saved is None:
            return False

        self._cancel_timer()
        await self._wait_for_save()

        draft_id = self._saved.id
        deleted = await self._store.delete_draft(draft_id)
        self._saved = None
        self._working = {}
        self._initial = {}
        self._pending_fields = set()
        logger.debug("Draft discarded", draft_id=draft_id, deleted=deleted)
        return deleted
