"""Per-viewer session state machine.

One orchestrator drives one viewer of one session. Store callbacks only
enqueue events; a single worker task applies them in arrival order, so
mode changes and their side effects never interleave.

    status   history  mode            entry actions
    pending  any      waiting         stop messages
    active   any      live            start messages, then once each: prompt,
                                      participation, last-session bookmark
    end      False    ended_redirect  stop messages, request summary view
    end      True     ended_history   keep messages (read-only), prompt once
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ..errors import StoreError
from ..models import (
    ActivitySelection,
    DisplayMode,
    Identity,
    Message,
    Navigation,
    Session,
    SessionStatus,
    SessionView,
)
from ..storage import DocumentStore, Subscription
from ..telemetry import TelemetryEvents, track_event, track_exception
from .activity_selector import ActivityPromptSelector, selection_from_session
from .message_channel import MessageChannel
from .participation import ParticipationLedger
from .session_repository import SessionRepository

logger = logging.getLogger(__name__)

WAITING_TEXT = "The session has not started yet."
ENDED_TEXT = "This ice-breaker session has ended. Thanks for joining!"
NOT_FOUND_TEXT = "Session not found"
DEGRADED_TEXT = "Live updates unavailable. Reconnect to try again."


@dataclass(frozen=True)
class SessionObserved:
    session: Session | None


@dataclass(frozen=True)
class MessagesObserved:
    messages: list[Message]


@dataclass(frozen=True)
class IdentityChanged:
    identity: Identity | None


@dataclass(frozen=True)
class ObservationFailed:
    error: Exception
    source: str = "session"


OrchestratorEvent = SessionObserved | MessagesObserved | IdentityChanged | ObservationFailed


@dataclass
class SessionLifecycle:
    """State of one start()..stop() lifetime. Dropped entirely on stop."""

    identity: Identity | None = None
    session: Session | None = None
    mode: DisplayMode | None = None
    status_text: str = ""
    messages: list[Message] = field(default_factory=list)
    activity: ActivitySelection | None = None
    # One-shot effects already done, keyed by user id (None for anonymous)
    activity_loaded: set[str | None] = field(default_factory=set)
    participation_recorded: set[str] = field(default_factory=set)
    last_session_saved: set[str] = field(default_factory=set)
    redirected: bool = False
    halted: bool = False
    session_subscription: Subscription | None = None
    message_subscription: Subscription | None = None


def mode_for(status: SessionStatus, history: bool) -> DisplayMode:
    if status == SessionStatus.PENDING:
        return DisplayMode.WAITING
    if status == SessionStatus.ACTIVE:
        return DisplayMode.LIVE
    return DisplayMode.ENDED_HISTORY if history else DisplayMode.ENDED_REDIRECT


class SessionOrchestrator:
    """Maps session status changes to display modes and one-shot effects."""

    def __init__(
        self,
        channel_id: str,
        session_id: str,
        *,
        repository: SessionRepository,
        messages: MessageChannel,
        selector: ActivityPromptSelector,
        ledger: ParticipationLedger,
        history: bool = False,
        identity: Identity | None = None,
        on_view: Callable[[SessionView], None] | None = None,
    ):
        """Initialize orchestrator.

        Args:
            channel_id: Channel identifier
            session_id: Session identifier
            repository: Session repository used to observe the session
            messages: Message channel used to observe the chat log
            selector: Activity prompt selector
            ledger: Participation ledger
            history: Viewer opened the session read-only (``?mode=history``)
            identity: Current identity, if already known
            on_view: Called with every new view snapshot
        """
        self.channel_id = channel_id
        self.session_id = session_id
        self.history = history
        self.repository = repository
        self.messages = messages
        self.selector = selector
        self.ledger = ledger
        self.on_view = on_view
        self.view: SessionView | None = None

        self._identity = identity
        self._lifecycle: SessionLifecycle | None = None
        self._queue: asyncio.Queue[OrchestratorEvent] | None = None
        self._worker: asyncio.Task | None = None

    @classmethod
    def for_store(
        cls,
        store: DocumentStore,
        channel_id: str,
        session_id: str,
        **kwargs,
    ) -> "SessionOrchestrator":
        """Build an orchestrator with default collaborators on one store."""
        repository = SessionRepository(store)
        return cls(
            channel_id,
            session_id,
            repository=repository,
            messages=MessageChannel(store, repository),
            selector=ActivityPromptSelector(store, repository),
            ledger=ParticipationLedger(store),
            **kwargs,
        )

    @property
    def lifecycle(self) -> SessionLifecycle | None:
        return self._lifecycle

    @property
    def running(self) -> bool:
        return self._worker is not None

    # Lifetime
    async def start(self) -> None:
        """Begin observing the session from a cold state."""
        if self._worker is not None:
            return

        lifecycle = self._new_lifecycle()
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run())

        try:
            lifecycle.session_subscription = await self.repository.observe_session(
                self.channel_id,
                self.session_id,
                lambda session: self._enqueue(lifecycle, SessionObserved(session)),
                lambda error: self._enqueue(lifecycle, ObservationFailed(error, "session")),
            )
        except StoreError as e:
            self._enqueue(lifecycle, ObservationFailed(e, "session"))

        logger.debug(f"Orchestrator started for {self.channel_id}/{self.session_id}")

    async def stop(self) -> None:
        """Cancel subscriptions and drop all per-lifetime state."""
        lifecycle, self._lifecycle = self._lifecycle, None
        if lifecycle is not None:
            self._cancel_subscriptions(lifecycle)

        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
        self._queue = None

        logger.debug(f"Orchestrator stopped for {self.channel_id}/{self.session_id}")

    async def reconnect(self) -> None:
        """Recover from a halted state by restarting cold."""
        await self.stop()
        await self.start()

    def set_identity(self, identity: Identity | None) -> None:
        """Report an identity change (sign-in, sign-out, late resolution)."""
        self._identity = identity
        if self._lifecycle is not None and self._queue is not None:
            self._queue.put_nowait(IdentityChanged(identity))

    async def settle(self) -> None:
        """Wait until every queued event has been processed."""
        if self._queue is not None:
            await self._queue.join()

    # Event processing
    def _new_lifecycle(self) -> SessionLifecycle:
        self._lifecycle = SessionLifecycle(identity=self._identity)
        return self._lifecycle

    def _enqueue(self, lifecycle: SessionLifecycle, event: OrchestratorEvent) -> None:
        # Events from a stopped lifetime are dropped
        if lifecycle is self._lifecycle and self._queue is not None:
            self._queue.put_nowait(event)

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.handle(event)
            except Exception as e:
                logger.error(
                    f"Orchestrator failed to handle {type(event).__name__}: {e}", exc_info=True
                )
                track_exception(e, {"channel_id": self.channel_id, "session_id": self.session_id})
            finally:
                self._queue.task_done()

    async def handle(self, event: OrchestratorEvent) -> None:
        """Apply one event to the state machine."""
        lifecycle = self._lifecycle or self._new_lifecycle()

        if isinstance(event, SessionObserved):
            await self._on_session(lifecycle, event.session)
        elif isinstance(event, MessagesObserved):
            self._on_messages(lifecycle, event.messages)
        elif isinstance(event, IdentityChanged):
            await self._on_identity(lifecycle, event.identity)
        elif isinstance(event, ObservationFailed):
            self._on_failure(lifecycle, event.error, event.source)

    async def _on_session(self, lifecycle: SessionLifecycle, session: Session | None) -> None:
        if lifecycle.halted:
            return

        lifecycle.session = session
        if session is None:
            self._stop_messages(lifecycle)
            lifecycle.mode = None
            lifecycle.status_text = NOT_FOUND_TEXT
            self._emit(lifecycle)
            return

        if session.has_activity:
            lifecycle.activity = selection_from_session(session)

        mode = mode_for(session.status, self.history)
        if mode != lifecycle.mode:
            logger.info(
                f"Session {self.session_id} view mode {getattr(lifecycle.mode, 'value', None)}"
                f" -> {mode.value}"
            )
            track_event(
                TelemetryEvents.VIEW_MODE_CHANGED,
                {"channel_id": self.channel_id, "session_id": self.session_id, "mode": mode.value},
            )
        lifecycle.mode = mode

        if mode == DisplayMode.WAITING:
            self._stop_messages(lifecycle)
            lifecycle.status_text = WAITING_TEXT
            self._emit(lifecycle)

        elif mode == DisplayMode.LIVE:
            lifecycle.status_text = ""
            await self._ensure_messages(lifecycle)
            self._emit(lifecycle)
            await self._run_live_effects(lifecycle)

        elif mode == DisplayMode.ENDED_REDIRECT:
            self._stop_messages(lifecycle)
            lifecycle.status_text = ENDED_TEXT
            lifecycle.redirected = True
            self._emit(lifecycle)

        elif mode == DisplayMode.ENDED_HISTORY:
            lifecycle.status_text = ENDED_TEXT
            await self._ensure_messages(lifecycle)
            self._emit(lifecycle)
            await self._ensure_activity(lifecycle)

    def _on_messages(self, lifecycle: SessionLifecycle, messages: list[Message]) -> None:
        if lifecycle.message_subscription is None or lifecycle.halted:
            logger.debug("Ignoring message snapshot without an active message subscription")
            return
        lifecycle.messages = list(messages)
        self._emit(lifecycle)

    async def _on_identity(self, lifecycle: SessionLifecycle, identity: Identity | None) -> None:
        lifecycle.identity = identity
        if not lifecycle.halted:
            if lifecycle.mode == DisplayMode.LIVE:
                await self._run_live_effects(lifecycle)
            elif lifecycle.mode == DisplayMode.ENDED_HISTORY:
                await self._ensure_activity(lifecycle)
        self._emit(lifecycle)

    def _on_failure(self, lifecycle: SessionLifecycle, error: Exception, source: str) -> None:
        logger.warning(f"Observation of {source} failed for session {self.session_id}: {error}")
        track_event(
            TelemetryEvents.SUBSCRIPTION_FAILED,
            {
                "channel_id": self.channel_id,
                "session_id": self.session_id,
                "source": source,
                "error_type": type(error).__name__,
            },
        )
        lifecycle.halted = True
        lifecycle.status_text = DEGRADED_TEXT
        self._cancel_subscriptions(lifecycle)
        self._emit(lifecycle)

    # Effects
    async def _ensure_messages(self, lifecycle: SessionLifecycle) -> None:
        if lifecycle.message_subscription is not None:
            return
        try:
            lifecycle.message_subscription = await self.messages.observe_messages(
                self.channel_id,
                self.session_id,
                lambda messages: self._enqueue(lifecycle, MessagesObserved(messages)),
                on_error=lambda error: self._enqueue(
                    lifecycle, ObservationFailed(error, "messages")
                ),
            )
        except StoreError as e:
            self._on_failure(lifecycle, e, "messages")

    def _stop_messages(self, lifecycle: SessionLifecycle) -> None:
        if lifecycle.message_subscription is not None:
            lifecycle.message_subscription.cancel()
            lifecycle.message_subscription = None
        lifecycle.messages = []

    async def _ensure_activity(self, lifecycle: SessionLifecycle) -> None:
        user_id = lifecycle.identity.user_id if lifecycle.identity else None
        if user_id in lifecycle.activity_loaded or lifecycle.halted:
            return
        session = lifecycle.session
        # Choosing a prompt needs the viewer's interests
        if lifecycle.identity is None and not (session and session.has_activity):
            return

        lifecycle.activity_loaded.add(user_id)
        lifecycle.activity = await self.selector.select(self.channel_id, self.session_id, user_id)
        self._emit(lifecycle)

    async def _run_live_effects(self, lifecycle: SessionLifecycle) -> None:
        identity = lifecycle.identity
        if identity is None or lifecycle.halted:
            return

        await self._ensure_activity(lifecycle)

        user_id = identity.user_id
        if user_id not in lifecycle.participation_recorded:
            if await self.ledger.record(user_id, self.channel_id, self.session_id):
                lifecycle.participation_recorded.add(user_id)

        if user_id not in lifecycle.last_session_saved:
            if await self.ledger.remember_last_session(user_id, self.channel_id, self.session_id):
                lifecycle.last_session_saved.add(user_id)

    def _cancel_subscriptions(self, lifecycle: SessionLifecycle) -> None:
        if lifecycle.session_subscription is not None:
            lifecycle.session_subscription.cancel()
            lifecycle.session_subscription = None
        if lifecycle.message_subscription is not None:
            lifecycle.message_subscription.cancel()
            lifecycle.message_subscription = None

    # Views
    def _build_view(self, lifecycle: SessionLifecycle) -> SessionView:
        session = lifecycle.session
        redirect = None
        if lifecycle.mode == DisplayMode.ENDED_REDIRECT:
            redirect = Navigation(
                view="summary", channel_id=self.channel_id, session_id=self.session_id
            )

        return SessionView(
            channel_id=self.channel_id,
            session_id=self.session_id,
            history=self.history,
            mode=lifecycle.mode,
            status=session.status if session else None,
            status_text=DEGRADED_TEXT if lifecycle.halted else lifecycle.status_text,
            composer_enabled=(
                lifecycle.mode == DisplayMode.LIVE
                and lifecycle.identity is not None
                and not lifecycle.halted
            ),
            tags=list(session.tags) if session else [],
            messages=list(lifecycle.messages),
            activity=lifecycle.activity,
            redirect=redirect,
            halted=lifecycle.halted,
        )

    def _emit(self, lifecycle: SessionLifecycle) -> None:
        if lifecycle is not self._lifecycle:
            return
        view = self._build_view(lifecycle)
        if view == self.view:
            return
        self.view = view
        if self.on_view is not None:
            self.on_view(view)
