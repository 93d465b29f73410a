"""State machine driving one AI lesson generation attempt at a time."""

import asyncio
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

import config
from lessongen import response_parser
from lessongen.content_reconciler import ContentReconciler
from lessongen.errors import GenerationError, GenerationTimeout, InvalidInput, ProviderUnavailable
from lessongen.generation_client import GenerationClient
from lessongen.job_poller import PROGRESS_CAP, JobPoller
from lessongen.logger import get_logger
from lessongen.models import (
    ErrorKind,
    GeneratedLessonContent,
    GenerationJob,
    GenerationMetadata,
    GenerationPhase,
    GenerationRequest,
    GenerationState,
    Level,
    PollResult,
    PollStatus,
)

StateListener = Callable[[GenerationState], None]

STARTING_PROGRESS = 10
ANALYZING_PROGRESS = 20
GENERATING_PROGRESS = 30

FAILED_POLL_ERRORS = {
    ErrorKind.TIMEOUT: GenerationTimeout,
    ErrorKind.PROVIDER_UNAVAILABLE: ProviderUnavailable,
}


class GenerationStateMachine:
    """Owns the phase, progress and error of generation attempts for one form.

    All state changes go through the transition methods below, which keep
    progress non-decreasing within an attempt. Every asynchronous step
    captures the attempt's epoch and drops its result if the epoch has
    moved on (cancel, or a newer start) or the attempt is no longer active.
    """

    def __init__(
        self,
        client: GenerationClient,
        poller: JobPoller,
        reconciler: ContentReconciler,
        *,
        parser: Callable[[Any], GeneratedLessonContent] = response_parser.parse,
        language: str = config.DEFAULT_LANGUAGE,
        analyzing_delay: float = config.ANALYZING_DELAY_S,
        generating_delay: float = config.GENERATING_DELAY_S,
    ) -> None:
        self.client = client
        self.poller = poller
        self.reconciler = reconciler
        self.parser = parser
        self.language = language
        self.analyzing_delay = analyzing_delay
        self.generating_delay = generating_delay

        self.state = GenerationState(max_poll_count=poller.max_poll_count)
        self._epoch = 0
        self._job: Optional[GenerationJob] = None
        self._timers: list[asyncio.TimerHandle] = []
        self._listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def phase(self) -> GenerationPhase:
        return self.state.phase

    @property
    def generating(self) -> bool:
        return self.state.phase.is_active

    def snapshot(self) -> GenerationState:
        return self.state.model_copy(deep=True)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener for state snapshots; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(
        self,
        title: str,
        level: Union[Level, str] = Level.BEGINNER,
        instructions: str = "",
    ) -> Optional[GeneratedLessonContent]:
        """
        Run a full generation attempt and write the result into the form.

        Any attempt already in flight is abandoned first.

        Args:
            title: Lesson title
            level: Target learner level
            instructions: Optional extra instructions for the model

        Returns:
            The generated document on success, None on error or cancellation
        """
        logger = get_logger()
        epoch = self._begin()

        if not title or not title.strip():
            self._fail(InvalidInput("Please enter a lesson title before generating content."))
            return None

        try:
            request = GenerationRequest(
                title=title,
                level=level,
                language=self.language,
                instructions=instructions,
            )
        except ValidationError as e:
            self._fail(InvalidInput(f"Invalid generation settings: {e.errors()[0]['msg']}"))
            return None

        self._emit()
        self._schedule_heuristics(epoch)

        try:
            job = await self.client.submit(request)
            if self._is_stale(epoch):
                logger.debug(f"Discarding job {job.id} submitted for a superseded attempt")
                return None
            self._record_job(job)

            result = await self._poll_until_terminal(job, epoch)
            if result is None or self._is_stale(epoch):
                return None
            if result.status == PollStatus.CANCELED:
                self._cancel("The generation was canceled by the provider.")
                return None
            if result.status == PollStatus.FAILED:
                error_class = FAILED_POLL_ERRORS.get(result.reason, GenerationError)
                raise error_class(result.message)

            document = self.parser(result.payload)
            if self._is_stale(epoch):
                return None

            metadata = GenerationMetadata(
                generation_id=job.id,
                level=request.level,
                language=request.language,
                instructions=request.instructions,
                generated_at=config.utc_timestamp(),
                poll_count=self.state.poll_count,
            )
            self.reconciler.accept(document, request.title, metadata)
            self._complete()
            return document

        except GenerationError as e:
            if not self._is_stale(epoch):
                self._fail(e)
            return None
        except asyncio.CancelledError:
            if not self._is_stale(epoch):
                self.cancel()
            raise
        except Exception as e:
            logger.error(f"Unexpected error during generation: {e}", exc_info=True)
            if not self._is_stale(epoch):
                self._fail(GenerationError(f"An unexpected error occurred: {e}"))
            return None
        finally:
            if epoch == self._epoch:
                self._release()

    def cancel(self) -> None:
        """Abandon the active attempt. No-op when nothing is running."""
        if not self.state.phase.is_active:
            return
        self._epoch += 1
        self._cancel("Generation canceled.")

    def dispose(self) -> None:
        """Teardown for a discarded form: stop polling and drop listeners."""
        self.cancel()
        self._release()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _poll_until_terminal(self, job: GenerationJob, epoch: int) -> Optional[PollResult]:
        while True:
            result = await self.poller.poll(job)
            if self._is_stale(epoch):
                get_logger().debug(f"Discarding stale poll result for job {job.id}")
                return None
            self._record_poll()
            if result.is_terminal:
                return result

            await self.poller.wait()
            if self._is_stale(epoch):
                return None

    def _is_stale(self, epoch: int) -> bool:
        return epoch != self._epoch or not self.state.phase.is_active

    # ------------------------------------------------------------------
    # Heuristic phase timers
    # ------------------------------------------------------------------

    def _schedule_heuristics(self, epoch: int) -> None:
        loop = asyncio.get_running_loop()
        self._timers = [
            loop.call_later(
                self.analyzing_delay,
                self._advance,
                epoch,
                GenerationPhase.STARTING,
                GenerationPhase.ANALYZING,
                ANALYZING_PROGRESS,
                "Analyzing the lesson topic...",
            ),
            loop.call_later(
                self.generating_delay,
                self._advance,
                epoch,
                GenerationPhase.ANALYZING,
                GenerationPhase.GENERATING,
                GENERATING_PROGRESS,
                "Generating lesson content...",
            ),
        ]

    def _cancel_timers(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers = []

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _begin(self) -> int:
        previous = self.state.phase
        self._epoch += 1
        self._release()

        retry_count = self.state.retry_count
        if previous == GenerationPhase.ERROR:
            retry_count += 1
        elif previous == GenerationPhase.COMPLETE:
            retry_count = 0

        self.state = GenerationState(
            phase=GenerationPhase.STARTING,
            progress_percent=STARTING_PROGRESS,
            status_message="Starting lesson generation...",
            max_poll_count=self.poller.max_poll_count,
            retry_count=retry_count,
        )
        get_logger().info(f"Generation attempt started (retry {retry_count})")
        return self._epoch

    def _advance(
        self,
        epoch: int,
        expected: GenerationPhase,
        phase: GenerationPhase,
        progress: int,
        message: str,
    ) -> None:
        if epoch != self._epoch or self.state.phase != expected:
            get_logger().debug(f"Skipping heuristic move to {phase.value} from {self.state.phase.value}")
            return
        self.state.phase = phase
        self.state.status_message = message
        self._raise_progress(progress)
        self._emit()

    def _record_job(self, job: GenerationJob) -> None:
        self._job = job
        self.state.generation_id = job.id
        get_logger().info(f"Generation job {job.id} submitted")
        self._emit()

    def _record_poll(self) -> None:
        self.state.poll_count += 1
        self._raise_progress(self.poller.progress_for(self.state.poll_count))
        self._emit()

    def _complete(self) -> None:
        self._cancel_timers()
        self.state.phase = GenerationPhase.COMPLETE
        self.state.progress_percent = 100
        self.state.status_message = "Lesson content generated successfully!"
        get_logger().info(
            f"Generation {self.state.generation_id} complete after {self.state.poll_count} polls"
        )
        self._emit()

    def _fail(self, error: GenerationError) -> None:
        self._cancel_timers()
        self.state.phase = GenerationPhase.ERROR
        self.state.error = error.to_info()
        self.state.status_message = error.message
        get_logger().warning(f"Generation failed ({error.kind.value}): {error.message}")
        self._emit()

    def _cancel(self, message: str) -> None:
        self._cancel_timers()
        self._release()
        self.state = GenerationState(
            phase=GenerationPhase.CANCELED,
            status_message=message,
            max_poll_count=self.poller.max_poll_count,
            retry_count=self.state.retry_count,
        )
        get_logger().info(message)
        self._emit()

    def _raise_progress(self, value: int) -> None:
        capped = min(value, PROGRESS_CAP)
        if capped > self.state.progress_percent:
            self.state.progress_percent = capped

    def _release(self) -> None:
        self._cancel_timers()
        if self._job is not None:
            self.poller.discard(self._job)
            self._job = None

    def _emit(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                get_logger().exception("State listener raised")
