"""Status poller for submitted generation jobs."""

import asyncio
from typing import Optional

import httpx

import config
from lessongen.errors import MalformedResponse, ProviderUnavailable
from lessongen.logger import get_logger
from lessongen.models import ErrorKind, GenerationJob, PollResult

# Highest synthetic progress shown while a job is still running
PROGRESS_CAP = 95

PENDING_STATUSES = {"starting", "processing", "queued", "pending"}


class JobPoller:
    """Queries job status one call at a time.

    The caller drives the loop: it calls poll(), then wait(), and simply
    stops calling when it no longer cares about the job.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        interval_ms: int = config.POLL_INTERVAL_MS,
        max_poll_count: int = config.MAX_POLL_COUNT,
        status_url: str = config.PROVIDER_STATUS_URL,
        api_token: str = config.PROVIDER_API_TOKEN,
        timeout: float = config.HTTP_TIMEOUT,
    ) -> None:
        if max_poll_count < 1:
            raise ValueError("max_poll_count must be at least 1")
        if interval_ms < 0:
            raise ValueError("interval_ms cannot be negative")
        self.interval_ms = interval_ms
        self.max_poll_count = max_poll_count
        self.status_url = status_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Authorization": f"Bearer {api_token}"} if api_token else {}
        self._poll_counts: dict[str, int] = {}

    async def poll(self, job: GenerationJob) -> PollResult:
        """
        Query the status of a job once.

        Args:
            job: The job to check

        Returns:
            PollResult; a job still pending on its max_poll_count-th poll is
            reported as failed with reason TIMEOUT

        Raises:
            ProviderUnavailable: If the status endpoint is unreachable or errors
            MalformedResponse: If the status body is not a JSON object
        """
        count = self._poll_counts.get(job.id, 0) + 1
        self._poll_counts[job.id] = count

        url = job.poll_url or f"{self.status_url}/{job.id}"
        try:
            response = await self._client.get(url, headers=self._headers)
        except httpx.RequestError as e:
            raise ProviderUnavailable(f"Could not check generation status: {e}")

        if response.is_error:
            raise ProviderUnavailable(
                f"Generation status check failed with HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(f"Generation status was not valid JSON: {e}")
        if not isinstance(data, dict):
            raise MalformedResponse("Generation status was not a JSON object.")

        result = interpret_status(data)
        if not result.is_terminal and count >= self.max_poll_count:
            logger = get_logger()
            logger.warning(f"Job {job.id} still pending after {count} polls, giving up")
            return PollResult.failed(
                ErrorKind.TIMEOUT,
                f"Generation timed out after {count} status checks. Please try again.",
            )
        return result

    async def wait(self) -> None:
        """Sleep for one polling interval."""
        await asyncio.sleep(self.interval_ms / 1000)

    def poll_count(self, job: GenerationJob) -> int:
        return self._poll_counts.get(job.id, 0)

    def discard(self, job: GenerationJob) -> None:
        """Forget a job's poll counter."""
        self._poll_counts.pop(job.id, None)

    def progress_for(self, poll_count: int) -> int:
        """Synthetic progress estimate, capped below completion."""
        return min(int(poll_count * 100 / self.max_poll_count), PROGRESS_CAP)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def interpret_status(data: dict) -> PollResult:
    """
    Map a provider prediction body onto a PollResult.

    Args:
        data: Status body like {id, status, output, error}

    Returns:
        PollResult for the reported status
    """
    status = str(data.get("status") or "").lower()

    if status in PENDING_STATUSES:
        return PollResult.pending()
    if status == "succeeded":
        return PollResult.succeeded(data.get("output"))
    if status == "failed":
        error = data.get("error") or "unknown provider error"
        return PollResult.failed(
            ErrorKind.PROVIDER_UNAVAILABLE, f"The AI provider failed to generate content: {error}"
        )
    if status in ("canceled", "cancelled"):
        return PollResult.canceled()

    raise MalformedResponse(f"Unrecognized generation status: {status or '<missing>'}")
