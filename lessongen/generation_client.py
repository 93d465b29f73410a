"""Submission client for the lesson generation provider."""

from datetime import datetime, timezone
from typing import Optional

import httpx

import config
from lessongen.errors import InvalidInput, MalformedResponse, ProviderUnavailable
from lessongen.logger import get_logger
from lessongen.models import GenerationJob, GenerationRequest


class GenerationClient:
    """Submits generation requests to the provider function.

    Submission only: polling lives in JobPoller and retry policy belongs
    to the caller.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        function_url: str = config.PROVIDER_FUNCTION_URL,
        api_key: str = config.SUPABASE_ANON_KEY,
        timeout: float = config.HTTP_TIMEOUT,
    ) -> None:
        self.function_url = function_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Content-Type": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"
            self._headers["apikey"] = api_key

    async def submit(self, request: GenerationRequest) -> GenerationJob:
        """
        Submit a generation request.

        Args:
            request: The generation request to send

        Returns:
            GenerationJob identifying the provider-side prediction

        Raises:
            InvalidInput: If the title is blank or the function rejects the request
            ProviderUnavailable: If the endpoint is unreachable or answers with an error
            MalformedResponse: If the submission response cannot be understood
        """
        if not request.title.strip():
            raise InvalidInput("Please enter a lesson title before generating content.")

        logger = get_logger()
        logger.info(f"Submitting generation for '{request.title}' ({request.level.value})")

        try:
            response = await self._client.post(
                self.function_url, json=request.to_payload(), headers=self._headers
            )
        except httpx.TimeoutException:
            raise ProviderUnavailable("The generation service did not respond in time.")
        except httpx.RequestError as e:
            raise ProviderUnavailable(f"Could not reach the generation service: {e}")

        if response.status_code == 400:
            raise InvalidInput(_error_detail(response) or "The generation request was rejected.")
        if response.is_error:
            detail = _error_detail(response) or f"HTTP {response.status_code}"
            raise ProviderUnavailable(f"The generation service failed: {detail}")

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(f"Generation service returned invalid JSON: {e}")

        return parse_submission(data)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def parse_submission(data: object) -> GenerationJob:
    """
    Build a job handle from the submission response.

    Args:
        data: Parsed JSON body, expected as {id, status, urls: {get}} or {id, status, pollUrl}

    Returns:
        GenerationJob for the new prediction
    """
    if not isinstance(data, dict) or not isinstance(data.get("id"), str) or not data["id"]:
        raise MalformedResponse("Generation service response is missing a job id.")

    poll_url = data.get("pollUrl")
    urls = data.get("urls")
    if not poll_url and isinstance(urls, dict):
        poll_url = urls.get("get")

    return GenerationJob(
        id=data["id"],
        submitted_at=datetime.now(timezone.utc),
        status=str(data.get("status") or "starting"),
        poll_url=poll_url if isinstance(poll_url, str) else None,
    )


def _error_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or None
    if isinstance(body, dict):
        error = body.get("error")
        details = body.get("details")
        if error and details:
            return f"{error} ({details})"
        return error or details
    return None
