"""Lesson persistence against the backend's REST interface."""

from datetime import datetime, timezone
from typing import Optional

import httpx
from tenacity import RetryError, retry, retry_if_exception, stop_after_attempt, wait_exponential

import config
from lessongen import response_parser
from lessongen.errors import LessonNotFound, LessonStoreError, MalformedResponse
from lessongen.logger import get_logger
from lessongen.models import ContentSource, GenerationMetadata, LessonForm


def _is_transient(error: BaseException) -> bool:
    if isinstance(error, httpx.TimeoutException):
        return True
    return isinstance(error, httpx.HTTPStatusError) and error.response.status_code >= 500


_retry_transient = retry(
    stop=stop_after_attempt(config.STORE_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(_is_transient),
)


class LessonStore:
    """Reads and writes lesson rows, including their generation provenance."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        base_url: str = config.SUPABASE_URL,
        api_key: str = config.SUPABASE_ANON_KEY,
        access_token: Optional[str] = None,
        timeout: float = config.HTTP_TIMEOUT,
    ) -> None:
        self.table_url = f"{base_url.rstrip('/')}/rest/v1/{config.LESSONS_TABLE}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
        }

    async def fetch(self, lesson_id: str) -> LessonForm:
        """
        Load a lesson into a form.

        Args:
            lesson_id: Lesson primary key

        Returns:
            LessonForm populated from the stored row

        Raises:
            LessonNotFound: If no row matches
            LessonStoreError: If the backend cannot be read
        """
        rows = await self._request(
            "GET", params={"id": f"eq.{lesson_id}", "select": "*"}
        )
        if not rows:
            raise LessonNotFound(f"Lesson not found: {lesson_id}")
        return form_from_record(rows[0])

    async def save(self, form: LessonForm, lesson_id: Optional[str] = None) -> str:
        """
        Insert a new lesson or update an existing one.

        Args:
            form: The lesson form to persist
            lesson_id: Existing lesson id, or None to create a lesson

        Returns:
            The id of the saved lesson
        """
        logger = get_logger()
        record = form.to_record()
        headers = {"Prefer": "return=representation"}

        if lesson_id is None:
            rows = await self._request("POST", json=record, headers=headers)
            if not rows or "id" not in rows[0]:
                raise LessonStoreError("Lesson insert returned no id")
            lesson_id = str(rows[0]["id"])
            logger.info(f"Created lesson {lesson_id} ({form.content_source.value})")
        else:
            record["updated_at"] = datetime.now(timezone.utc).isoformat()
            rows = await self._request(
                "PATCH", params={"id": f"eq.{lesson_id}"}, json=record, headers=headers
            )
            if not rows:
                raise LessonNotFound(f"Lesson not found: {lesson_id}")
            logger.info(f"Updated lesson {lesson_id} ({form.content_source.value})")

        return lesson_id

    async def _request(self, method: str, **kwargs) -> list[dict]:
        try:
            return await self._send(method, **kwargs)
        except RetryError as e:
            raise LessonStoreError(f"Lesson store unavailable after retries: {e.last_attempt.exception()}")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise LessonNotFound("Lesson not found")
            raise LessonStoreError(f"Lesson store error: HTTP {e.response.status_code}")
        except httpx.RequestError as e:
            raise LessonStoreError(f"Lesson store unreachable: {e}")

    @_retry_transient
    async def _send(self, method: str, *, headers: Optional[dict] = None, **kwargs) -> list[dict]:
        response = await self._client.request(
            method, self.table_url, headers={**self._headers, **(headers or {})}, **kwargs
        )
        response.raise_for_status()
        if not response.content:
            return []
        try:
            data = response.json()
        except ValueError as e:
            raise LessonStoreError(f"Lesson store returned invalid JSON: {e}")
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            raise LessonStoreError("Unexpected lesson store response format")
        return data

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def form_from_record(row: dict) -> LessonForm:
    """
    Build a lesson form from a stored row.

    Unknown provenance values fall back to manual; stored AI documents
    are re-validated and dropped if they no longer parse.
    """
    logger = get_logger()

    try:
        source = ContentSource(row.get("content_source"))
    except ValueError:
        source = ContentSource.MANUAL

    structured = None
    if row.get("structured_content"):
        try:
            structured = response_parser.parse(row["structured_content"])
        except MalformedResponse as e:
            logger.warning(f"Ignoring stored structured content for lesson {row.get('id')}: {e}")

    metadata = None
    if row.get("generation_metadata"):
        try:
            metadata = GenerationMetadata.model_validate(row["generation_metadata"])
        except ValueError as e:
            logger.warning(f"Ignoring stored generation metadata for lesson {row.get('id')}: {e}")

    return LessonForm(
        title=row.get("title") or "",
        content=row.get("content") or "",
        estimated_minutes=row.get("estimated_minutes") or config.DEFAULT_ESTIMATED_MINUTES,
        is_published=bool(row.get("is_published")),
        content_source=source,
        structured_content=structured,
        generation_metadata=metadata,
    )
