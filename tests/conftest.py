"""Shared fixtures and provider fakes for the generation pipeline tests."""

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from lessongen.models import GenerationJob, PollResult

FUNCTION_URL = "https://backend.test/functions/v1/generate-lesson-content"
STATUS_URL = "https://provider.test/v1/predictions"

PENDING = {"status": "processing", "output": None}


@pytest.fixture
def lesson_payload() -> dict:
    return {
        "description": "Learn how to order food and drinks in a restaurant.",
        "objectives": ["Read a menu", "Order a meal politely"],
        "practicalSituations": ["Ordering at a cafe", "Asking for the bill"],
        "keyPhrases": [
            {
                "phrase": "I'd like the soup, please.",
                "translation": "Quisiera la sopa, por favor.",
                "usage": "Polite way to order",
            }
        ],
        "vocabulary": [
            {"word": "menu", "translation": "menú", "partOfSpeech": "noun"},
            {"word": "order", "translation": "pedir", "partOfSpeech": "verb"},
        ],
        "explanations": ["'Would like' is softer than 'want'.", "Use 'please' at the end."],
        "tips": ["Practice with a real menu", "Role-play with a friend"],
    }


class ProviderStub:
    """httpx MockTransport handler playing both provider endpoints.

    Status responses are served in order; the last one repeats.
    """

    def __init__(self, statuses=None, *, submit_status=201, submit_body=None):
        self.statuses = list(statuses or [PENDING])
        self.submit_status = submit_status
        self.submit_body = submit_body
        self.submissions: list[dict] = []
        self.status_requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            self.submissions.append(json.loads(request.content))
            body = self.submit_body or {
                "id": f"job-{len(self.submissions)}",
                "status": "starting",
                "urls": {"get": f"{STATUS_URL}/job-{len(self.submissions)}"},
            }
            return httpx.Response(self.submit_status, json=body)

        self.status_requests.append(request)
        body = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return httpx.Response(200, json=body)

    @property
    def polls(self) -> int:
        return len(self.status_requests)


def make_http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class FakeClient:
    """GenerationClient stand-in issuing sequential job ids."""

    def __init__(self):
        self.requests = []

    async def submit(self, request):
        self.requests.append(request)
        return GenerationJob(
            id=f"job-{len(self.requests)}",
            submitted_at=datetime.now(timezone.utc),
        )


class BlockingPoller:
    """JobPoller stand-in whose polls wait until released per job."""

    max_poll_count = 10

    def __init__(self, results: dict[str, PollResult], blocked: set[str] = frozenset()):
        self.results = results
        self.gates = {job_id: asyncio.Event() for job_id in blocked}
        self.polled: list[str] = []
        self.discarded: list[str] = []

    def release(self, job_id: str) -> None:
        self.gates[job_id].set()

    async def poll(self, job):
        self.polled.append(job.id)
        if job.id in self.gates:
            await self.gates[job.id].wait()
        return self.results[job.id]

    async def wait(self):
        await asyncio.sleep(0)

    def discard(self, job):
        self.discarded.append(job.id)

    def progress_for(self, poll_count: int) -> int:
        return min(poll_count * 10, 95)


async def wait_for_phase(machine, phase, attempts: int = 200) -> None:
    for _ in range(attempts):
        if machine.phase == phase:
            return
        await asyncio.sleep(0.005)
    raise AssertionError(f"machine never reached {phase.value}, stuck in {machine.phase.value}")
