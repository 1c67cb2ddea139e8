import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from gradebook.core.config import settings
from gradebook.core.exceptions import InvalidGradingResponseError

logger = logging.getLogger(__name__)


class TextEvaluationClient(Protocol):
    async def evaluate(
        self, *, question_text: Optional[str], model_answer: str, student_answer: str, max_score: float
    ) -> Dict[str, Any]:
        ...


class HttpTextEvaluationClient:
    """Calls the hosted text-evaluation function that grades free-text answers.

    Transport failures surface as ``httpx`` errors and unusable payloads as
    ``InvalidGradingResponseError``; retry policy belongs to the caller.
    """

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = base_url or settings.GRADING_API_URL
        self.api_key = api_key if api_key is not None else settings.GRADING_API_KEY
        self.timeout = timeout or settings.GRADING_TIMEOUT_SECONDS
        if not self.base_url:
            raise ValueError("GRADING_API_URL is not set in environment variables")

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def evaluate(
        self, *, question_text: Optional[str], model_answer: str, student_answer: str, max_score: float
    ) -> Dict[str, Any]:
        body = {
            "question_text": question_text or "",
            "model_answer": model_answer,
            "student_answer": student_answer,
            "max_score": max_score,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.base_url, json=body, headers=self._headers())
            response.raise_for_status()

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidGradingResponseError(f"Grading response is not JSON: {e}")

        if not isinstance(data, dict):
            raise InvalidGradingResponseError("Grading response is not a JSON object")
        if "error" in data:
            raise InvalidGradingResponseError(f"Grading backend error: {data['error']}")
        return data
