import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from gradebook.core.config import settings
from gradebook.core.constants import CorrectnessEnum, NO_ANSWER_FEEDBACK, NO_ANSWER_IMPROVEMENT
from gradebook.core.exceptions import GradingUnavailableError, InvalidGradingResponseError
from gradebook.schemas.evaluation import GradingResult
from gradebook.services.answer_evaluator import correctness_for_score, is_blank, needs_evaluation
from gradebook.services.text_evaluation import TextEvaluationClient

logger = logging.getLogger(__name__)


class OpenEndedGrader:
    """Grades free-text answers through an injected text-evaluation client.

    Every external call is bounded by a per-call timeout and a small, fixed
    number of retries. When the budget is spent, ``GradingUnavailableError``
    is raised and the answer must stay pending; no default score is invented.
    """

    def __init__(
        self,
        client: TextEvaluationClient,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.client = client
        self.timeout = timeout if timeout is not None else settings.GRADING_TIMEOUT_SECONDS
        self.max_retries = max_retries if max_retries is not None else settings.GRADING_MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.GRADING_RETRY_DELAY_SECONDS

    @staticmethod
    def needs_grading(answer: Any) -> bool:
        return needs_evaluation(answer)

    async def grade(
        self, model_answer: str, answer_text: Optional[str], marks: float, question_text: Optional[str] = None
    ) -> GradingResult:
        if is_blank(answer_text):
            return GradingResult(
                score=0.0,
                correctness=CorrectnessEnum.INCORRECT,
                feedback=NO_ANSWER_FEEDBACK,
                how_to_improve=NO_ANSWER_IMPROVEMENT,
            )

        total_calls = self.max_retries + 1
        last_error: Optional[Exception] = None

        for call_number in range(1, total_calls + 1):
            try:
                payload = await asyncio.wait_for(
                    self.client.evaluate(
                        question_text=question_text,
                        model_answer=model_answer,
                        student_answer=answer_text,
                        max_score=marks,
                    ),
                    timeout=self.timeout,
                )
                return self._to_result(payload, marks)
            except asyncio.TimeoutError as e:
                last_error = e
                logger.warning(f"Grading call {call_number}/{total_calls} timed out after {self.timeout}s")
            except httpx.HTTPStatusError as e:
                if e.response.status_code < 500:
                    # A 4xx will not go away on retry.
                    logger.error(f"Grading call {call_number}/{total_calls} rejected: {e}")
                    raise GradingUnavailableError(f"Grading backend rejected the request: {e}", attempts=call_number) from e
                last_error = e
                logger.warning(f"Grading call {call_number}/{total_calls} failed: {e}")
            except (httpx.HTTPError, InvalidGradingResponseError) as e:
                last_error = e
                logger.warning(f"Grading call {call_number}/{total_calls} failed: {e}")

            if call_number < total_calls and self.retry_delay > 0:
                await asyncio.sleep(self.retry_delay)

        raise GradingUnavailableError(
            f"Grading backend unavailable after {total_calls} calls: {last_error}",
            attempts=total_calls,
        )

    def _to_result(self, payload: Dict[str, Any], marks: float) -> GradingResult:
        raw_score = payload.get("score")
        if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float)):
            raise InvalidGradingResponseError(f"Grading response has no numeric score: {raw_score!r}")

        score = min(max(0.0, float(raw_score)), float(marks))
        feedback = payload.get("feedback") or None
        return GradingResult(
            score=score,
            correctness=correctness_for_score(score, marks),
            feedback=feedback,
            how_to_improve=payload.get("how_to_improve") or feedback,
        )
