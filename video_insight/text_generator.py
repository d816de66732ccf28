"""Summaries, quizzes, answers and translations from transcript text using Google Gemini."""

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from video_insight.errors import GenerationError, QuizParseError
from video_insight.retry import GENERATION_POLICY, retry_policy

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"

SUMMARY_PROMPT = "Summarize the following text concisely: {text}"

TRANSLATE_PROMPT = "Translate the following text to {language}: {text}"

QA_PROMPT = """Based on the following context, identify and summarize the main idea:
Context: {context}
Question: {question}
Please provide a clear and concise summary of the main idea."""

QUIZ_PROMPT = """Generate a quiz based on the following text.
The quiz must include exactly 3 multiple-choice questions and exactly 2 true/false questions.
Each multiple-choice question has four answer options labeled A, B, C and D and one correct answer label.
Each true/false question states whether it is true or false.

Text: {text}

Respond only with a JSON object of this shape:
{{
    "multipleChoice": [
        {{
            "question": "Question 1",
            "options": {{"A": "Option A", "B": "Option B", "C": "Option C", "D": "Option D"}},
            "correctAnswer": "A"
        }}
    ],
    "trueFalse": [
        {{"question": "True/False Question 1", "answer": true}}
    ]
}}"""

_FENCE_OPEN = re.compile(r"^```[\w+-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


class QuizOptions(BaseModel):
    A: str
    B: str
    C: str
    D: str


class MultipleChoiceItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str
    options: QuizOptions
    correct_answer: Literal["A", "B", "C", "D"] = Field(alias="correctAnswer")


class TrueFalseItem(BaseModel):
    question: str
    answer: bool


class Quiz(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    multiple_choice: list[MultipleChoiceItem] = Field(
        alias="multipleChoice", min_length=3, max_length=3
    )
    true_false: list[TrueFalseItem] = Field(alias="trueFalse", min_length=2, max_length=2)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang line and a trailing ``` from a model response."""
    cleaned = (text or "").strip()
    cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
    cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_quiz(raw: str) -> Quiz:
    """
    Parse the provider's quiz response.

    Raises:
        QuizParseError: Not JSON, or not the expected 3 + 2 question schema.
    """
    try:
        data = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as e:
        raise QuizParseError(f"Quiz response is not valid JSON: {e}") from e
    try:
        return Quiz.model_validate(data)
    except SchemaError as e:
        raise QuizParseError(f"Quiz response does not match the quiz schema: {e}") from e


class GeminiTextGenerator:
    """Text tasks on top of one Gemini ``generate_content`` call."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        client: Any = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.api_key = api_key
        self.model = model
        self._client = client
        self._generate_content = retry_policy(
            GENERATION_POLICY.max_attempts,
            GENERATION_POLICY.classify,
            sleep=sleep,
            label="gemini generate_content",
        )(self._call_model)

    def _ensure_client(self) -> Any:
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def _call_model(self, prompt: str) -> str:
        response = await self._ensure_client().aio.models.generate_content(
            model=self.model,
            contents=prompt,
        )
        return response.text or ""

    async def generate(self, prompt: str) -> str:
        """Send one prompt and return the raw response text."""
        try:
            text = await self._generate_content(prompt)
        except Exception as e:
            raise GenerationError(str(e) or type(e).__name__) from e
        if not text.strip():
            raise GenerationError("Generation provider returned an empty response")
        return text

    async def summarize(self, text: str) -> str:
        return await self.generate(SUMMARY_PROMPT.format(text=text))

    async def translate(self, text: str, target_language: str) -> str:
        return await self.generate(TRANSLATE_PROMPT.format(language=target_language, text=text))

    async def answer_question(self, context: str, question: str) -> str:
        # Asks for the context's main idea rather than a direct answer.
        return await self.generate(QA_PROMPT.format(context=context, question=question))

    async def generate_quiz(self, text: str) -> Quiz:
        raw = await self.generate(QUIZ_PROMPT.format(text=text))
        quiz = parse_quiz(raw)
        logger.info("Generated quiz with %d multiple-choice and %d true/false items",
                    len(quiz.multiple_choice), len(quiz.true_false))
        return quiz
