"""OpenAI Responses API client for meal extraction."""

import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from meal_parser.errors import MalformedResponseError
from meal_parser.services.extraction import (
    EXTRACTION_SCHEMA,
    EditTarget,
    ExtractionClient,
    ExtractionRequest,
)

SYSTEM_PROMPT = """You are a nutrition parser that returns structured JSON.
1. Extract every food item from natural speech.
2. Use your knowledge of nutrition data for foods and brands.
3. Use standard serving sizes when none is given.
4. Turn relative times (yesterday, this morning) into ISO 8601 timestamps.
5. Handle multiple meals in one input.
6. Make reasonable assumptions and note them per item.
7. Report your confidence between 0 and 1.
Current time: {current_time}"""

EDIT_PROMPT = """Apply the user's edit instruction to an existing food entry.
Return the edited entry as the only item in "foods", with the same JSON
fields used for extraction. Keep the original timestamp unless the
instruction changes it, and note what you assumed.
Current time: {current_time}"""


@dataclass
class OpenAIExtractionClient(ExtractionClient):
    """Extraction client backed by OpenAI structured outputs."""

    client: AsyncOpenAI
    model: str
    timeout_seconds: float = 15.0

    @classmethod
    def create(
        cls, api_key: str, model: str, timeout_seconds: float = 15.0
    ) -> "OpenAIExtractionClient":
        """Create an OpenAI extraction client."""
        return cls(
            client=AsyncOpenAI(api_key=api_key),
            model=model,
            timeout_seconds=timeout_seconds,
        )

    async def extract(self, request: ExtractionRequest) -> dict[str, object]:
        """Call the Responses API with the extraction schema."""
        prompt = SYSTEM_PROMPT
        user_text = request.raw_text
        if request.edit_target is not None:
            prompt = EDIT_PROMPT
            user_text = _edit_message(request.edit_target, request.raw_text)
        elif request.attempt_index > 0:
            user_text += (
                f" (User clarifying - attempt {request.attempt_index + 1}/3)"
            )
        response = await self.client.responses.create(
            model=self.model,
            instructions=prompt.format(current_time=request.current_time),
            input=[{"role": "user", "content": user_text}],
            text={
                "format": {
                    "type": "json_schema",
                    "name": "meal_extract",
                    "strict": True,
                    "schema": EXTRACTION_SCHEMA,
                }
            },
            store=False,
            timeout=self.timeout_seconds,
        )
        output_text = response.output_text
        if not output_text:
            raise MalformedResponseError("OpenAI returned an empty response")
        try:
            return json.loads(output_text)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError("OpenAI returned invalid JSON") from exc

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()


def _edit_message(target: EditTarget, instruction: str) -> str:
    return (
        "Original entry:\n"
        f"- Name: {target.name}\n"
        f"- Calories: {target.calories}\n"
        f"- Protein: {target.protein}g\n"
        f"- Carbs: {target.carbs}g\n"
        f"- Fat: {target.fat}g\n"
        f"- Timestamp: {target.timestamp}\n\n"
        f'Edit instruction: "{instruction}"'
    )
