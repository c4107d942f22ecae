"""HTTPX client for a remote extraction endpoint."""

from dataclasses import dataclass

import httpx

from meal_parser.errors import ExtractionUnavailableError, MalformedResponseError
from meal_parser.services.extraction import ExtractionClient, ExtractionRequest


@dataclass
class HttpxExtractionClient(ExtractionClient):
    """Posts extraction requests as JSON and returns the decoded reply."""

    url: str
    http_client: httpx.AsyncClient
    api_key: str | None = None
    timeout_seconds: float = 15.0

    @classmethod
    def create(
        cls, url: str, api_key: str | None = None, timeout_seconds: float = 15.0
    ) -> "HttpxExtractionClient":
        """Create a client with a managed httpx session."""
        return cls(
            url=url,
            http_client=httpx.AsyncClient(),
            api_key=api_key,
            timeout_seconds=timeout_seconds,
        )

    async def extract(self, request: ExtractionRequest) -> dict[str, object]:
        """Send the request and return the JSON body."""
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            response = await self.http_client.post(
                self.url,
                json=request.model_dump(by_alias=True, exclude_none=True),
                headers=headers,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ExtractionUnavailableError(str(exc)) from exc
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError("Extraction reply is not JSON") from exc

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
