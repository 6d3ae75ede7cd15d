# errorlytic/services/openai_client.py
"""ReasoningClient implementation on the OpenAI chat completions API."""

import logging
from typing import Any, Dict, List, Optional

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    NotFoundError,
    OpenAI,
    OpenAIError,
    PermissionDeniedError,
    RateLimitError,
)

from ..config import settings
from ..errors import EnrichmentUnavailable
from .fault_classifier import ClassifiedFault

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert automotive technician with deep knowledge of VAG Group "
    "vehicles and diagnostic systems."
)


def describe_vehicle(vehicle_info: Dict[str, Any]) -> str:
    parts = [str(vehicle_info[key]) for key in ("year", "make", "model") if vehicle_info.get(key)]
    if vehicle_info.get("vin"):
        parts.append(f"VIN {vehicle_info['vin']}")
    if vehicle_info.get("mileage"):
        parts.append(f"{vehicle_info['mileage']} {vehicle_info.get('mileage_unit', 'km')}")
    return ", ".join(parts) or "unknown vehicle"


class OpenAIReasoningClient:
    """Generate diagnostic text with OpenAI chat completions.

    The SDK client is created lazily with a bounded timeout and no automatic
    retries, so every call is a single attempt.
    """

    provider = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL
        self._base_url = base_url if base_url is not None else settings.OPENAI_BASE_URL
        self._timeout = timeout if timeout is not None else settings.AI_TIMEOUT_SECONDS
        self._client: Optional[OpenAI] = None

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def assess(self, faults: List[ClassifiedFault], vehicle_info: Dict[str, Any]) -> str:
        fault_lines = "\n".join(
            f"- {f.code} ({f.severity}, {f.category}): {f.description}" for f in faults
        )
        prompt = (
            f"Vehicle: {describe_vehicle(vehicle_info)}\n"
            f"Diagnostic trouble codes:\n{fault_lines}\n\n"
            "Give an overall assessment covering: the most urgent issue, whether the "
            "vehicle is safe to drive, likely shared root causes between codes, and "
            "the recommended repair order."
        )
        return self._complete(prompt, max_tokens=800)

    def explain(self, fault: ClassifiedFault, vehicle_info: Dict[str, Any]) -> str:
        prompt = (
            f"Vehicle: {describe_vehicle(vehicle_info)}\n"
            f"Error code {fault.code}: {fault.description}\n\n"
            "Explain in plain language what this code means, the affected system and "
            "component, and the impact on driving."
        )
        return self._complete(prompt)

    def troubleshoot(self, fault: ClassifiedFault, vehicle_info: Dict[str, Any]) -> str:
        prompt = (
            f"Vehicle: {describe_vehicle(vehicle_info)}\n"
            f"Error code {fault.code}: {fault.description}\n\n"
            "List numbered troubleshooting steps a workshop technician should follow, "
            "from the simplest checks to component replacement."
        )
        return self._complete(prompt)

    def _complete(self, prompt: str, max_tokens: int = 500) -> str:
        """Run one chat completion.

        Raises:
            EnrichmentUnavailable: If the request fails or the reply is empty.
        """
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=max_tokens,
                temperature=0.7,
            )
        except (
            APIConnectionError,
            APIError,
            APITimeoutError,
            AuthenticationError,
            BadRequestError,
            InternalServerError,
            NotFoundError,
            PermissionDeniedError,
            RateLimitError,
            OSError,
            ValueError,
        ) as exc:
            logger.warning(f"[Enrichment] OpenAI request failed (model={self.model} error={exc})")
            raise EnrichmentUnavailable(str(exc)) from exc

        content = _extract_message_content(response)
        if not content:
            logger.warning(f"[Enrichment] OpenAI response had no content (model={self.model})")
            raise EnrichmentUnavailable("OpenAI response does not contain generation content.")
        return content

    def _get_client(self) -> OpenAI:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise EnrichmentUnavailable("OpenAI API key not configured")
        try:
            self._client = OpenAI(
                api_key=self._api_key,
                base_url=self._base_url or None,
                timeout=self._timeout,
                max_retries=0,
            )
        except (OpenAIError, OSError, ValueError) as exc:
            logger.warning(f"[Enrichment] OpenAI client initialization failed: {exc}")
            raise EnrichmentUnavailable(str(exc)) from exc
        return self._client


def _extract_message_content(response: object) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    if isinstance(content, str):
        return content.strip()
    return ""
