"""Analysis oracle client.

Sends one document to an OpenAI-compatible chat-completions endpoint
together with the forensic instruction set and returns the raw text of
the model's answer. The call is made exactly once; retrying is left to
the user.
"""

import base64
from typing import Any, Dict, Optional

import httpx

from docguard.core.config import settings
from docguard.core.logger import logger
from docguard.services.prompts import FORENSIC_PROMPT_VERSION, get_forensic_prompt
from docguard.utils.exceptions import OracleError

# Multiple of 3 so the encoded chunks concatenate into one valid string
ENCODE_CHUNK_SIZE = 8190

RATE_LIMITED_MESSAGE = "Rate limit exceeded. Please try again in a few minutes."
QUOTA_EXHAUSTED_MESSAGE = "AI credits exhausted. Please add credits to continue."
TRANSPORT_ERROR_MESSAGE = "AI analysis failed. Please try again."
EMPTY_RESPONSE_MESSAGE = "No analysis content received"
NOT_CONFIGURED_MESSAGE = "AI service not configured"


def encode_payload(payload: bytes, chunk_size: int = ENCODE_CHUNK_SIZE) -> str:
    """Base64-encode `payload` chunk by chunk.

    `chunk_size` must be a multiple of 3, otherwise padding would appear in
    the middle of the output.
    """
    if chunk_size % 3:
        raise ValueError("chunk_size must be a multiple of 3")
    parts = []
    for start in range(0, len(payload), chunk_size):
        parts.append(base64.b64encode(payload[start:start + chunk_size]).decode("ascii"))
    return "".join(parts)


class OracleClient:
    """Client for the multimodal analysis model.

    Wraps a single chat-completions call. Failures are raised as
    `OracleError` with one of the kinds rate_limited, quota_exhausted,
    transport_error, empty_response or not_configured.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the oracle client.

        Args:
            api_key: Bearer token for the gateway (defaults to settings)
            model: Model name
            base_url: Full chat-completions URL
            timeout: Request timeout in seconds
            max_tokens: Output token budget
            transport: Optional httpx transport, used by tests
        """
        self.api_key = settings.ORACLE_API_KEY if api_key is None else api_key
        self.model = model or settings.ORACLE_MODEL
        self.base_url = base_url or settings.ORACLE_API_URL
        self.timeout = timeout or settings.ORACLE_TIMEOUT_SECONDS
        self.max_tokens = max_tokens or settings.ORACLE_MAX_TOKENS
        self.transport = transport

    def build_request(self, payload: bytes, mime_type: str) -> Dict[str, Any]:
        data_url = f"data:{mime_type};base64,{encode_payload(payload)}"
        return {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": get_forensic_prompt()},
                        {"type": "image_url", "image_url": {"url": data_url}},
                    ],
                }
            ],
            "max_tokens": self.max_tokens,
        }

    async def analyze(self, payload: bytes, mime_type: str) -> str:
        """Run the forensic analysis and return the model's raw answer.

        Raises:
            OracleError: on any failure; `kind` tells which one
        """
        if not self.api_key:
            raise OracleError("not_configured", NOT_CONFIGURED_MESSAGE, 500)

        request_body = self.build_request(payload, mime_type)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        logger.info(
            f"Calling analysis oracle model={self.model} prompt={FORENSIC_PROMPT_VERSION} "
            f"bytes={len(payload)}"
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.base_url, json=request_body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Analysis oracle unreachable: {e}")
            raise OracleError("transport_error", TRANSPORT_ERROR_MESSAGE, 500) from e

        if response.status_code == 429:
            logger.warning("Analysis oracle rate limited the request")
            raise OracleError("rate_limited", RATE_LIMITED_MESSAGE, 429)
        if response.status_code == 402:
            logger.warning("Analysis oracle quota exhausted")
            raise OracleError("quota_exhausted", QUOTA_EXHAUSTED_MESSAGE, 402)
        if response.status_code >= 300:
            logger.error(f"Analysis oracle error {response.status_code}: {response.text[:500]}")
            raise OracleError("transport_error", TRANSPORT_ERROR_MESSAGE, 500)

        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            content = None

        if not isinstance(content, str) or not content.strip():
            logger.error("Analysis oracle returned no content")
            raise OracleError("empty_response", EMPTY_RESPONSE_MESSAGE, 500)

        return content


# Singleton instance
oracle_client = OracleClient()
