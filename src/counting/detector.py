"""
Remote detector contract and the HTTP vision client.

A detector takes an image and a free-text object label and returns one
non-negative integer count. It does not return positions; see
counting.placeholders for how the review overlay compensates.

The API credential is never held by the detector: it comes from the Settings
record and is passed into every call.
"""

from __future__ import annotations

import base64
import logging
import re
from typing import Optional, Protocol

import httpx

from models.config import DetectorConfig
from models.errors import MissingCredentialError, RequestFailedError

PROMPT_TEMPLATE = (
    "Count the number of ALL {object_type} in this image. "
    "If counting is difficult or uncertain, make your best estimate.\n\n"
    "IMPORTANT: Respond with ONLY a single number. Nothing else. "
    "No explanations, no text, just the number."
)

_DIGITS = re.compile(r"\d+")


class Detector(Protocol):
    def count_objects(self, image_path: str, object_type: str, api_key: Optional[str]) -> int:
        ...


def encode_image(image_path: str) -> str:
    """Read an image file and return its bytes as a base64 string."""
    try:
        with open(image_path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise RequestFailedError(f"Cannot read image {image_path}: {e}") from e
    return base64.b64encode(data).decode("ascii")


def parse_count(text: Optional[str], strict: bool = False) -> int:
    """
    Extract a count from a detector's text reply.

    The whole reply is tried as an integer first, then the first run of
    digits. A reply with no digits yields 0, or RequestFailedError when
    `strict` is set.
    """
    reply = (text or "").strip()
    if _DIGITS.fullmatch(reply):
        return int(reply)

    match = _DIGITS.search(reply)
    if match:
        return int(match.group())

    if strict:
        raise RequestFailedError(f"Detector reply contains no count: {reply!r}")
    logging.warning(f"Detector reply contains no count, using 0: {reply!r}")
    return 0


class VisionApiDetector:
    """
    Counts objects with a chat-completions style vision API.

    The request carries the prompt and the image as a base64 data URL; the
    reply text is parsed with parse_count().
    """

    def __init__(self, config: DetectorConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self._client = client or httpx.Client(timeout=config.timeout_seconds)

    def _build_payload(self, image_b64: str, object_type: str) -> dict:
        return {
            "model": self.config.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": PROMPT_TEMPLATE.format(object_type=object_type)},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:image/jpeg;base64,{image_b64}"},
                        },
                    ],
                }
            ],
            "max_tokens": self.config.max_tokens,
            "temperature": 0,
        }

    def count_objects(self, image_path: str, object_type: str, api_key: Optional[str]) -> int:
        """
        Request a count for one image.

        Raises:
            MissingCredentialError: if `api_key` is empty.
            RequestFailedError: on unreadable image, timeout, transport
                error, non-2xx reply or malformed body.
        """
        if not api_key or not api_key.strip():
            raise MissingCredentialError("Detector API key is not configured")

        payload = self._build_payload(encode_image(image_path), object_type)
        headers = {"Authorization": f"Bearer {api_key.strip()}"}

        logging.info(f"Requesting object count: type={object_type!r}, image={image_path}")
        try:
            response = self._client.post(
                self.config.endpoint,
                json=payload,
                headers=headers,
                timeout=self.config.timeout_seconds,
            )
        except httpx.TimeoutException as e:
            raise RequestFailedError(
                f"Detector timed out after {self.config.timeout_seconds}s"
            ) from e
        except httpx.HTTPError as e:
            raise RequestFailedError(f"Detector request failed: {e}") from e

        if response.status_code >= 400:
            raise RequestFailedError(
                f"Detector API error {response.status_code}: {self._error_message(response)}"
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise RequestFailedError(f"Malformed detector response: {e}") from e

        count = parse_count(content, strict=self.config.strict_parse)
        logging.info(f"Detector counted {count} {object_type}")
        return count

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return response.reason_phrase or "unknown error"

    def close(self) -> None:
        self._client.close()
