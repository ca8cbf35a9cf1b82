"""
Client for an OpenAI-compatible chat completions endpoint.

Author: ContractLens Team
Version: 1.0.0
"""

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import requests

from contractlens.config import Constants, settings
from contractlens.exceptions import ModelResponseError, ModelTransportError

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    """Content of the first choice and the token usage the server reported."""
    content: str
    usage: Dict[str, Any] = field(default_factory=dict)


def _headers() -> Dict[str, str]:
    if not settings.llm_api_key:
        raise ModelTransportError("LLM API key is not configured")
    return {
        "Authorization": f"Bearer {settings.llm_api_key}",
        "Content-Type": "application/json",
    }


def _payload(messages, model, temperature, max_tokens, **extra) -> Dict[str, Any]:
    payload = {
        "model": model or settings.llm_model,
        "messages": messages,
        "temperature": settings.llm_temperature if temperature is None else temperature,
        "max_tokens": max_tokens or settings.llm_max_tokens,
    }
    payload.update({key: value for key, value in extra.items() if value is not None})
    return payload


def _post(payload: Dict[str, Any], timeout: Optional[float], stream: bool = False) -> requests.Response:
    try:
        response = requests.post(
            settings.llm_base_url,
            headers=_headers(),
            json=payload,
            timeout=timeout or settings.llm_timeout_seconds,
            stream=stream,
        )
        response.raise_for_status()
        return response
    except requests.exceptions.Timeout as e:
        logger.error(f"LLM request timed out: {e}")
        raise ModelTransportError("LLM request timed out") from e
    except requests.exceptions.HTTPError as e:
        status_code = e.response.status_code if e.response is not None else None
        logger.error(f"LLM request failed with status {status_code}: {e}")
        raise ModelTransportError(f"LLM request failed: {e}", status_code=status_code) from e
    except requests.exceptions.RequestException as e:
        logger.error(f"LLM request failed: {e}")
        raise ModelTransportError(f"LLM request failed: {e}") from e


def chat_completion(
    messages: List[Dict[str, str]],
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    response_format: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> CompletionResult:
    """
    Request a single chat completion.

    Args:
        messages (list): Chat messages (``role``/``content`` dicts)
        model (str, optional): Model name, defaults to ``settings.llm_model``
        temperature (float, optional): Sampling temperature
        max_tokens (int, optional): Completion token cap
        response_format (dict, optional): e.g. ``{"type": "json_object"}``
        timeout (float, optional): Request timeout in seconds

    Returns:
        CompletionResult: Content of the first choice plus usage

    Raises:
        ModelTransportError: Missing key, timeout, connection or HTTP error
        ModelResponseError: The body carried no usable choice
    """
    payload = _payload(messages, model, temperature, max_tokens, response_format=response_format)
    response = _post(payload, timeout)

    try:
        response_data = response.json()
        content = response_data["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise ModelResponseError(f"Error parsing LLM response: {e}") from e

    if not isinstance(content, str):
        raise ModelResponseError("LLM response contained no text content")

    return CompletionResult(content=content, usage=response_data.get("usage") or {})


def parse_stream_line(line: str) -> Optional[str]:
    """
    Extract the content delta from one server-sent-event line.

    Returns:
        str | None: The delta text, ``""`` for lines without content, or
            None once the ``[DONE]`` sentinel is reached
    """
    if not line or not line.startswith("data:"):
        return ""
    data = line[len("data:"):].strip()
    if data == Constants.STREAM_DONE_SENTINEL:
        return None
    try:
        chunk = json.loads(data)
    except json.JSONDecodeError:
        logger.warning(f"Skipping malformed stream chunk: {data[:80]}")
        return ""
    choices = chunk.get("choices") or [{}]
    return (choices[0].get("delta") or {}).get("content") or ""


def stream_chat_completion(
    messages: List[Dict[str, str]],
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    timeout: Optional[float] = None,
) -> Iterator[str]:
    """
    Stream a chat completion, yielding content deltas as they arrive.

    Raises:
        ModelTransportError: If the request fails, the stream breaks or it
            ends before the ``[DONE]`` sentinel
    """
    payload = _payload(messages, model, temperature, max_tokens, stream=True)
    response = _post(payload, timeout, stream=True)

    finished = False
    try:
        for line in response.iter_lines(decode_unicode=True):
            delta = parse_stream_line(line)
            if delta is None:
                finished = True
                break
            if delta:
                yield delta
    except requests.exceptions.RequestException as e:
        logger.error(f"LLM stream interrupted: {e}")
        raise ModelTransportError(f"LLM stream interrupted: {e}") from e
    finally:
        response.close()

    if not finished:
        logger.error("LLM stream ended without a completion marker")
        raise ModelTransportError("LLM stream ended before completion")


def estimate_token_count(text: str) -> int:
    """Rough token estimate of about four characters per token."""
    return math.ceil(len(text) / Constants.CHARS_PER_TOKEN)


def validate_token_limit(text: str, max_tokens: Optional[int] = None) -> bool:
    limit = max_tokens or settings.max_document_tokens
    return estimate_token_count(text) <= limit
