"""OpenAI LLM adapter for the draft reading of a contract.

Uses OpenAI Chat Completions API with Structured Outputs to read contract
text into a validated ContractReading. The draft is later checked against
the CCA agent's canonical reading.
"""

import json
import os
from typing import Optional

from openai import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    OpenAI,
    RateLimitError,
)
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from clm.schemas.domain import ContractReading

# Environment configuration with defaults
LLM_MODEL = os.environ.get("LLM_MODEL", "gpt-4o-mini")
LLM_MAX_CHARS = int(os.environ.get("LLM_MAX_CHARS", "200000"))
LLM_TEMPERATURE = float(os.environ.get("LLM_TEMPERATURE", "0.1"))
LLM_TIMEOUT_S = int(os.environ.get("LLM_TIMEOUT_S", "60"))
LLM_MAX_RETRIES = int(os.environ.get("LLM_MAX_RETRIES", "3"))

# Errors that are safe to retry (transient)
RETRYABLE_ERRORS = (
    RateLimitError,
    APIConnectionError,
    APITimeoutError,
    InternalServerError,
)

SYSTEM_PROMPT = """You are a legal analyst reading commercial contracts governed mostly by Portuguese law.

Read the contract text and fill in the structured reading:

1. **Identification**: title (titulo_contrato), contract type (tipo_contrato), a one-paragraph
   summary of the object (objeto_resumido), governing law (lei_aplicavel) and the court or
   arbitration forum (foro_arbitragem)
2. **Parties**: legal name and tax number (NIF) of each party
3. **Dates and renewal**: start of effect (data_inicio_vigencia) and term date (data_termo) in
   ISO format YYYY-MM-DD, duration type, renewal type (automatica, manual or sem_renovacao),
   renewal period in months, notice period for non-renewal in days
   (aviso_previo_nao_renovacao_dias) and the denunciation / rescission terms
4. **Economics**: estimated total value and currency
5. **Data protection**: whether personal data is processed, whether a GDPR DPA is annexed,
   whether there are international transfers
6. **Legal classification**: main type and tags
7. **Important clauses and identified risks**: short sentences
8. **Confidence** (confianca): your confidence in the whole reading from 0.0 to 1.0

If a field cannot be determined from the text, leave it as null.
Quote or paraphrase the contract; never invent values."""


class LLMExtractError(RuntimeError):
    """Raised when LLM extraction fails."""

    pass


# Lazy client initialization
_client: Optional[OpenAI] = None


def _get_client() -> OpenAI:
    """Get or create OpenAI client (lazy initialization)."""
    global _client
    if _client is None:
        _client = OpenAI(timeout=LLM_TIMEOUT_S)
    return _client


def _truncate_text(text: str, max_chars: int) -> str:
    """Truncate text to max_chars, preserving complete sentences where possible."""
    if len(text) <= max_chars:
        return text

    truncated = text[:max_chars]
    last_period = truncated.rfind(".")
    if last_period > max_chars * 0.8:  # Only if we keep at least 80%
        truncated = truncated[: last_period + 1]

    return truncated


def _make_retry_decorator():
    """Create tenacity retry decorator with configured settings."""
    return retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(LLM_MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=1, max=60),
        reraise=True,
    )


def _call_openai(client: OpenAI, text: str) -> ContractReading:
    """Make OpenAI API call with structured output.

    Raises:
        LLMExtractError: Empty or unparseable response.
        Various OpenAI errors (handled by retry decorator or caller).
    """
    schema = ContractReading.model_json_schema()

    response = client.chat.completions.create(
        model=LLM_MODEL,
        temperature=LLM_TEMPERATURE,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"Read this contract:\n\n{text}"},
        ],
        response_format={
            "type": "json_schema",
            "json_schema": {
                "name": "contract_reading",
                "strict": False,
                "schema": schema,
            },
        },
    )

    content = response.choices[0].message.content
    if not content:
        raise LLMExtractError("Empty response from LLM")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise LLMExtractError(f"Invalid JSON response: {e}")

    try:
        return ContractReading.model_validate(data)
    except ValidationError as e:
        raise LLMExtractError(f"Response does not match ContractReading: {e}")


def extract_contract_reading(text: str, client: Optional[OpenAI] = None) -> ContractReading:
    """Produce the draft reading of a contract using OpenAI structured outputs.

    Args:
        text: Plain text of the contract document.
        client: Optional OpenAI client (for testing). If None, uses default client.

    Returns:
        Validated ContractReading.

    Raises:
        LLMExtractError: On any failure (API, validation, exhausted retries).
    """
    if not text or not text.strip():
        raise LLMExtractError("Empty text provided")

    actual_client = client if client is not None else _get_client()
    truncated_text = _truncate_text(text, LLM_MAX_CHARS)
    retryable_call = _make_retry_decorator()(_call_openai)

    try:
        return retryable_call(actual_client, truncated_text)
    except LLMExtractError:
        raise
    except RETRYABLE_ERRORS as e:
        # Retries exhausted (reraise=True means original exception is re-raised)
        raise LLMExtractError(f"API error after {LLM_MAX_RETRIES} retries: {e}")
    except (AuthenticationError, BadRequestError) as e:
        raise LLMExtractError(f"Non-retryable API error: {e}")
    except Exception as e:
        raise LLMExtractError(f"Unexpected error: {e}")
