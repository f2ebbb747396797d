"""HTTP adapter for the CCA agent, the canonical contract reader.

The agent receives the draft reading and answers with its own verified
reading. When no agent URL is configured the call is simulated by
echoing the draft back (development mode).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from clm.core.config import settings
from clm.services.validation import CANONICAL_SOURCE, CanonicalExtraction

logger = logging.getLogger(__name__)

VALIDATE_PATH = "/cca/validate-contract"
SIMULATED_CONFIDENCE = 85
CCA_MAX_RETRIES = 3
# Verdicts the agent may give alongside a canonical reading
REVIEW_STATUSES = ("validated", "needs_review")

RETRYABLE_ERRORS = (httpx.TransportError,)


class CCAAgentError(RuntimeError):
    """Raised when the CCA agent cannot be reached or answers with an error."""

    pass


def normalize_confidence(value: Any) -> Optional[float]:
    """Agent confidences come as 0..1 or as a percentage; return 0..1."""
    if value is None or isinstance(value, bool):
        return None
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return None
    if confidence > 1:
        confidence = confidence / 100
    return max(0.0, min(confidence, 1.0))


def parse_agent_response(data: Any) -> CanonicalExtraction:
    """Turn the agent's JSON answer into a CanonicalExtraction.

    The agent's verdict, review notes and evidence travel with the payload;
    a needs_review verdict forces review of the job.
    """
    if not isinstance(data, dict):
        raise CCAAgentError(f"Unexpected response type: {type(data).__name__}")

    confidence = normalize_confidence(data.get("confidence"))
    canonical = data.get("extraction_canonical")
    status = data.get("status")

    if status == "failed":
        reason = data.get("review_notes") or data.get("error") or "agent reported failure"
        return CanonicalExtraction(confidence=confidence, error=f"CCA agent failed: {reason}")
    if not isinstance(canonical, dict):
        return CanonicalExtraction(
            confidence=confidence,
            error="CCA agent returned no structured extraction",
        )
    if "error" in canonical and len(canonical) == 1:
        return CanonicalExtraction(confidence=confidence, error=f"CCA agent error: {canonical['error']}")

    notes = data.get("review_notes")
    return CanonicalExtraction(
        payload=canonical,
        confidence=confidence,
        source=CANONICAL_SOURCE,
        review_status=status if status in REVIEW_STATUSES else None,
        review_notes=notes if isinstance(notes, str) else None,
        evidence=data.get("evidence"),
    )


def _simulate(draft: dict[str, Any]) -> dict[str, Any]:
    return {
        "extraction_canonical": draft,
        "status": "validated",
        "confidence": SIMULATED_CONFIDENCE,
        "review_notes": "Simulated validation: CCA agent not configured",
        "evidence": [],
    }


def _make_retry_decorator():
    return retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(CCA_MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=1, max=30),
        reraise=True,
    )


def _post(client: httpx.Client, url: str, body: dict[str, Any], headers: dict[str, str]) -> Any:
    response = client.post(url, json=body, headers=headers)
    if response.status_code >= 400:
        raise CCAAgentError(f"CCA agent HTTP {response.status_code}: {response.text}")
    return response.json()


def request_canonical_reading(
    contract_id: str,
    draft: dict[str, Any],
    document_reference: Optional[str] = None,
    client: Optional[httpx.Client] = None,
    base_url: Optional[str] = None,
    api_key: Optional[str] = None,
) -> CanonicalExtraction:
    """Ask the CCA agent for the canonical reading of a contract.

    Args:
        contract_id: Contract being validated.
        draft: The draft reading (passed to the agent as extraction_draft).
        document_reference: Optional pointer to the source document.
        client: Optional httpx client (for testing).
        base_url: Agent base URL; defaults to settings.CCA_AGENT_URL.
        api_key: Agent key; defaults to settings.CCA_AGENT_KEY.

    Returns:
        CanonicalExtraction with either a payload or an error message.

    Raises:
        CCAAgentError: Transport failure after retries, HTTP error status or
            an unreadable body.
    """
    base_url = settings.CCA_AGENT_URL if base_url is None else base_url
    api_key = settings.CCA_AGENT_KEY if api_key is None else api_key

    if not base_url:
        logger.info("CCA_AGENT_URL not set, simulating validation for contract %s", contract_id)
        return parse_agent_response(_simulate(draft))

    url = base_url.rstrip("/") + VALIDATE_PATH
    headers = {"X-API-Key": api_key} if api_key else {}
    body = {
        "contract_id": contract_id,
        "document_reference": document_reference,
        "extraction_draft": draft,
    }

    owns_client = client is None
    actual_client = client if client is not None else httpx.Client(timeout=settings.CCA_TIMEOUT_S)
    retryable_post = _make_retry_decorator()(_post)

    try:
        data = retryable_post(actual_client, url, body, headers)
    except RETRYABLE_ERRORS as e:
        raise CCAAgentError(f"CCA agent unreachable after {CCA_MAX_RETRIES} attempts: {e}")
    except ValueError as e:
        raise CCAAgentError(f"Invalid JSON response: {e}")
    finally:
        if owns_client:
            actual_client.close()

    result = parse_agent_response(data)
    logger.info(
        "CCA agent answered for contract %s: status=%s confidence=%s error=%s",
        contract_id,
        result.review_status,
        result.confidence,
        result.error,
    )
    return result


__all__ = [
    "CCAAgentError",
    "normalize_confidence",
    "parse_agent_response",
    "request_canonical_reading",
]
