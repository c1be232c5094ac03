"""Ollama LLM client wrapper -- governance-gated, audit-logged.

Wraps the Ollama REST API (``POST /api/generate``) with:

- **Governance gate**: every call checks ``settings.llm_assist_enabled``.
  When ``False``, ``generate()`` raises ``LLMDisabledError``.
- **Full audit logging**: every call is recorded in the ``llm_call_logs``
  table via :func:`app.llm.audit.log_llm_call`.
- **Latency tracking**: wall-clock time is measured per request.
- **Bounded calls**: the request timeout comes from
  ``settings.extraction_timeout_s`` unless the caller supplies one.

Every failure mode is an ``ExtractionServiceError`` subclass so the
completeness validator can fail closed on any of them.
"""
from __future__ import annotations

import logging
import time
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from app.core.exceptions import ExtractionServiceError
from app.core.settings import get_settings
from app.llm.audit import log_llm_call

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Custom exceptions
# ---------------------------------------------------------------------------


class LLMDisabledError(ExtractionServiceError):
    """Raised when ``llm_assist_enabled`` is ``False``."""


class LLMConnectionError(ExtractionServiceError):
    """Raised when Ollama is unreachable or answers with an HTTP error."""


class LLMTimeoutError(ExtractionServiceError):
    """Raised when the Ollama request exceeds the configured timeout."""


# ---------------------------------------------------------------------------
# OllamaClient
# ---------------------------------------------------------------------------


class OllamaClient:
    """Synchronous client for the Ollama REST API.

    Parameters
    ----------
    base_url:
        Ollama base URL.  Defaults to ``settings.ollama_url``.
    model:
        Model tag (e.g. ``"qwen2.5:7b"``).  Defaults to
        ``settings.ollama_model``.
    timeout_s:
        Request timeout in seconds.  Defaults to
        ``settings.extraction_timeout_s``.
    db_session:
        Optional SQLAlchemy session for audit logging.  When ``None``,
        LLM calls are NOT logged (useful for health checks).
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        model: str | None = None,
        timeout_s: float | None = None,
        db_session: Session | None = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.ollama_url).rstrip("/")
        self.model = model or settings.ollama_model
        self.timeout_s = timeout_s if timeout_s is not None else settings.extraction_timeout_s
        self.db_session = db_session
        self._last_latency_ms: int | None = None

    # -- public API ---------------------------------------------------------

    def generate(
        self,
        prompt: str,
        system: str | None = None,
        *,
        use_case: str = "general",
        report_id: UUID | None = None,
        json_mode: bool = False,
    ) -> str:
        """Send a prompt to Ollama and return the generated text.

        Parameters
        ----------
        prompt:
            The user prompt.
        system:
            Optional system prompt.
        use_case:
            Label for audit logging (e.g. ``"validate_required_fields"``).
        report_id:
            Optional report FK for audit logging.
        json_mode:
            Ask Ollama to constrain the output to JSON.

        Raises
        ------
        LLMDisabledError
            If ``llm_assist_enabled`` is ``False``.
        LLMConnectionError
            If Ollama is unreachable.
        LLMTimeoutError
            If the request exceeds the configured timeout.
        """
        settings = get_settings()
        if not settings.llm_assist_enabled:
            raise LLMDisabledError(
                "LLM assist is disabled (LLM_ASSIST_ENABLED=false). "
                "Enable it in settings to use field extraction."
            )

        payload: dict = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": 0.1},
        }
        if system is not None:
            payload["system"] = system
        if json_mode:
            payload["format"] = "json"

        start = time.monotonic()
        try:
            response = httpx.post(
                f"{self.base_url}/api/generate",
                json=payload,
                timeout=self.timeout_s,
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            self._last_latency_ms = int((time.monotonic() - start) * 1000)
            raise LLMTimeoutError(
                f"Ollama request timed out after {self.timeout_s}s"
            ) from exc
        except httpx.ConnectError as exc:
            self._last_latency_ms = int((time.monotonic() - start) * 1000)
            raise LLMConnectionError(
                f"Cannot connect to Ollama at {self.base_url}"
            ) from exc
        except httpx.HTTPError as exc:
            self._last_latency_ms = int((time.monotonic() - start) * 1000)
            raise LLMConnectionError(
                f"Ollama HTTP error: {exc}"
            ) from exc

        elapsed_ms = int((time.monotonic() - start) * 1000)
        self._last_latency_ms = elapsed_ms

        try:
            data = response.json()
        except ValueError as exc:
            raise ExtractionServiceError("Ollama returned a non-JSON envelope") from exc
        if not isinstance(data, dict):
            raise ExtractionServiceError("Ollama returned an unexpected envelope")

        response_text = data.get("response", "")
        token_count = data.get("eval_count")
        logger.debug("Ollama %s call took %dms", use_case, elapsed_ms)

        if self.db_session is not None:
            log_llm_call(
                self.db_session,
                report_id=report_id,
                use_case=use_case,
                model=self.model,
                prompt_text=prompt,
                response_text=response_text,
                latency_ms=elapsed_ms,
                token_count=token_count,
            )

        return response_text

    def is_available(self) -> bool:
        """Check whether Ollama is reachable.

        Returns ``False`` if the server is not running or unreachable.
        Never raises an exception.
        """
        try:
            resp = httpx.get(f"{self.base_url}/api/tags", timeout=5)
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    @property
    def last_latency_ms(self) -> int | None:
        """Wall-clock latency of the most recent ``generate()`` call (ms)."""
        return self._last_latency_ms
