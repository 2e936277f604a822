"""
OpenAI-backed LLM client used by trend enrichment.

Every LLM request in Trendwatch goes through LLMClient.call(). Two model
tiers exist: "fast" for cheap extraction prompts and "heavy" for trend
analysis and the run report. Each tier carries its own model name,
timeout, token cap, temperature and cost rate, all read from the
environment.

With LLM_DISABLED set, call() answers with a stub response and never
touches the network, which is what tests and offline runs rely on.
"""

from __future__ import annotations

import json
import logging
import os
import re
import time
from dataclasses import dataclass
from typing import Literal, TypeVar
from uuid import UUID, uuid4

from pydantic import BaseModel, ValidationError

logger = logging.getLogger("trendwatch.llm")

Role = Literal["fast", "heavy"]
Status = Literal["success", "failure", "disabled"]

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class LLMCallError(Exception):
    """A provider call failed. The provider's own exception is kept on original_error."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error


class StructuredOutputError(Exception):
    """LLM text could not be turned into the requested Pydantic model."""


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class RoleParams:
    model: str
    timeout: float
    max_tokens: int
    temperature: float
    cost_usd_per_1k: float


@dataclass(frozen=True)
class LLMConfig:
    """
    Per-tier LLM settings.

    Environment variables (see load_config_from_env):
        OPENAI_API_KEY, LLM_DISABLED,
        TRENDWATCH_LLM_MODEL_FAST / _HEAVY          (gpt-4o-mini / gpt-4o)
        TRENDWATCH_LLM_TIMEOUT_FAST / _HEAVY        (8 / 30 seconds)
        TRENDWATCH_LLM_MAX_TOKENS_FAST / _HEAVY     (1000 / 2000)
        TRENDWATCH_LLM_TEMP_FAST / _HEAVY           (0.5 / 0.7)
        TRENDWATCH_LLM_COST_FAST_USD_PER_1K / _HEAVY_USD_PER_1K
    """

    fast_model_name: str = "gpt-4o-mini"
    heavy_model_name: str = "gpt-4o"
    api_key: str | None = None
    llm_disabled: bool = False
    timeout_fast: float = 8.0
    timeout_heavy: float = 30.0
    max_tokens_fast: int = 1000
    max_tokens_heavy: int = 2000
    temperature_fast: float = 0.5
    temperature_heavy: float = 0.7
    cost_fast_usd_per_1k: float = 0.0006
    cost_heavy_usd_per_1k: float = 0.01

    def for_role(self, role: Role) -> RoleParams:
        if role == "fast":
            return RoleParams(
                model=self.fast_model_name,
                timeout=self.timeout_fast,
                max_tokens=self.max_tokens_fast,
                temperature=self.temperature_fast,
                cost_usd_per_1k=self.cost_fast_usd_per_1k,
            )
        return RoleParams(
            model=self.heavy_model_name,
            timeout=self.timeout_heavy,
            max_tokens=self.max_tokens_heavy,
            temperature=self.temperature_heavy,
            cost_usd_per_1k=self.cost_heavy_usd_per_1k,
        )


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def load_config_from_env() -> LLMConfig:
    """Build an LLMConfig from the environment. Unset or invalid values use defaults."""
    defaults = LLMConfig()
    return LLMConfig(
        fast_model_name=os.getenv("TRENDWATCH_LLM_MODEL_FAST", defaults.fast_model_name),
        heavy_model_name=os.getenv("TRENDWATCH_LLM_MODEL_HEAVY", defaults.heavy_model_name),
        api_key=os.getenv("OPENAI_API_KEY"),
        llm_disabled=os.getenv("LLM_DISABLED", "").strip().lower() in ("true", "1", "yes", "on"),
        timeout_fast=_env_number("TRENDWATCH_LLM_TIMEOUT_FAST", defaults.timeout_fast, float),
        timeout_heavy=_env_number("TRENDWATCH_LLM_TIMEOUT_HEAVY", defaults.timeout_heavy, float),
        max_tokens_fast=_env_number(
            "TRENDWATCH_LLM_MAX_TOKENS_FAST", defaults.max_tokens_fast, int
        ),
        max_tokens_heavy=_env_number(
            "TRENDWATCH_LLM_MAX_TOKENS_HEAVY", defaults.max_tokens_heavy, int
        ),
        temperature_fast=_env_number("TRENDWATCH_LLM_TEMP_FAST", defaults.temperature_fast, float),
        temperature_heavy=_env_number(
            "TRENDWATCH_LLM_TEMP_HEAVY", defaults.temperature_heavy, float
        ),
        cost_fast_usd_per_1k=_env_number(
            "TRENDWATCH_LLM_COST_FAST_USD_PER_1K", defaults.cost_fast_usd_per_1k, float
        ),
        cost_heavy_usd_per_1k=_env_number(
            "TRENDWATCH_LLM_COST_HEAVY_USD_PER_1K", defaults.cost_heavy_usd_per_1k, float
        ),
    )


# =============================================================================
# RESPONSES AND PARSING
# =============================================================================


@dataclass
class LLMResponse:
    raw_text: str
    model: str
    usage_tokens_in: int
    usage_tokens_out: int
    latency_ms: int
    role: Role
    status: Status = "success"
    estimated_cost_usd: float | None = None


def extract_json_text(raw_text: str) -> str:
    """Return the body of a ```json fenced block if there is one, else the stripped text."""
    text = raw_text.strip()
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else text


def parse_structured_output(raw_text: str, target: type[ModelT]) -> ModelT:
    """
    Validate LLM output (bare or fenced JSON) against a Pydantic model.

    Raises:
        StructuredOutputError: Malformed JSON or a schema mismatch
    """
    preview = raw_text[:200]
    try:
        return target.model_validate_json(extract_json_text(raw_text))
    except json.JSONDecodeError as e:
        raise StructuredOutputError(f"Invalid JSON in LLM output: {e} ({preview!r})") from e
    except ValidationError as e:
        problems = "; ".join(
            "{}: {}".format(".".join(map(str, err["loc"])) or "<root>", err["msg"])
            for err in e.errors()
        )
        raise StructuredOutputError(
            f"LLM output failed validation: {problems} ({preview!r})"
        ) from e


def _estimate_cost(tokens_in: int, tokens_out: int, params: RoleParams) -> float:
    return (tokens_in + tokens_out) / 1000.0 * params.cost_usd_per_1k


# =============================================================================
# CLIENT
# =============================================================================


class LLMClient:
    """
    Usage:
        client = LLMClient()
        response = client.call(flow="trend_report", prompt=prompt, role="heavy")
        text = response.raw_text
    """

    def __init__(self, config: LLMConfig | None = None):
        self.config = config or load_config_from_env()

    def call(
        self,
        *,
        flow: str,
        prompt: str,
        role: Role = "fast",
        system_prompt: str | None = None,
        max_output_tokens: int | None = None,
        temperature: float | None = None,
        run_id: UUID | None = None,
    ) -> LLMResponse:
        """
        Send one prompt to the model tier named by `role`.

        `flow` names the caller (trend_analysis, trend_report,
        fallback_extraction) in the call log. Token cap and temperature
        default to the tier's settings.

        Raises:
            LLMCallError: Any provider failure, wrapped
        """
        params = self.config.for_role(role)
        run_id = run_id or uuid4()
        started = time.perf_counter()

        if self.config.llm_disabled:
            # Rough word-count estimate; no provider usage to report
            tokens_in, tokens_out = len(prompt.split()), 10
            return self._respond(
                run_id=run_id,
                flow=flow,
                role=role,
                params=params,
                started=started,
                text=f"[LLM_DISABLED STUB] prompt={prompt[:100]}...",
                tokens_in=tokens_in,
                tokens_out=tokens_out,
                status="disabled",
            )

        try:
            result = self._call_provider(
                model=params.model,
                prompt=prompt,
                system_prompt=system_prompt,
                max_tokens=max_output_tokens or params.max_tokens,
                temperature=params.temperature if temperature is None else temperature,
                timeout=params.timeout,
            )
        except Exception as exc:
            self._log_call(
                run_id=run_id,
                flow=flow,
                model=params.model,
                role=role,
                latency_ms=_elapsed_ms(started),
                tokens_in=0,
                tokens_out=0,
                status="failure",
                error_summary=f"{type(exc).__name__}: {str(exc)[:100]}",
            )
            raise LLMCallError(f"LLM call failed: {exc}", original_error=exc) from exc

        return self._respond(
            run_id=run_id,
            flow=flow,
            role=role,
            params=params,
            started=started,
            text=result["content"],
            tokens_in=result["usage"]["prompt_tokens"],
            tokens_out=result["usage"]["completion_tokens"],
            status="success",
        )

    def _respond(
        self,
        *,
        run_id: UUID,
        flow: str,
        role: Role,
        params: RoleParams,
        started: float,
        text: str,
        tokens_in: int,
        tokens_out: int,
        status: Status,
    ) -> LLMResponse:
        latency_ms = _elapsed_ms(started)
        cost = _estimate_cost(tokens_in, tokens_out, params)
        self._log_call(
            run_id=run_id,
            flow=flow,
            model=params.model,
            role=role,
            latency_ms=latency_ms,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            status=status,
            estimated_cost_usd=cost,
        )
        return LLMResponse(
            raw_text=text,
            model=params.model,
            usage_tokens_in=tokens_in,
            usage_tokens_out=tokens_out,
            latency_ms=latency_ms,
            role=role,
            status=status,
            estimated_cost_usd=cost,
        )

    def _call_provider(
        self,
        *,
        model: str,
        prompt: str,
        system_prompt: str | None,
        max_tokens: int,
        temperature: float,
        timeout: float,
    ) -> dict:
        """
        One OpenAI chat completion. Returns {"content": str, "usage": {...}}.

        The only place the openai SDK is touched; tests patch this method.
        """
        import openai

        if not self.config.api_key:
            raise LLMCallError("OPENAI_API_KEY is not set (set it, or set LLM_DISABLED=true)")

        messages = [{"role": "user", "content": prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})

        client = openai.OpenAI(api_key=self.config.api_key, timeout=timeout)
        completion = client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )

        usage = completion.usage
        return {
            "content": completion.choices[0].message.content or "",
            "usage": {
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
            },
        }

    def _log_call(
        self,
        *,
        run_id: UUID,
        flow: str,
        model: str,
        role: Role,
        latency_ms: int,
        tokens_in: int,
        tokens_out: int,
        status: Status,
        error_summary: str | None = None,
        estimated_cost_usd: float | None = None,
    ) -> None:
        fields = {
            "run_id": str(run_id),
            "flow": flow,
            "model": model,
            "role": role,
            "latency_ms": latency_ms,
            "tokens_in": tokens_in,
            "tokens_out": tokens_out,
            "status": status,
        }
        if estimated_cost_usd is not None:
            fields["estimated_cost_usd"] = estimated_cost_usd
        if error_summary:
            fields["error_summary"] = error_summary

        level = logging.ERROR if status == "failure" else logging.INFO
        logger.log(level, "LLM_CALL flow=%s model=%s status=%s", flow, model, status, extra=fields)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


# =============================================================================
# SHARED INSTANCE
# =============================================================================

_default_client: LLMClient | None = None


def get_default_client() -> LLMClient:
    """Process-wide client, built from the environment on first use."""
    global _default_client
    if _default_client is None:
        _default_client = LLMClient()
    return _default_client


def reset_default_client() -> None:
    global _default_client
    _default_client = None
