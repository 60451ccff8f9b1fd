"""Call router: provider selection, admission, invocation and fallback."""

import asyncio
import json
import logging
import re
from typing import Any, Optional

from aigeek.catalog import ProviderRegistry
from aigeek.config import RouterConfig
from aigeek.exceptions import (
    AIGeekError,
    AllProvidersFailedError,
    APITimeoutError,
    ConfigurationError,
    MalformedResponseError,
    QuotaExceededError,
    UpstreamError,
)
from aigeek.quota import QuotaLedger
from aigeek.stats import StatsAccumulator
from aigeek.types import (
    AdmissionDecision,
    AttemptOutcome,
    CallAttempt,
    CallOptions,
    CallResult,
    CallStatus,
    ErrorDetail,
    ProviderInfo,
    ProviderRequest,
    ProviderResponse,
    UsageDelta,
)

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def parse_json_response(text: Optional[str]) -> dict[str, Any]:
    """Extract the JSON object embedded in a model reply.

    Everything from the first ``{`` through the last ``}`` is parsed.

    Raises:
        MalformedResponseError: ``NO_JSON_FOUND`` when there is no object,
            ``PARSE_ERROR`` when it does not parse
    """
    match = _JSON_OBJECT_RE.search(text or "")
    if match is None:
        raise MalformedResponseError("No JSON found in AI response", code="NO_JSON_FOUND")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Invalid AI response format: {e}", code="PARSE_ERROR") from e


def error_detail(error: AIGeekError, details: Optional[str] = None) -> ErrorDetail:
    return ErrorDetail(
        message=error.message,
        type=error.type,
        param=error.param,
        code=error.code,
        details=details,
    )


class CallRouter:
    """Routes prompts to providers with quota admission and ordered fallback.

    Args:
        registry: Provider configuration and adapters
        ledger: Per-caller quota ledger
        stats: Session billing and statistics
        config: Default provider, fallback order and timeout
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        ledger: QuotaLedger,
        stats: StatsAccumulator,
        config: Optional[RouterConfig] = None,
    ):
        self.registry = registry
        self.ledger = ledger
        self.stats = stats
        self.config = config or RouterConfig()
        self.default_provider = self.config.default_provider

    def _configured(self, provider: str) -> ProviderInfo:
        info = self.registry.get(provider)
        if info is None:
            raise ConfigurationError(f"Unknown provider: {provider}", provider=provider)
        if not info.enabled:
            raise ConfigurationError(f"Provider {provider} is disabled", provider=provider)
        if not self.registry.is_usable(provider):
            raise ConfigurationError(f"{provider} API key not configured", provider=provider)
        return info

    async def _invoke(
        self,
        info: ProviderInfo,
        model: str,
        prompt: str,
        max_tokens: Optional[int],
        temperature: Optional[float],
        timeout: Optional[float],
    ) -> ProviderResponse:
        adapter = self.registry.adapter(info.name)
        request = ProviderRequest(
            prompt=prompt,
            model=model,
            max_tokens=max_tokens if max_tokens is not None else info.max_tokens,
            temperature=temperature if temperature is not None else info.temperature,
        )
        timeout = timeout if timeout is not None else self.config.timeout
        try:
            return await asyncio.wait_for(adapter.send(request, api_key=info.api_key), timeout)
        except asyncio.TimeoutError as e:
            raise APITimeoutError(
                f"{info.name} did not respond within {timeout}s", provider=info.name
            ) from e

    async def _complete(
        self,
        info: ProviderInfo,
        model: str,
        response: ProviderResponse,
        options: CallOptions,
        reservation: Optional[AdmissionDecision] = None,
    ) -> CallResult:
        """Write a successful call back to stats, the caller's ledger and the catalog."""
        caller_id = options.caller_id
        session_caller = caller_id == self.stats.session_caller_id

        # The session key is metered by the stats write-back, which consumes its reservation
        charge = await self.stats.update_stats(
            info.name,
            response.input_tokens,
            response.output_tokens,
            model_id=model,
            app_name=options.app_name,
            reservation=reservation if session_caller else None,
        )

        usage = None
        if caller_id and not session_caller:
            usage = await self.ledger.record_usage(
                info.name,
                model,
                caller_id,
                UsageDelta(
                    requests=0 if reservation is not None else 1,
                    input_tokens=response.input_tokens,
                    output_tokens=response.output_tokens,
                ),
            )

        await self.registry.ensure_model(info.name, model)

        result = CallResult(
            status=CallStatus.SUCCEEDED,
            content=response.text,
            provider=info.name,
            model=model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            cost=charge.cost,
            is_free=charge.is_free,
            usage=usage,
        )
        return result

    async def call_provider(
        self,
        provider: str,
        prompt: str,
        options: Optional[CallOptions] = None,
    ) -> CallResult:
        """Call one provider without admission checks or fallback.

        Raises:
            ConfigurationError: Provider unknown, disabled or without credential
            UpstreamError: The provider call failed or timed out
        """
        options = options or CallOptions()
        info = self._configured(provider)
        model = options.model or info.default_model
        response = await self._invoke(
            info, model, prompt, options.max_tokens, options.temperature, options.timeout
        )
        result = await self._complete(info, model, response, options)
        result.attempts.append(CallAttempt(provider=provider, model=model, outcome=AttemptOutcome.SUCCEEDED))
        return result

    def _candidates(self, primary: str) -> list[str]:
        return [primary] + [name for name in self.config.fallback_order if name != primary]

    async def call_ai(self, prompt: str, options: Optional[CallOptions] = None) -> CallResult:
        """Serve a prompt from the requested provider, falling back on failure.

        The primary provider is called with the caller's model and
        parameters; fallback candidates use their own defaults. With a
        caller id every candidate must pass admission first. Failures are
        reported in the result, not raised.

        Args:
            prompt: Prompt text
            options: Provider, model, parameters, caller and timeout

        Returns:
            Result with status SUCCEEDED, REJECTED_QUOTA or ALL_FAILED
        """
        options = options or CallOptions()
        primary = options.provider or self.default_provider
        attempts: list[CallAttempt] = []
        last_error: Optional[AIGeekError] = None

        for name in self._candidates(primary):
            is_primary = name == primary
            try:
                info = self._configured(name)
            except ConfigurationError as e:
                attempts.append(CallAttempt(
                    provider=name,
                    outcome=AttemptOutcome.SKIPPED_CONFIGURATION,
                    error=e.message,
                    error_type=e.type,
                ))
                if is_primary:
                    logger.warning(f"{e.message}, trying fallback providers")
                    last_error = e
                continue

            model = (options.model if is_primary else None) or info.default_model

            reservation = None
            if options.caller_id:
                reservation = await self.ledger.reserve(name, model, options.caller_id)
                if not reservation.admissible:
                    quota_error = QuotaExceededError(
                        reservation.reason or "Free tier limit reached", usage=reservation.usage
                    )
                    attempts.append(CallAttempt(
                        provider=name,
                        model=model,
                        outcome=AttemptOutcome.SKIPPED_QUOTA,
                        error=quota_error.message,
                        error_type=quota_error.type,
                    ))
                    if is_primary and not self.config.fallback_on_quota:
                        return CallResult(
                            status=CallStatus.REJECTED_QUOTA,
                            provider=name,
                            model=model,
                            attempts=attempts,
                            usage=reservation.usage,
                            error=error_detail(quota_error),
                        )
                    last_error = quota_error
                    continue

            try:
                response = await self._invoke(
                    info,
                    model,
                    prompt,
                    options.max_tokens if is_primary else None,
                    options.temperature if is_primary else None,
                    options.timeout,
                )
            except asyncio.CancelledError:
                if reservation is not None:
                    await self.ledger.release(reservation)
                raise
            except (UpstreamError, MalformedResponseError, ConfigurationError) as e:
                if reservation is not None:
                    await self.ledger.release(reservation)
                attempts.append(CallAttempt(
                    provider=name,
                    model=model,
                    outcome=AttemptOutcome.FAILED,
                    error=e.message,
                    error_type=e.type,
                ))
                last_error = e
                logger.warning(f"{name} call failed: {e}")
                continue

            result = await self._complete(info, model, response, options, reservation)
            attempts.append(CallAttempt(provider=name, model=model, outcome=AttemptOutcome.SUCCEEDED))
            result.attempts = attempts
            result.fallback_used = not is_primary
            if not is_primary:
                logger.info(f"Served by fallback provider {name} after {primary} failed")
            return result

        failure = AllProvidersFailedError(attempts=attempts)
        logger.error(
            "All providers failed: %s",
            "; ".join(f"{a.provider}: {a.error}" for a in attempts),
        )
        return CallResult(
            status=CallStatus.ALL_FAILED,
            attempts=attempts,
            error=error_detail(failure, details=last_error.message if last_error else None),
        )

    @staticmethod
    def parse_json_response(text: Optional[str]) -> dict[str, Any]:
        return parse_json_response(text)
