"""Image generation pipeline orchestrator.

``ImageEnginePipeline`` turns a validated request into exactly one terminal
outcome and never raises for a request that made it past validation.

Stages
------
1. validation (done by the caller; a failure never reaches the pipeline)
2. log ``generate_start``
3. decide; ``fallback`` mode ends here
4. re-evaluate safety; ``block`` and ``fallback`` verdicts end here
5. build the prompt (memory only)
6. resolve the pixel size
7. call the provider; an exception or a result without image bytes ends here
8. select the storage backend
9. write to storage; a failed write ends here
10. build alt text and content type
11. success

Each terminal branch builds one ``GenerateSuccess`` or ``GenerateFailure``,
persists it and logs ``generate_finish`` (both best-effort) and returns.  No
later stage runs once a branch is taken.

Prompt Handling
---------------
The compiled prompt and negative prompt live in local variables of
``_run_generation`` only.  They are passed to the provider adapter and never
reach a result, record, event or log line.

Usage
-----
::

    pipeline = ImageEnginePipeline.from_config(config)
    result = await pipeline.generate(request)
    payload = result.to_wire()
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from pydantic import ValidationError

from image_engine.core.config import ImageEngineConfig
from image_engine.core.constants import (
    DEFAULT_CONTENT_TYPE,
    PROVIDER_ERROR,
    SAFETY_BLOCKED,
    SAFETY_FALLBACK,
    STORAGE_ERROR,
)
from image_engine.core.decision import log_decision, resolve_decision
from image_engine.core.events import EventLogger, ResultPersister
from image_engine.core.models import (
    Decision,
    DecisionResponse,
    ErrorInfo,
    FallbackInfo,
    GeneratedImage,
    GenerateFailure,
    GenerateSuccess,
    ImageEngineRequest,
    ImageEngineResult,
    ProviderResult,
    RegenerateMiss,
    SafetyResult,
    StorageResult,
    Timings,
)
from image_engine.core.prompt_builder import (
    PromptBuildInput,
    build_alt_text,
    build_image_prompt,
    map_category_to_prompt_category,
    map_style_tone_to_vibe,
)
from image_engine.core.providers import (
    ProviderAdapterBase,
    ProviderInput,
    build_providers,
    generate_with_provider,
    resolve_provider_name,
)
from image_engine.core.records import EngineEvent, RecordStore, RequestRecord
from image_engine.core.safety import SafetyInput, evaluate_safety
from image_engine.core.sizing import resolve_size
from image_engine.core.storage import (
    StorageBackendBase,
    StorageBackendSelector,
    StorageWriteInput,
    build_storages,
    environment_selector,
    write_to_storage,
)

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return max(0, round((time.perf_counter() - start) * 1000))


class ImageEnginePipeline:
    """Orchestrates decision, safety, generation and storage for one request.

    The pipeline holds no per-request state; concurrent requests share only
    the adapters, the record store and the configuration.

    Attributes:
        config: Active configuration
        providers: Provider adapters keyed by name
        storages: Storage backends keyed by name
        store: Record store used for lookups
        event_logger: Best-effort event logger
        persister: Best-effort result persister
        storage_selector: Chooses the storage backend for each request
    """

    def __init__(
        self,
        config: ImageEngineConfig,
        providers: dict[str, ProviderAdapterBase],
        storages: dict[str, StorageBackendBase],
        store: RecordStore,
        event_logger: EventLogger | None = None,
        persister: ResultPersister | None = None,
        storage_selector: StorageBackendSelector | None = None,
        decide: Callable[[ImageEngineRequest, str], Decision] = resolve_decision,
    ):
        self.config = config
        self.providers = providers
        self.storages = storages
        self.store = store
        self.event_logger = event_logger or EventLogger(store)
        self.persister = persister or ResultPersister(store)
        self.storage_selector = storage_selector or environment_selector(config)
        self._decide = decide

    @classmethod
    def from_config(cls, config: ImageEngineConfig) -> ImageEnginePipeline:
        """Build a pipeline with every registered adapter and backend."""
        return cls(
            config=config,
            providers=build_providers(config),
            storages=build_storages(config),
            store=RecordStore(config.record_db_path),
        )

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    def decide(self, request: ImageEngineRequest) -> Decision:
        return self._decide(request, self.config.default_provider_id)

    @staticmethod
    def _request_safety_input(request: ImageEngineRequest, decision: Decision) -> SafetyInput:
        return SafetyInput(
            platform=decision.platform,
            category=decision.category,
            aspect=decision.aspect,
            mode=decision.mode,
            negative_rules=decision.prompt_plan.negative_rules,
            business_name=request.brand.industry if request.brand else None,
            user_text=request.intent_summary,
        )

    async def decide_and_record(self, request: ImageEngineRequest) -> DecisionResponse:
        """Resolve a decision, attach the safety verdict and record both.

        The decision is persisted as a ``queued`` request record and
        ``decision`` and ``safety_decision`` events are logged.
        """
        decision = self.decide(request)
        log_decision(request, decision)
        safety = evaluate_safety(self._request_safety_input(request, decision))

        await self.persister.persist_decision_safe(decision, safety)
        await self.event_logger.log_safe(
            request.request_id,
            "decision",
            True,
            "Decision computed",
            {
                "platform": decision.platform,
                "category": decision.category,
                "aspect": decision.aspect,
                "mode": decision.mode,
            },
        )
        await self.event_logger.log_safe(
            request.request_id,
            "safety_decision",
            safety.verdict == "allow",
            safety.reason_safe,
            {"verdict": safety.verdict, "tags": list(safety.tags)},
        )

        return DecisionResponse(**decision.model_dump(), safety_result=safety)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(self, request: ImageEngineRequest) -> ImageEngineResult:
        """Run the full pipeline for a validated request."""
        started = time.perf_counter()
        request_id = request.request_id

        await self.event_logger.log_safe(
            request_id,
            "generate_start",
            True,
            "Generation started",
            {"platform": request.platform, "category": request.category},
        )

        decision_started = time.perf_counter()
        decision = self.decide(request)
        decision_ms = _elapsed_ms(decision_started)
        log_decision(request, decision)

        if decision.mode == "fallback":
            return await self._decision_fallback(decision, started, decision_ms)

        return await self._run_generation(
            decision,
            self._request_safety_input(request, decision),
            started=started,
            decision_ms=decision_ms,
        )

    async def regenerate(self, request_id: str | None) -> ImageEngineResult | RegenerateMiss:
        """Regenerate an image from a stored decision.

        Safety is re-evaluated from stored metadata only; the original intent
        text is never used.  A safety fallback here carries the
        ``SAFETY_FALLBACK`` error code.
        """
        if not request_id or not request_id.strip():
            return RegenerateMiss(error_code="MISSING_REQUEST_ID")

        request_id = request_id.strip()
        started = time.perf_counter()

        record = await asyncio.to_thread(self.store.get_request, request_id)
        if record is None:
            return RegenerateMiss(error_code="NOT_FOUND")

        decision_started = time.perf_counter()
        try:
            decision = Decision.model_validate({**record.decision_json, "requestId": request_id})
        except ValidationError:
            logger.warning(f"Stored decision for {request_id} could not be read")
            return RegenerateMiss(error_code="INVALID_DECISION")
        decision_ms = _elapsed_ms(decision_started)

        await self.event_logger.log_safe(
            request_id,
            "generate_start",
            True,
            "Regeneration started",
            {"platform": decision.platform, "category": decision.category},
        )

        if decision.mode == "fallback":
            return await self._decision_fallback(decision, started, decision_ms)

        safety_input = SafetyInput(
            platform=record.platform,
            category=record.category,
            aspect=record.aspect,
            mode=decision.mode,
            negative_rules=decision.prompt_plan.negative_rules,
            business_name=decision.prompt_plan.variables.get("industry"),
            user_text="",
        )
        return await self._run_generation(
            decision,
            safety_input,
            started=started,
            decision_ms=decision_ms,
            fallback_error_code=SAFETY_FALLBACK,
        )

    async def _decision_fallback(
        self, decision: Decision, started: float, decision_ms: int
    ) -> GenerateFailure:
        reason = "; ".join(decision.safety.reasons) or "Safety evaluation failed"
        return await self._fail(
            decision,
            reason=reason,
            timings=Timings(decision=decision_ms, total=_elapsed_ms(started)),
            finish_data={"fallbackReason": reason},
        )

    async def _run_generation(
        self,
        decision: Decision,
        safety_input: SafetyInput,
        *,
        started: float,
        decision_ms: int,
        fallback_error_code: str | None = None,
    ) -> ImageEngineResult:
        request_id = decision.request_id

        # Stage 4: safety re-evaluation.
        safety = evaluate_safety(safety_input)

        if safety.verdict == "block":
            reason = safety.reason_safe or "Request blocked by safety rules"
            return await self._fail(
                decision,
                reason=reason,
                error=ErrorInfo(code=SAFETY_BLOCKED, message=reason),
                timings=Timings(decision=decision_ms, total=_elapsed_ms(started)),
                finish_data={"verdict": "block", "tags": list(safety.tags)},
                safety_result=safety,
            )

        if safety.verdict == "fallback":
            reason = safety.reason_safe or "Request requires fallback due to safety rules"
            error = ErrorInfo(code=fallback_error_code, message=reason) if fallback_error_code else None
            return await self._fail(
                decision,
                reason=reason,
                error=error,
                timings=Timings(decision=decision_ms, total=_elapsed_ms(started)),
                finish_data={"verdict": "fallback", "tags": list(safety.tags)},
                safety_result=safety,
            )

        # Stage 5: prompt, in memory only.
        variables = decision.prompt_plan.variables
        prompt = build_image_prompt(
            PromptBuildInput(
                request_id=request_id,
                platform=decision.platform,
                category=map_category_to_prompt_category(decision.category),
                aspect=decision.aspect,
                negative_rules=decision.prompt_plan.negative_rules,
                verdict=safety.verdict,
                mode=decision.mode,
                industry=variables.get("industry"),
                vibe=map_style_tone_to_vibe(variables.get("styleTone")),
            )
        )

        # Stage 6: size.
        width, height = resolve_size(decision.platform, decision.aspect)

        # Stage 7: provider.
        provider_name = resolve_provider_name(decision.provider_plan.provider_id)
        provider_started = time.perf_counter()
        try:
            provider_result = await generate_with_provider(
                provider_name,
                ProviderInput(
                    request_id=request_id,
                    width=width,
                    height=height,
                    prompt=prompt.prompt,
                    negative_prompt=prompt.negative_prompt,
                ),
                self.providers,
            )
        except Exception as e:
            provider_ms = _elapsed_ms(provider_started)
            message = f"Provider call failed: {type(e).__name__}"
            logger.error(f"Provider '{provider_name}' raised for {request_id}: {message}")
            await self.event_logger.log_safe(
                request_id, "provider_call", False, message, {"errorCode": PROVIDER_ERROR}
            )
            return await self._fail(
                decision,
                reason=f"Provider error: {message}",
                error=ErrorInfo(code=PROVIDER_ERROR, message=message),
                timings=Timings(
                    decision=decision_ms, provider=provider_ms, total=_elapsed_ms(started)
                ),
                finish_data={"errorCode": PROVIDER_ERROR},
                safety_result=safety,
            )
        provider_ms = _elapsed_ms(provider_started)

        await self._log_provider_call(request_id, provider_result)

        if not provider_result.ok or not provider_result.image_bytes:
            reason = provider_result.error_message_safe or "Provider returned no image"
            return await self._fail(
                decision,
                reason=reason,
                error=ErrorInfo(
                    code=provider_result.error_code or PROVIDER_ERROR,
                    message=provider_result.error_message_safe or "Provider call failed",
                ),
                timings=Timings(
                    decision=decision_ms, provider=provider_ms, total=_elapsed_ms(started)
                ),
                finish_data={"fallbackReason": reason, "errorCode": provider_result.error_code},
                safety_result=safety,
            )

        # Stage 8 and 9: storage.
        mime_type = provider_result.mime_type or DEFAULT_CONTENT_TYPE
        storage_name = self.storage_selector()
        storage_started = time.perf_counter()
        try:
            storage_result = await write_to_storage(
                storage_name,
                StorageWriteInput(
                    request_id=request_id, data=provider_result.image_bytes, mime_type=mime_type
                ),
                self.storages,
            )
        except Exception as e:
            logger.error(f"Storage '{storage_name}' raised for {request_id}: {e}", exc_info=True)
            storage_result = StorageResult(
                ok=False,
                storage=storage_name,
                error_code=STORAGE_ERROR,
                error_message_safe="Storage write failed",
            )
        storage_ms = _elapsed_ms(storage_started)

        await self.event_logger.log_safe(
            request_id,
            "storage_write",
            storage_result.ok,
            "Storage write succeeded"
            if storage_result.ok
            else storage_result.error_message_safe or "Storage write failed",
            {"storage": storage_result.storage, "errorCode": storage_result.error_code},
        )

        if not storage_result.ok or not storage_result.url:
            reason = storage_result.error_message_safe or "Storage write failed"
            return await self._fail(
                decision,
                reason=reason,
                error=ErrorInfo(code=storage_result.error_code or STORAGE_ERROR, message=reason),
                timings=Timings(
                    decision=decision_ms,
                    provider=provider_ms,
                    storage=storage_ms,
                    total=_elapsed_ms(started),
                ),
                finish_data={"fallbackReason": reason, "errorCode": storage_result.error_code},
                storage_name=storage_name,
                safety_result=safety,
            )

        # Stage 10 and 11: success.
        result = GenerateSuccess(
            request_id=request_id,
            decision=decision,
            image=GeneratedImage(
                url=storage_result.url,
                width=width,
                height=height,
                content_type=mime_type,
                alt_text=build_alt_text(decision.platform, decision.category, decision.aspect),
            ),
            timings_ms=Timings(
                decision=decision_ms,
                provider=provider_ms,
                storage=storage_ms,
                total=_elapsed_ms(started),
            ),
        )

        await self.persister.persist_safe(result, storage_name, safety)
        await self.event_logger.log_safe(
            request_id,
            "generate_finish",
            True,
            "Generation completed successfully",
            {"imageUrl": result.image.url, "width": width, "height": height},
        )
        logger.info(f"Generated image for {request_id} at {result.image.url}")
        return result

    async def _log_provider_call(self, request_id: str, provider_result: ProviderResult) -> None:
        await self.event_logger.log_safe(
            request_id,
            "provider_call",
            provider_result.ok,
            "Provider call succeeded"
            if provider_result.ok
            else provider_result.error_message_safe or "Provider call failed",
            {"provider": provider_result.provider, "errorCode": provider_result.error_code},
        )

    async def _fail(
        self,
        decision: Decision,
        *,
        reason: str,
        timings: Timings,
        finish_data: dict,
        error: ErrorInfo | None = None,
        storage_name: str | None = None,
        safety_result: SafetyResult | None = None,
    ) -> GenerateFailure:
        result = GenerateFailure(
            request_id=decision.request_id,
            decision=decision,
            fallback=FallbackInfo(reason=reason),
            error=error,
            timings_ms=timings,
        )

        await self.persister.persist_safe(result, storage_name, safety_result)
        await self.event_logger.log_safe(
            decision.request_id, "generate_finish", False, reason, finish_data
        )
        logger.info(
            f"Generation for {decision.request_id} ended without an image"
            f" ({error.code if error else 'fallback'})"
        )
        return result

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_record(self, request_id: str) -> RequestRecord | None:
        return await asyncio.to_thread(self.store.get_request, request_id)

    async def list_events(self, request_id: str) -> list[EngineEvent]:
        return await asyncio.to_thread(self.store.list_events, request_id)
