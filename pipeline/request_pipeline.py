"""Resilient request pipeline for coaching replies."""

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, List, Optional, Union
from pydantic import BaseModel

from config.settings import Settings
from llm.base_client import BaseLLMClient, LLMRequest, LLMServiceError
from memory.conversation_buffer import sanitize_conversation
from schemas.coaching import CoachingOption
from schemas.conversation import ChatResponse, Message, Role
from . import fallbacks
from .request_cache import TTLCache
from .similarity import is_too_similar

logger = logging.getLogger(__name__)

ADDITIONAL_INSTRUCTIONS = """IMPORTANT ADDITIONAL INSTRUCTIONS:
1. MAINTAIN CONVERSATION CONTEXT: Always review all previous messages before responding. Never ask the same question twice and remember information the user has shared
2. RESPOND TO STATED KNOWLEDGE LEVEL: If the user says they are a "beginner," "new," or have "no experience," immediately begin teaching basics without further assessment questions
3. FORWARD PROGRESS: Always teach something new in each response rather than repeating information or asking clarifying questions repeatedly
4. For technical topics like programming, databases, math, or science, begin with extremely basic concepts and simple analogies
5. Each response should be unique and directly address what the user just said, while maintaining awareness of the entire conversation history
6. Never use academic or complex language without immediately explaining it in simple terms
7. For brief or unclear user responses, assume they need help and continue teaching rather than asking the same question again
8. Be exceptionally patient and encouraging with beginners
9. For technical subjects, use real-life examples that anyone can relate to
10. If you detect the conversation is stalled with repeated similar exchanges, introduce a new foundational concept to move forward"""

CACHE_KEY_CONTENT_CHARS = 50


class Ok(BaseModel):
    """Attempt produced usable content."""
    content: str


class Retry(BaseModel):
    """Attempt failed in a way worth retrying."""
    error_kind: str
    reason: str
    status: Optional[int] = None


class Fatal(BaseModel):
    """Attempt failed in a way retries will not fix; use canned content."""
    error_kind: str
    reason: str
    fallback_content: str
    status: Optional[int] = None


AttemptResult = Union[Ok, Retry, Fatal]


class RequestPipeline:
    """
    Turns a conversation into one assistant message.

    Every call returns a well-formed assistant message: generation
    failures degrade to canned text instead of raising.
    """

    def __init__(
        self,
        llm_client: BaseLLMClient,
        settings: Optional[Settings] = None,
        cache: Optional[TTLCache] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        """
        Initialize pipeline.

        Args:
            llm_client: Async LLM client
            settings: Timeouts, retry and sampling parameters
            cache: Request de-duplication cache (default: new TTLCache)
            sleep: Backoff sleep coroutine, injectable for tests
        """
        self.llm_client = llm_client
        self.settings = settings or Settings()
        self.cache = cache or TTLCache(
            max_size=self.settings.cache_max_size,
            ttl_s=self.settings.cache_ttl_s,
        )
        self.sleep = sleep

    async def respond(
        self,
        topic: Optional[str],
        option: Optional[CoachingOption],
        conversation: List[Any],
        timestamp: Optional[int] = None,
        is_feedback_request: bool = False,
        summary_prompt: Optional[str] = None,
    ) -> ChatResponse:
        """
        Request an assistant reply for the conversation.

        Args:
            topic: Session topic substituted into the prompt template
            option: Coaching option carrying the prompt template
            conversation: Full session conversation (sanitized here)
            timestamp: Client request timestamp used for de-duplication
            is_feedback_request: Mark the reply as a feedback summary
            summary_prompt: Final user instruction for feedback requests

        Returns:
            ChatResponse whose message is always a non-empty assistant message
        """
        request_id = uuid.uuid4().hex[:8]
        history = sanitize_conversation(conversation or [], self.settings.max_messages)

        cache_key = self._cache_key(timestamp, history)
        if cache_key is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.info(f"[{request_id}] Duplicate request detected with key: {cache_key}")
                return cached.model_copy(update={"from_cache": True})

        if option is None or not history:
            logger.error(
                f"[{request_id}] Missing required fields: "
                f"option={option.name if option else None} messages={len(history)}"
            )
            return fallbacks.fallback_response(
                fallbacks.MISSING_FIELDS,
                error="Missing required fields",
                details="Coaching option or messages are missing from the request.",
                status=400,
                is_feedback_summary=is_feedback_request,
            )

        request = self._build_request(topic, option, history, is_feedback_request, summary_prompt)
        logger.info(
            f"[{request_id}] Sending request: option={option.name} "
            f"messages={len(request.messages)} feedback={is_feedback_request}"
        )

        response = await self._run_attempts(request, request_id, is_feedback_request)
        if response.ok and not is_feedback_request:
            response = self._suppress_repeats(response, history, request_id)

        if cache_key is not None:
            ttl = self.settings.cache_ttl_s if response.ok else self.settings.cache_ttl_s / 2
            self.cache.set(cache_key, response, ttl_s=ttl)

        return response

    # -- request building ------------------------------------------------------

    def _build_request(
        self,
        topic: Optional[str],
        option: CoachingOption,
        history: List[Message],
        is_feedback_request: bool,
        summary_prompt: Optional[str],
    ) -> LLMRequest:
        system_prompt = f"{option.render_prompt(topic)}\n\n{ADDITIONAL_INSTRUCTIONS}"

        if is_feedback_request:
            messages = [m for m in history if not m.is_feedback_summary]
            if summary_prompt:
                messages.append(Message(role=Role.USER, content=summary_prompt))
        else:
            window = self.settings.context_window
            messages = history[-window:] if window > 0 else list(history)

        return LLMRequest(
            system_prompt=system_prompt,
            messages=messages,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            presence_penalty=self.settings.presence_penalty,
            frequency_penalty=self.settings.frequency_penalty,
            timeout_s=self.settings.request_timeout_s,
        )

    def _cache_key(self, timestamp: Optional[int], history: List[Message]) -> Optional[tuple]:
        if timestamp is None:
            return None
        last_content = history[-1].content if history else ""
        return (timestamp, last_content[:CACHE_KEY_CONTENT_CHARS])

    # -- attempts --------------------------------------------------------------

    async def _attempt(self, request: LLMRequest, request_id: str) -> AttemptResult:
        """Run one model call and classify the outcome."""
        try:
            result = await asyncio.wait_for(
                self.llm_client.chat(request),
                timeout=self.settings.request_timeout_s,
            )
        except asyncio.TimeoutError:
            return Retry(error_kind=LLMServiceError.TIMEOUT, reason="AI request timeout")
        except LLMServiceError as e:
            logger.error(f"[{request_id}] Model error kind={e.error_kind} status={e.status}")
            if e.error_kind == LLMServiceError.AUTH:
                return Fatal(
                    error_kind=e.error_kind,
                    reason=e.details,
                    fallback_content=fallbacks.AUTH_FAILED,
                    status=e.status,
                )
            if e.error_kind == LLMServiceError.MALFORMED:
                return Fatal(
                    error_kind=e.error_kind,
                    reason=e.details,
                    fallback_content=fallbacks.MALFORMED_COMPLETION,
                    status=e.status,
                )
            return Retry(error_kind=e.error_kind, reason=e.details, status=e.status)
        except Exception as e:
            # Client bugs and unexpected SDK errors still end in a fallback message
            logger.exception(f"[{request_id}] Unexpected model client failure")
            return Retry(error_kind=LLMServiceError.UNKNOWN, reason=str(e)[:150])

        if result is None:
            return Fatal(
                error_kind=LLMServiceError.MALFORMED,
                reason="Null completion object",
                fallback_content=fallbacks.EMPTY_RESPONSE_OBJECT,
            )

        content = (result.content or "").strip()
        if not content:
            return Fatal(
                error_kind=LLMServiceError.MALFORMED,
                reason="The AI model returned an empty string after trimming.",
                fallback_content=fallbacks.EMPTY_CONTENT,
            )

        return Ok(content=content)

    async def _run_attempts(
        self,
        request: LLMRequest,
        request_id: str,
        is_feedback_request: bool,
    ) -> ChatResponse:
        max_attempts = max(1, self.settings.max_attempts)
        last: Optional[Retry] = None

        for attempt in range(1, max_attempts + 1):
            started = time.monotonic()
            outcome = await self._attempt(request, request_id)
            elapsed_ms = (time.monotonic() - started) * 1000

            if isinstance(outcome, Ok):
                logger.info(f"[{request_id}] Attempt {attempt}/{max_attempts} succeeded in {elapsed_ms:.0f}ms")
                return ChatResponse(
                    message=Message(
                        role=Role.ASSISTANT,
                        content=outcome.content,
                        is_feedback_summary=is_feedback_request,
                    )
                )

            if isinstance(outcome, Fatal):
                logger.warning(f"[{request_id}] Using fallback response: {outcome.reason}")
                return fallbacks.fallback_response(
                    outcome.fallback_content,
                    error=fallbacks.error_label(outcome.error_kind),
                    details=outcome.reason,
                    status=outcome.status or 500,
                    is_feedback_summary=is_feedback_request,
                )

            last = outcome
            logger.warning(
                f"[{request_id}] Attempt {attempt}/{max_attempts} failed "
                f"({outcome.error_kind}) after {elapsed_ms:.0f}ms"
            )
            if attempt < max_attempts:
                await self.sleep(self.settings.backoff_base_s * 2 ** (attempt - 1))

        logger.error(f"[{request_id}] All {max_attempts} attempts failed: {last.error_kind}")
        return fallbacks.fallback_response(
            fallbacks.exhausted_message(last.error_kind, last.reason),
            error=fallbacks.error_label(last.error_kind),
            details=last.reason,
            status=last.status or 500,
            is_feedback_summary=is_feedback_request,
        )

    # -- repeat suppression ----------------------------------------------------

    def _suppress_repeats(
        self,
        response: ChatResponse,
        history: List[Message],
        request_id: str,
    ) -> ChatResponse:
        content = response.message.content
        previous = [m.content for m in history if m.role == Role.ASSISTANT.value]

        if content in previous:
            unique_id = uuid.uuid4().hex[:4]
            logger.warning(f"[{request_id}] Duplicate response detected, tagged {unique_id}")
            return response.model_copy(update={"unique_id": unique_id})

        if previous and is_too_similar(previous[-1], content, self.settings.similarity_threshold):
            logger.info(f"[{request_id}] Response similar to previous, adding clarification")
            message = response.message.model_copy(
                update={"content": content + fallbacks.CLARIFICATION_SUFFIX}
            )
            return response.model_copy(update={"message": message})

        return response
