"""Course assistant reply pipeline.

Role:
    Turns one inbound chat message into one reply. Deterministic hard rules run
    first; only when none fires is the generative backend called with a grounded
    request, and its output is rewritten into WhatsApp-safe text.

Step contracts:
    Hard Rules:
        Reads user_message + conversation memory; may set route/answer_text.
    Backend Check:
        Sets the unavailable route when no generator is configured.
    Grounding:
        Builds the GenerationRequest (eligible catalog, candidates, history, user turn).
    Generation:
        Calls the backend; failures set the backend_error route and apology text.
    Post-process:
        Rewrites raw output and extracts the registration link for follow-ups.
    Finalize:
        Records the turn in conversation memory according to the route.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from .catalog import CatalogStore
from .config import MentionThresholds
from .conversation_store import ConversationState
from .grounding import GenerationRequest, GroundingContextBuilder
from .hard_rules import HardRuleReply, resolve_hard_rule
from .matcher import DEFAULT_THRESHOLDS, CandidateMatch
from .pipeline_runtime import PipelineStep, StepRunner
from .postprocess import RegistrationLink, postprocess_reply
from .utils import clamp, sanitize_text

logger = logging.getLogger("course_assistant.assistant")

ROUTE_GENERATED = "generated"
ROUTE_BACKEND_ERROR = "backend_error"
ROUTE_BACKEND_UNAVAILABLE = "backend_unavailable"

GENERIC_ERROR_REPLY = "Ocurrió un error al generar la respuesta."
UNAVAILABLE_REPLY = "El asistente no está disponible temporalmente. Intentalo más tarde."

FAILED_ROUTES = {ROUTE_BACKEND_ERROR, ROUTE_BACKEND_UNAVAILABLE}


class ReplyGenerator(Protocol):
    def generate_reply(self, request: GenerationRequest) -> str:
        ...


@dataclass
class AssistantReply:
    route: str
    text: str
    candidates: List[CandidateMatch] = field(default_factory=list)
    registration: Optional[RegistrationLink] = None


@dataclass
class PipelineContext:
    """Mutable context passed through each pipeline step."""
    user_message: str
    state: ConversationState
    route: str = ""
    answer_text: str = ""
    raw_answer: str = ""
    hard_rule: Optional[HardRuleReply] = None
    request: Optional[GenerationRequest] = None
    registration: Optional[RegistrationLink] = None

    @property
    def conversation_id(self) -> str:
        return self.state.conversation_id

    @property
    def answered(self) -> bool:
        return bool(self.route)


class CourseAssistant:
    def __init__(
        self,
        catalog: CatalogStore,
        builder: GroundingContextBuilder,
        generator: Optional[ReplyGenerator] = None,
        thresholds: MentionThresholds = DEFAULT_THRESHOLDS,
        message_max_chars: int = 1200,
    ) -> None:
        """Purpose: Wire the catalog, grounding builder and backend into the step runner.
        Inputs/Outputs: Inputs are the catalog store, grounding builder, an optional
            generator (None = backend not configured), thresholds and the message clamp.
        Side Effects / State: Builds a StepRunner with the ordered steps.
        Dependencies: Uses StepRunner/PipelineStep and the step methods on this class.
        Failure Modes: None at init.
        If Removed: The delivery adapter has nothing to produce replies with.
        Testing Notes: Instantiate with a fake generator and a small CatalogStore.
        """
        # Store dependencies and build the step runner.
        self._catalog = catalog
        self._builder = builder
        self._generator = generator
        self._thresholds = thresholds
        self._message_max_chars = message_max_chars
        self._runner: StepRunner[PipelineContext] = StepRunner(
            [
                PipelineStep("hard_rules", self._step_hard_rules),
                PipelineStep("backend_check", self._step_backend_check, skip_if=_is_answered),
                PipelineStep("grounding", self._step_grounding, skip_if=_is_answered),
                PipelineStep("generation", self._step_generation, skip_if=_is_answered),
                PipelineStep("postprocess", self._step_postprocess, skip_if=_not_generated),
                PipelineStep("finalize", self._step_finalize, always_run=True),
            ]
        )

    @property
    def backend_configured(self) -> bool:
        return self._generator is not None

    def handle_message(self, state: ConversationState, user_message: str) -> AssistantReply:
        """Purpose: Run the full pipeline for one message and return the reply.
        Inputs/Outputs: Inputs are the conversation's state and the trimmed message;
            output is an AssistantReply with route and text.
        Side Effects / State: Mutates state (history, last suggested course). The
            caller must hold the conversation lock.
        Dependencies: Uses StepRunner.run.
        Failure Modes: Backend errors are converted into the apology reply.
        If Removed: Inbound messages cannot be answered.
        Testing Notes: Cover each route: closed_state, registration_followup,
            generated, backend_error, backend_unavailable.
        """
        # Build context and run the ordered steps.
        context = PipelineContext(user_message=user_message, state=state)
        logger.debug("conversation=%s question=%s", context.conversation_id, user_message)
        self._runner.run(context)
        return AssistantReply(
            route=context.route,
            text=context.answer_text,
            candidates=list(context.request.candidates) if context.request else [],
            registration=context.registration,
        )

    def _step_hard_rules(self, context: PipelineContext) -> None:
        # Hard rules run before any backend check so they work without a backend.
        hard_rule = resolve_hard_rule(context.user_message, self._catalog.all(), context.state, self._thresholds)
        if hard_rule is None:
            return
        context.hard_rule = hard_rule
        context.route = hard_rule.route
        context.answer_text = hard_rule.text
        logger.info(
            "conversation=%s route=%s course=%s", context.conversation_id, hard_rule.route, hard_rule.course_id
        )

    def _step_backend_check(self, context: PipelineContext) -> None:
        if self._generator is None:
            context.route = ROUTE_BACKEND_UNAVAILABLE
            context.answer_text = UNAVAILABLE_REPLY
            logger.warning("conversation=%s route=%s", context.conversation_id, context.route)

    def _step_grounding(self, context: PipelineContext) -> None:
        context.request = self._builder.build(context.user_message, context.state.recent_history())
        logger.info(
            "conversation=%s step=grounding candidates=%s",
            context.conversation_id,
            [(match.id, round(match.score, 3)) for match in context.request.candidates],
        )

    def _step_generation(self, context: PipelineContext) -> None:
        """Purpose: Call the generative backend with the grounded request.
        Inputs/Outputs: Input is PipelineContext; sets raw_answer and route.
        Side Effects / State: Network call through the generator.
        Dependencies: ReplyGenerator.generate_reply.
        Failure Modes: Any backend exception sets the backend_error route and the
            fixed apology; nothing propagates to the transport.
        If Removed: Only hard-rule replies would ever be sent.
        Testing Notes: Use a generator that raises and assert the apology text.
        """
        # The user never sees backend error details.
        try:
            context.raw_answer = self._generator.generate_reply(context.request)
        except Exception:
            context.route = ROUTE_BACKEND_ERROR
            context.answer_text = GENERIC_ERROR_REPLY
            logger.exception("conversation=%s route=%s", context.conversation_id, context.route)
            return
        context.route = ROUTE_GENERATED

    def _step_postprocess(self, context: PipelineContext) -> None:
        processed = postprocess_reply(context.raw_answer)
        if not processed.text:
            context.route = ROUTE_BACKEND_ERROR
            context.answer_text = GENERIC_ERROR_REPLY
            logger.error(
                "conversation=%s route=%s reason=empty_after_postprocess", context.conversation_id, context.route
            )
            return
        context.answer_text = processed.text
        context.registration = processed.registration
        logger.info(
            "conversation=%s route=%s instructions=%s registration=%s",
            context.conversation_id,
            context.route,
            self._builder.instructions.version,
            bool(processed.registration),
        )

    def _step_finalize(self, context: PipelineContext) -> None:
        """Purpose: Record the turn in conversation memory.
        Inputs/Outputs: Input is PipelineContext; mutates context.state.
        Side Effects / State: Updates history and last_suggested_course.
        Dependencies: ConversationState.record_exchange/record_user_turn.
        Failure Modes: None.
        If Removed: Follow-ups and history context break.
        Testing Notes: Failed backend turns store the user turn without an assistant turn.
        """
        # Failed backend turns keep the user turn only; everything else keeps both sides.
        user_turn = clamp(sanitize_text(context.user_message), self._message_max_chars)
        if context.registration is not None:
            context.state.remember_course(context.registration.title, context.registration.url)
        if context.route in FAILED_ROUTES:
            context.state.record_user_turn(user_turn)
        else:
            context.state.record_exchange(user_turn, context.answer_text)
        logger.debug("conversation=%s history=%d", context.conversation_id, len(context.state.history))


def _is_answered(context: PipelineContext) -> bool:
    return context.answered


def _not_generated(context: PipelineContext) -> bool:
    return context.route != ROUTE_GENERATED
