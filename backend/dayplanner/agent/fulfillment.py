"""Payment-to-delivery orchestration.

A verified checkout event takes its pending request out of the intake store and
runs it through a LangGraph pipeline: generate -> render -> deliver. Generation
never fails outward; render and delivery failures end the run as FAILED and are
kept in an in-memory dead-letter log for replay.
"""
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from langgraph.graph import StateGraph, END

from dayplanner.agent.generator import ContentGenerator
from dayplanner.agent.graph import FailedRun, FulfillmentResult, FulfillmentStage, FulfillmentState
from dayplanner.core.config import logger
from dayplanner.core.errors import SessionNotFound
from dayplanner.schemas.itinerary import PaymentEvent, PendingRequest
from dayplanner.services.intake_store import IntakeStore
from dayplanner.services.mailer import DeliveryDispatcher
from dayplanner.services.renderer import DocumentRenderer

T = TypeVar("T")

async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1,
    timeout: Optional[float] = None,
    label: str = "operation",
    retry_timeouts: bool = True,
) -> T:
    """
    Awaits `func` with a per-attempt timeout, retrying with exponential backoff.
    With `retry_timeouts=False` a timeout is raised at once: the abandoned attempt may still complete.
    """
    attempts = max(1, max_retries)
    for attempt in range(attempts):
        try:
            return await asyncio.wait_for(func(), timeout=timeout)
        except Exception as e:
            if attempt == attempts - 1:  # Last attempt
                raise
            if not retry_timeouts and isinstance(e, asyncio.TimeoutError):
                logger.warning(f"{label} timed out; not retrying because the outcome is unknown")
                raise
            delay = initial_delay * (2 ** attempt)
            logger.warning(f"{label} failed ({e!r}), retrying in {delay} seconds (attempt {attempt + 2}/{attempts})...")
            await asyncio.sleep(delay)

def should_continue(state: FulfillmentState) -> str:
    """Ends the run as soon as a stage has recorded an error."""
    if state.get("error"):
        logger.warning(f"[FULFILLMENT] Stage {state['failed_stage'].value} failed: '{state['error']}'. Routing to end.")
        return "end_with_error"
    return "continue_to_next_step"

def _describe(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "timed out"
    return str(exc) or exc.__class__.__name__

class FulfillmentOrchestrator:
    def __init__(
        self,
        store: IntakeStore,
        generator: ContentGenerator,
        renderer: DocumentRenderer,
        dispatcher: DeliveryDispatcher,
        render_timeout: Optional[float] = None,
        delivery_timeout: Optional[float] = None,
        max_attempts: int = 1,
        initial_delay: float = 1.0,
    ):
        self.store = store
        self.generator = generator
        self.renderer = renderer
        self.dispatcher = dispatcher
        self.render_timeout = render_timeout
        self.delivery_timeout = delivery_timeout
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.failed_runs: Dict[str, FailedRun] = {}
        self.graph = self._build_graph()

    # --- Graph nodes ---

    async def generate_node(self, state: FulfillmentState) -> dict:
        request = state["request"]
        stages = state["stages"] + [FulfillmentStage.GENERATING]
        logger.info(f"[FULFILLMENT] Generating itinerary for session {request.session_id}")
        itinerary = await self.generator.generate(request)
        return {
            "stage": FulfillmentStage.GENERATING,
            "stages": stages,
            "itinerary": itinerary,
            "intermediate_steps": state["intermediate_steps"] + [f"Generated itinerary with {len(itinerary.items)} item(s)."],
        }

    async def render_node(self, state: FulfillmentState) -> dict:
        itinerary = state["itinerary"]
        stages = state["stages"] + [FulfillmentStage.RENDERING]
        try:
            document = await retry_with_backoff(
                lambda: self.renderer.render(itinerary),
                max_retries=self.max_attempts,
                initial_delay=self.initial_delay,
                timeout=self.render_timeout,
                label="[PDF] Render",
            )
        except Exception as e:
            return self._failure(state, stages, e)
        return {
            "stage": FulfillmentStage.RENDERING,
            "stages": stages,
            "document": document,
            "intermediate_steps": state["intermediate_steps"] + [f"Rendered {document.filename} ({len(document.content)} bytes)."],
        }

    async def deliver_node(self, state: FulfillmentState) -> dict:
        request = state["request"]
        stages = state["stages"] + [FulfillmentStage.DELIVERING]
        try:
            await retry_with_backoff(
                lambda: self.dispatcher.send(request.email, state["document"], state["itinerary"]),
                max_retries=self.max_attempts,
                initial_delay=self.initial_delay,
                timeout=self.delivery_timeout,
                label="[EMAIL] Delivery",
                retry_timeouts=False,
            )
        except asyncio.TimeoutError as e:
            # The send may still complete in its worker thread
            return self._failure(state, stages, e, reason="timed out; delivery outcome unknown")
        except Exception as e:
            return self._failure(state, stages, e)
        return {
            "stage": FulfillmentStage.DONE,
            "stages": stages + [FulfillmentStage.DONE],
            "intermediate_steps": state["intermediate_steps"] + [f"Itinerary emailed to {request.email}."],
        }

    @staticmethod
    def _failure(state: FulfillmentState, stages: List[FulfillmentStage], exc: BaseException, reason: Optional[str] = None) -> dict:
        """Fails the run at the last stage entered."""
        stage = stages[-1]
        reason = reason or _describe(exc)
        return {
            "stage": FulfillmentStage.FAILED,
            "stages": stages + [FulfillmentStage.FAILED],
            "failed_stage": stage,
            "error": reason,
            "intermediate_steps": state["intermediate_steps"] + [f"{stage.value} failed: {reason}"],
        }

    def _build_graph(self):
        workflow = StateGraph(FulfillmentState)

        workflow.add_node("generate", self.generate_node)
        workflow.add_node("render", self.render_node)
        workflow.add_node("deliver", self.deliver_node)

        workflow.set_entry_point("generate")
        workflow.add_edge("generate", "render")
        workflow.add_conditional_edges(
            "render",
            should_continue,
            {"continue_to_next_step": "deliver", "end_with_error": END}
        )
        workflow.add_edge("deliver", END)

        return workflow.compile()

    # --- Entry points ---

    async def handle_event(self, event: PaymentEvent) -> FulfillmentResult:
        """
        Fulfills a verified payment event. Never raises; the outcome is logged and returned.
        The pending request is taken out of the store before any fallible stage runs,
        so a redelivered notification for the same session is a no-op.
        """
        if not event.is_fulfillable:
            logger.info(f"[FULFILLMENT] Ignoring event {event.type.value} (session={event.session_id}, email={event.confirmed_email})")
            # The session has not been paid for as far as this service knows
            return FulfillmentResult(
                session_id=event.session_id,
                state=FulfillmentStage.AWAITING_PAYMENT,
                stages=[FulfillmentStage.AWAITING_PAYMENT],
                reason="Event is not a completed checkout with an email",
            )

        try:
            request = self.store.take(event.session_id)
        except SessionNotFound:
            logger.warning(f"[FULFILLMENT] No pending data found for session {event.session_id}; skipping")
            return FulfillmentResult(session_id=event.session_id, state=FulfillmentStage.SKIPPED, reason="no pending data")

        if request.email != event.confirmed_email:
            logger.info(f"[FULFILLMENT] Session {event.session_id}: payment email {event.confirmed_email} differs from form email {request.email}; delivering to the form email")

        logger.info(f"[FULFILLMENT] Payment verified for session {event.session_id} ({request.email})")
        return await self.run(request)

    async def run(self, request: PendingRequest) -> FulfillmentResult:
        """
        Runs generate -> render -> deliver for a request that is already out of the store.
        Called by `handle_event` and by `replay`.
        """
        initial_state: FulfillmentState = {
            "request": request,
            "stage": FulfillmentStage.VERIFIED,
            "stages": [FulfillmentStage.AWAITING_PAYMENT, FulfillmentStage.VERIFIED],
            "error": None,
            "failed_stage": None,
            "intermediate_steps": ["Payment verified."],
        }
        try:
            final_state = await self.graph.ainvoke(initial_state)
        except Exception as e:
            logger.error(f"[FULFILLMENT] Unhandled error for session {request.session_id}: {e}", exc_info=True)
            final_state = {**initial_state, **self._failure(initial_state, initial_state["stages"], e)}

        result = FulfillmentResult(
            session_id=request.session_id,
            state=final_state["stage"],
            failed_stage=final_state.get("failed_stage"),
            stages=final_state.get("stages", []),
            reason=final_state.get("error"),
            steps=final_state.get("intermediate_steps", []),
        )

        if result.state is FulfillmentStage.FAILED:
            logger.error(
                f"[FULFILLMENT] Run FAILED at {result.failed_stage.value} for session {request.session_id} "
                f"(email {request.email}): {result.reason}. Manual follow-up required."
            )
            self.failed_runs[request.session_id] = FailedRun(
                request=request, failed_stage=result.failed_stage, reason=result.reason
            )
        else:
            logger.info(f"[FULFILLMENT] Itinerary process complete for session {request.session_id} ({request.email})")
        return result

    async def replay(self, session_id: str) -> FulfillmentResult:
        """Re-runs a failed fulfillment from its original request."""
        failed = self.failed_runs.pop(session_id, None)
        if failed is None:
            raise SessionNotFound(session_id)
        logger.info(f"[FULFILLMENT] Replaying session {session_id} (previously failed at {failed.failed_stage.value})")
        return await self.run(failed.request)
