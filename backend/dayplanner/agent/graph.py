from enum import Enum
from typing import TypedDict, List, Optional
from pydantic import BaseModel, Field
from dayplanner.schemas.itinerary import GeneratedItinerary, PendingRequest, RenderedDocument

class FulfillmentStage(str, Enum):
    AWAITING_PAYMENT = "awaiting_payment"
    VERIFIED = "verified"
    GENERATING = "generating"
    RENDERING = "rendering"
    DELIVERING = "delivering"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"  # duplicate or unknown session: logged no-op, not a failure

class FulfillmentState(TypedDict, total=False):
    """
    State passed between the nodes of the fulfillment graph.
    Each node reads the previous stage's output and writes its own.
    """
    request: PendingRequest
    itinerary: Optional[GeneratedItinerary]
    document: Optional[RenderedDocument]
    stage: FulfillmentStage
    stages: List[FulfillmentStage]  # every stage entered, in order
    error: Optional[str]  # set when a stage fails; routes the graph to the end
    failed_stage: Optional[FulfillmentStage]
    intermediate_steps: List[str]

class FulfillmentResult(BaseModel):
    """Terminal outcome of one fulfillment run."""
    session_id: Optional[str] = None
    state: FulfillmentStage
    failed_stage: Optional[FulfillmentStage] = None
    stages: List[FulfillmentStage] = Field(default_factory=list)
    reason: Optional[str] = None
    steps: List[str] = Field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return self.state is FulfillmentStage.DONE

class FailedRun(BaseModel):
    """A failed run kept with its original input so it can be replayed."""
    request: PendingRequest
    failed_stage: FulfillmentStage
    reason: str
