"""Conversation step graph and state transitions."""

from dataclasses import replace
from datetime import datetime, timezone

from ..errors import TransitionError
from ..models import ConversationState, ConversationStep, PostData, create_idle_state

FLOW_ORDER = (
    ConversationStep.IDLE,
    ConversationStep.WAITING_TITLE,
    ConversationStep.WAITING_CONTENT,
    ConversationStep.WAITING_IMAGE,
    ConversationStep.WAITING_TAGS,
    ConversationStep.CONFIRMING,
)

NEXT_STEP = {
    ConversationStep.IDLE: ConversationStep.WAITING_TITLE,
    ConversationStep.WAITING_TITLE: ConversationStep.WAITING_CONTENT,
    ConversationStep.WAITING_CONTENT: ConversationStep.WAITING_IMAGE,
    ConversationStep.WAITING_IMAGE: ConversationStep.WAITING_TAGS,
    ConversationStep.WAITING_TAGS: ConversationStep.CONFIRMING,
    ConversationStep.CONFIRMING: ConversationStep.IDLE,
}

# Fields that must be filled while the conversation sits in a step.
REQUIRED_FIELDS = {
    ConversationStep.IDLE: frozenset(),
    ConversationStep.WAITING_TITLE: frozenset(),
    ConversationStep.WAITING_CONTENT: frozenset({"title"}),
    ConversationStep.WAITING_IMAGE: frozenset({"title", "content"}),
    ConversationStep.WAITING_TAGS: frozenset({"title", "content", "image"}),
    ConversationStep.CONFIRMING: frozenset({"title", "content", "image", "tags"}),
}

FIELD_ORDER = ("title", "content", "image", "tags")


def _field_present(data: PostData, field_name: str) -> bool:
    if field_name == "image":
        return bool(data.image_url)
    return bool(getattr(data, field_name))


class ConversationFlow:
    """Legal step graph and per-step data requirements."""

    def create_initial_state(self) -> ConversationState:
        """Create a fresh IDLE state."""
        return create_idle_state()

    def is_valid_transition(
        self, from_step: ConversationStep, to_step: ConversationStep
    ) -> bool:
        """Forward successor, or back to IDLE from any non-IDLE step."""
        if NEXT_STEP[from_step] is to_step:
            return True
        return to_step is ConversationStep.IDLE and from_step is not ConversationStep.IDLE

    def next_step(self, step: ConversationStep) -> ConversationStep:
        return NEXT_STEP[step]

    def required_fields(self, step: ConversationStep) -> frozenset[str]:
        return REQUIRED_FIELDS[step]

    def can_cancel(self, step: ConversationStep) -> bool:
        return step is not ConversationStep.IDLE

    def missing_fields(self, step: ConversationStep, data: PostData) -> list[str]:
        required = REQUIRED_FIELDS[step]
        return [name for name in FIELD_ORDER if name in required and not _field_present(data, name)]

    def validate_state_data(self, state: ConversationState) -> tuple[bool, list[str]]:
        """Check that a state holds every field its step requires."""
        missing = self.missing_fields(state.step, state.data)
        return not missing, missing

    def transition_to_next(
        self, state: ConversationState, **data_updates
    ) -> ConversationState:
        """Advance to the forward successor, merging data_updates."""
        return self.transition_to(state, NEXT_STEP[state.step], **data_updates)

    def transition_to(
        self,
        state: ConversationState,
        target: ConversationStep,
        **data_updates,
    ) -> ConversationState:
        """
        Move to target, merging data_updates into the post data.

        Entering IDLE always yields a fresh idle state; only the persistence
        version is carried over.

        Raises:
            TransitionError: If the edge is not in the step graph, or the
                merged data lacks a field the target step requires.
        """
        if not self.is_valid_transition(state.step, target):
            raise TransitionError(
                f"Invalid transition from {state.step.value} to {target.value}"
            )

        if target is ConversationStep.IDLE:
            return create_idle_state(version=state.version)

        data = replace(state.data, **data_updates)
        data.tags = list(data.tags)

        missing = self.missing_fields(target, data)
        if missing:
            raise TransitionError(
                f"Cannot enter {target.value}: missing {', '.join(missing)}"
            )

        return replace(
            state,
            step=target,
            data=data,
            updated_at=datetime.now(timezone.utc),
        )

    def is_conversation_complete(self, state: ConversationState) -> bool:
        """True when a CONFIRMING state holds a publishable post."""
        return (
            state.step is ConversationStep.CONFIRMING
            and self.validate_state_data(state)[0]
        )

    def progress_percentage(self, step: ConversationStep) -> int:
        """Position of step in the flow, as a rounded percentage."""
        index = FLOW_ORDER.index(step)
        return round(index / (len(FLOW_ORDER) - 1) * 100)
