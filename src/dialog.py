"""
Renewal dialog: a four-step flow that collects a policy number and a
birth year, then looks up the policy's renewal date.

Steps, in order:

1. initialize state     load the session's RenewalState, create it if absent
2. policy number        skip to step 4 when everything is known, otherwise
                        prompt for the policy number if it is missing
3. birth year           store the policy number just entered, prompt for
                        the birth year if it is missing
4. finalize             store the birth year just entered, run the
                        renewal pipeline, report the date, end the flow

A prompt suspends the flow until the next turn. The id of the pending
prompt is saved in the session store; on the next turn RESUME_TABLE maps
it to its validator and to the step that receives the accepted value.
A rejected reply repeats the prompt and the flow stays where it is.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum

from src.conversation_state import RenewalState, is_collected
from src.exceptions import StateCorruptionError
from src.observability import trace_span
from src.orchestrator_client import RenewalPipeline
from src.session_store import SessionStore
from src.validators import PromptValidation, validate_birth_year, validate_policy_number

logger = logging.getLogger(__name__)

POLICY_NUMBER_PROMPT = "policy_number_prompt"
BIRTH_YEAR_PROMPT = "birth_year_prompt"

INITIALIZE_STEP = 0
POLICY_NUMBER_STEP = 1
BIRTH_YEAR_STEP = 2
FINALIZE_STEP = 3

ERROR_MESSAGE = (
    "I apologize, but I encountered an error processing your request. "
    "Please try again later."
)


class TurnStatus(str, Enum):
    PROMPTED = "prompted"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class Prompt:
    text: str
    validator: Callable[[str | None], PromptValidation]
    resume_step: int


RESUME_TABLE: dict[str, Prompt] = {
    POLICY_NUMBER_PROMPT: Prompt(
        text="What's your 5 digit policy number?",
        validator=validate_policy_number,
        resume_step=BIRTH_YEAR_STEP,
    ),
    BIRTH_YEAR_PROMPT: Prompt(
        text="What is your birth year?",
        validator=validate_birth_year,
        resume_step=FINALIZE_STEP,
    ),
}


@dataclass
class StepContext:
    """
    Per-turn view handed to each step. Never persisted.

    state is the session's RenewalState, loaded once when the turn starts;
    steps change it in place and write it back through the store.
    """

    session_id: str
    index: int
    result: str | None = None
    options: RenewalState | None = None
    messages: list[str] = field(default_factory=list)
    state: RenewalState | None = None

    def send(self, text: str) -> None:
        self.messages.append(text)


@dataclass(frozen=True)
class StepOutcome:
    next_step: int | None = None
    prompt_id: str | None = None
    ended: bool = False


@dataclass
class TurnResult:
    status: TurnStatus
    messages: list[str]
    awaiting: str | None = None


def capitalize_first(value: str) -> str:
    """Upper-case the first character only; the rest is kept as typed."""
    return value[0].upper() + value[1:]


class RenewalDialog:
    """
    Drives one renewal conversation per session, one turn at a time.

    Turns for the same session must not run concurrently; see SessionStore.
    """

    def __init__(self, store: SessionStore, pipeline: RenewalPipeline):
        self.store = store
        self.pipeline = pipeline
        self.steps: list[Callable[[StepContext], StepOutcome]] = [
            self._initialize_state,
            self._prompt_for_policy_number,
            self._prompt_for_birth_year,
            self._finalize_and_renew,
        ]

    def run_turn(
        self, session_id: str, text: str | None, options: RenewalState | None = None
    ) -> TurnResult:
        """
        Process one inbound message and return what to show the user.

        Args:
            session_id: Session identifier
            text: The user's raw message
            options: Optional values to seed a brand-new session's state

        Returns:
            TurnResult with the messages for the user and, when the flow is
            suspended, the id of the prompt it waits on
        """
        logger.info(f"Processing turn for session {session_id}")
        self.store.prune()

        with trace_span("dialog_turn", session=session_id):
            try:
                return self._run_turn(session_id, text, options)
            except Exception as e:
                logger.error(f"Error in renewal dialog: {str(e)}", exc_info=True)
                self.store.set_awaiting(session_id, None)
                return TurnResult(status=TurnStatus.ERROR, messages=[ERROR_MESSAGE])

    def _run_turn(
        self, session_id: str, text: str | None, options: RenewalState | None
    ) -> TurnResult:
        messages: list[str] = []
        awaiting = self.store.get_awaiting(session_id)

        if awaiting is not None:
            prompt = RESUME_TABLE[awaiting]
            validation = prompt.validator(text)
            if not validation.accepted:
                logger.info(f"Rejected reply to {awaiting} for session {session_id}")
                messages.append(validation.message)
                messages.append(prompt.text)
                return TurnResult(status=TurnStatus.PROMPTED, messages=messages, awaiting=awaiting)

            self.store.set_awaiting(session_id, None)
            index, result = prompt.resume_step, validation.value
        else:
            index, result = INITIALIZE_STEP, None

        context = StepContext(
            session_id=session_id,
            index=index,
            result=result,
            options=options,
            messages=messages,
            state=self.store.load_state(session_id),
        )
        while context.index < len(self.steps):
            outcome = self.steps[context.index](context)

            if outcome.prompt_id is not None:
                self.store.set_awaiting(session_id, outcome.prompt_id)
                messages.append(RESUME_TABLE[outcome.prompt_id].text)
                return TurnResult(
                    status=TurnStatus.PROMPTED, messages=messages, awaiting=outcome.prompt_id
                )

            if outcome.ended:
                break

            context.index = (
                outcome.next_step if outcome.next_step is not None else context.index + 1
            )
            context.result = None

        return TurnResult(status=TurnStatus.COMPLETED, messages=messages)

    @staticmethod
    def _require_state(context: StepContext) -> RenewalState:
        if context.state is None:
            raise StateCorruptionError(f"No renewal state stored for session {context.session_id}")
        return context.state

    # Steps

    def _initialize_state(self, context: StepContext) -> StepOutcome:
        if context.state is None:
            seeded = context.options if context.options is not None else RenewalState()
            context.state = replace(seeded)
            self.store.save_state(context.session_id, context.state)
        return StepOutcome()

    def _prompt_for_policy_number(self, context: StepContext) -> StepOutcome:
        state = self._require_state(context)

        if state.is_complete():
            return StepOutcome(next_step=FINALIZE_STEP)

        if not is_collected(state.policy_number):
            return StepOutcome(prompt_id=POLICY_NUMBER_PROMPT)
        return StepOutcome()

    def _prompt_for_birth_year(self, context: StepContext) -> StepOutcome:
        state = self._require_state(context)

        if not is_collected(state.policy_number) and is_collected(context.result):
            state.policy_number = capitalize_first(context.result)
            self.store.save_state(context.session_id, state)

        if not is_collected(state.birth_year):
            return StepOutcome(prompt_id=BIRTH_YEAR_PROMPT)
        return StepOutcome()

    def _finalize_and_renew(self, context: StepContext) -> StepOutcome:
        state = self._require_state(context)

        if not is_collected(state.birth_year) and is_collected(context.result):
            state.birth_year = capitalize_first(context.result)
            self.store.save_state(context.session_id, state)

        context.send(
            f"Getting policy renewal date for {state.policy_number} - {state.birth_year} "
            "from CRM.. Please wait..."
        )

        result = self.pipeline.run(state.policy_number or "")
        if not result.succeeded:
            logger.warning(
                f"Renewal lookup for session {context.session_id} ended without a date "
                f"(stage={result.failed_stage})"
            )

        context.send(
            f"Your renewal date for policy no {state.policy_number} is `{result.renewal_date}`"
        )
        return StepOutcome(ended=True)
