"""Participant study session, passed explicitly to whatever needs it.

Holds the identifiers, flow position and questionnaire answers for one
participant (or one researcher walking through the flow in researcher
mode).  Steps only move forward one at a time; researcher mode may jump
anywhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from studylab.errors import FlowError
from studylab.pipeline.snapshot import is_participant

logger = logging.getLogger(__name__)


class FlowStep(IntEnum):
    CONSENT = 0
    PARTICIPANT_ID = 1
    AUDIO_TEST = 2
    CONVERSATION = 3
    QUESTIONNAIRES = 4
    FEEDBACK = 5
    COMPLETE = 6

    @property
    def is_final(self) -> bool:
        return self is FlowStep.COMPLETE


# Steps reachable without a validated session token.
OPEN_STEPS = frozenset({FlowStep.CONSENT, FlowStep.PARTICIPANT_ID, FlowStep.COMPLETE})

QUESTIONNAIRES = ("pets", "tias", "formality", "intention", "feedback")


@dataclass
class StudySession:
    participant_id: str | None = None
    call_id: str | None = None
    session_token: str | None = None
    step: FlowStep = FlowStep.CONSENT
    researcher_mode: bool = False
    assistant_type: str | None = None
    consented: bool = False
    answers: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def is_participant(self) -> bool:
        return is_participant(self.participant_id, self.call_id)

    def give_consent(self) -> None:
        self.consented = True
        self.advance()

    def advance(self) -> FlowStep:
        """Move to the next step and return it."""
        if self.step.is_final:
            raise FlowError("Session is already complete")
        if self.step is FlowStep.CONSENT and not (self.consented or self.researcher_mode):
            raise FlowError("Consent is required before continuing")
        if self.step is FlowStep.PARTICIPANT_ID and not self.participant_id:
            raise FlowError("A participant id is required before continuing")
        self.step = FlowStep(self.step + 1)
        logger.debug("[session] %s -> %s", self.participant_id, self.step.name)
        return self.step

    def jump_to(self, step: FlowStep) -> None:
        """Researcher-mode navigation to any step."""
        if not self.researcher_mode:
            raise FlowError("Only researcher mode may jump between steps")
        self.step = step

    def can_access(self, step: FlowStep) -> bool:
        """Whether ``step`` may be shown for this session right now."""
        if self.researcher_mode:
            return True
        if step > self.step:
            return False
        return step in OPEN_STEPS or bool(self.session_token)

    def record_call(self, call_id: str) -> None:
        self.call_id = call_id

    def record_answers(self, questionnaire: str, answers: dict[str, Any]) -> None:
        if questionnaire not in QUESTIONNAIRES:
            raise FlowError(f"Unknown questionnaire {questionnaire!r}")
        self.answers[questionnaire] = dict(answers)

    def start_researcher_session(self, participant_id: str, call_id: str, session_token: str) -> None:
        """Replace the identifiers with a fresh researcher test session."""
        self.researcher_mode = True
        self.participant_id = participant_id
        self.call_id = call_id
        self.session_token = session_token
        self.step = FlowStep.CONSENT
        self.answers.clear()

    def reset(self) -> None:
        self.participant_id = None
        self.call_id = None
        self.session_token = None
        self.step = FlowStep.CONSENT
        self.consented = False
        self.answers.clear()

    def to_dict(self) -> dict[str, Any]:
        return {
            "participant_id": self.participant_id,
            "call_id": self.call_id,
            "step": self.step.name.lower(),
            "researcher_mode": self.researcher_mode,
            "assistant_type": self.assistant_type,
            "consented": self.consented,
            "answers": self.answers,
        }
