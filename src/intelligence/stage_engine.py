"""
Stage Transition Engine
Pure state machine over conversation stages.

Given the current stage and one inbound message it returns the next stage
and the side-effect triggers for that move. It holds no session state;
the orchestrator owns persistence and serialization per session.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from src.intelligence.extraction import ExtractionEngine, MessageSignals, RegexExtractionEngine
from src.models.lead import STAGE_ORDER, Stage


@dataclass(frozen=True)
class StageTriggers:
    should_trigger_research: bool = False
    should_send_follow_up: bool = False


@dataclass
class TransitionResult:
    """
    Outcome of evaluating one message.

    path lists every stage entered, in order (empty when the stage held).
    evaluated lists every stage whose rule looked at the message.
    """
    previous_stage: Stage
    next_stage: Stage
    triggers: StageTriggers = field(default_factory=StageTriggers)
    path: List[Stage] = field(default_factory=list)
    evaluated: List[Stage] = field(default_factory=list)
    signals: MessageSignals = field(default_factory=MessageSignals)

    @property
    def changed(self) -> bool:
        return self.next_stage != self.previous_stage


def _next(stage: Stage) -> Stage:
    return STAGE_ORDER[STAGE_ORDER.index(stage) + 1]


class StageTransitionEngine:
    """
    Fixed rule order, one step per rule:

        GREETING               -> NAME_COLLECTION        always
        NAME_COLLECTION        -> EMAIL_CAPTURE          a name was found
        EMAIL_CAPTURE          -> BACKGROUND_RESEARCH    an email was found (research trigger)
        BACKGROUND_RESEARCH    -> PROBLEM_DISCOVERY      always, then the same message
                                                         is evaluated by PROBLEM_DISCOVERY
        PROBLEM_DISCOVERY      -> SOLUTION_PRESENTATION  at least one pain point
        SOLUTION_PRESENTATION  -> CALL_TO_ACTION         interest expressed (follow-up trigger)
        CALL_TO_ACTION                                   absorbing
    """

    # Stages whose exit lets the same message fall through to the next rule
    PASS_THROUGH = frozenset({Stage.BACKGROUND_RESEARCH})

    def __init__(self, extraction: Optional[ExtractionEngine] = None):
        self.extraction = extraction or RegexExtractionEngine()
        self._rules: Dict[Stage, Callable[[MessageSignals], bool]] = {
            Stage.GREETING: lambda signals: True,
            Stage.NAME_COLLECTION: lambda signals: signals.name is not None,
            Stage.EMAIL_CAPTURE: lambda signals: signals.email is not None,
            Stage.BACKGROUND_RESEARCH: lambda signals: True,
            Stage.PROBLEM_DISCOVERY: lambda signals: len(signals.pain_points) > 0,
            Stage.SOLUTION_PRESENTATION: lambda signals: signals.interested,
        }

    def transition(
        self,
        stage: Stage,
        message: str,
        signals: Optional[MessageSignals] = None,
    ) -> TransitionResult:
        """
        Evaluate one message against the current stage.

        Args:
            stage: Stage the session is in when the message arrives
            message: Raw inbound text
            signals: Pre-computed extraction results (computed here when omitted)

        Returns:
            TransitionResult. next_stage is never earlier than stage.
        """
        if signals is None:
            signals = self.extraction.extract_signals(message)

        research = False
        follow_up = False
        path: List[Stage] = []
        evaluated: List[Stage] = []

        current = stage
        while True:
            evaluated.append(current)
            rule = self._rules.get(current)
            if rule is None or not rule(signals):
                break

            entered = _next(current)
            path.append(entered)

            if current == Stage.EMAIL_CAPTURE:
                research = True
            elif current == Stage.SOLUTION_PRESENTATION:
                follow_up = True

            if current not in self.PASS_THROUGH:
                break
            current = entered

        return TransitionResult(
            previous_stage=stage,
            next_stage=path[-1] if path else stage,
            triggers=StageTriggers(
                should_trigger_research=research,
                should_send_follow_up=follow_up,
            ),
            path=path,
            evaluated=evaluated,
            signals=signals,
        )
