"""Per-group PlanBot state. Lives for the process only; nothing here is persisted."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from app.modules.planbot.lookup import Candidate


class SessionPhase(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    SELECTED = "selected"
    SCHEDULED = "scheduled"
    LOCKED = "locked"


class CandidateKind(str, Enum):
    PLACE = "place"
    MOVIE = "movie"


@dataclass
class PlanbotSession:
    results: List[Candidate] = field(default_factory=list)
    selected: Optional[Candidate] = None
    kind: CandidateKind = CandidateKind.PLACE
    # last phase that outlives the candidate list
    settled: SessionPhase = SessionPhase.IDLE

    @property
    def selection(self) -> Optional[Candidate]:
        """A selection without stored results counts as nothing selected."""
        return self.selected if self.results else None

    @property
    def phase(self) -> SessionPhase:
        if self.selection is not None:
            return SessionPhase.SELECTED
        if self.results:
            return SessionPhase.SEARCHING
        return self.settled

    def start_search(self, kind: CandidateKind, results: List[Candidate]) -> None:
        self.kind = kind
        self.results = list(results)
        self.selected = None

    def select(self, candidate: Optional[Candidate]) -> None:
        self.selected = candidate

    def settle(self, phase: SessionPhase) -> None:
        self.results = []
        self.selected = None
        self.settled = phase


class SessionStore:
    def __init__(self):
        self._sessions: Dict[str, PlanbotSession] = {}

    def get(self, group_id: str) -> PlanbotSession:
        session = self._sessions.get(group_id)
        if session is None:
            session = self._sessions[group_id] = PlanbotSession()
        return session

    def __contains__(self, group_id: str) -> bool:
        return group_id in self._sessions

    def clear(self, group_id: str) -> None:
        self._sessions.pop(group_id, None)
