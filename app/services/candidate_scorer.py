"""
Candidate Scorer

Scores a provider (0-100) against a booking request from four independently
capped components:
- Qualification match (max 40)
- Load balancing (max 30)
- Slot-fit efficiency (max 20)
- Experience (max 10)

Every component is a pure function so each weight can be tested on its own.
Qualification is a soft signal only; hard filters (approval, offered session
kind, difficulty, interview type, covering window) are applied before scoring.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from app.services.availability_store import WindowLike, excess_minutes, find_best_fit

logger = logging.getLogger(__name__)

QUALIFICATION_MAX = 40
QUALIFICATION_PARTIAL = 20
LOAD_MAX = 30
LOAD_PENALTY_PER_SESSION = 5
SLOT_FIT_MAX = 20
SLOT_FIT_PENALTY_PER_BLOCK = 4
SLOT_FIT_BLOCK_MINUTES = 30
EXPERIENCE_MAX = 10
EXPERIENCE_YEARS_PER_POINT = 2


@dataclass
class Candidate:
    """Provider being evaluated for one request"""

    provider_id: int
    qualification_tags: Sequence[str] = field(default_factory=list)
    years_of_experience: Optional[int] = None
    upcoming_sessions: int = 0
    windows: List[WindowLike] = field(default_factory=list)


@dataclass(frozen=True)
class ScoreRequest:
    """The parts of a booking request the scorer looks at"""

    start: datetime
    end: datetime
    target_tag: Optional[str] = None


@dataclass(frozen=True)
class ScoreBreakdown:
    qualification: int
    load: int
    slot_fit: int
    experience: int

    @property
    def total(self) -> int:
        return self.qualification + self.load + self.slot_fit + self.experience

    def to_dict(self) -> dict:
        return {
            "qualification": self.qualification,
            "load": self.load,
            "slot_fit": self.slot_fit,
            "experience": self.experience,
            "total": self.total,
        }


@dataclass(frozen=True)
class RankedCandidate:
    candidate: Candidate
    best_window: WindowLike
    breakdown: ScoreBreakdown

    @property
    def score(self) -> int:
        return self.breakdown.total


def _normalise(tag: str) -> str:
    return " ".join(tag.lower().split())


def qualification_score(target_tag: Optional[str], supported_tags: Iterable[str]) -> int:
    """
    40 for a full match, 20 for a partial match, else 0.

    Full: the target is a substring of a supported tag or the reverse.
    Partial: any single word of the target is a substring of a supported tag.
    Comparison is case-insensitive.
    """
    if not target_tag or not target_tag.strip():
        return 0
    target = _normalise(target_tag)
    supported = [_normalise(tag) for tag in supported_tags if tag and tag.strip()]

    for tag in supported:
        if target in tag or tag in target:
            return QUALIFICATION_MAX

    words = target.split()
    for tag in supported:
        if any(word in tag for word in words):
            return QUALIFICATION_PARTIAL

    return 0


def load_score(upcoming_sessions: int) -> int:
    return max(0, LOAD_MAX - LOAD_PENALTY_PER_SESSION * max(0, upcoming_sessions))


def slot_fit_score(waste_minutes: int) -> int:
    """20 for a perfect fit, minus 4 per full 30-minute block of waste"""
    blocks = max(0, waste_minutes) // SLOT_FIT_BLOCK_MINUTES
    return max(0, SLOT_FIT_MAX - SLOT_FIT_PENALTY_PER_BLOCK * blocks)


def experience_score(years_of_experience: Optional[int]) -> int:
    years = max(0, years_of_experience or 0)
    return min(EXPERIENCE_MAX, years // EXPERIENCE_YEARS_PER_POINT)


def evaluate(candidate: Candidate, request: ScoreRequest) -> Optional[RankedCandidate]:
    """Best-fit window and component scores, or None when no window covers the request"""
    best = find_best_fit(candidate.windows, request.start, request.end)
    if best is None:
        return None
    breakdown = ScoreBreakdown(
        qualification=qualification_score(request.target_tag, candidate.qualification_tags),
        load=load_score(candidate.upcoming_sessions),
        slot_fit=slot_fit_score(excess_minutes(best, request.start, request.end)),
        experience=experience_score(candidate.years_of_experience),
    )
    return RankedCandidate(candidate=candidate, best_window=best, breakdown=breakdown)


def score_breakdown(candidate: Candidate, request: ScoreRequest) -> Optional[ScoreBreakdown]:
    evaluated = evaluate(candidate, request)
    return evaluated.breakdown if evaluated else None


def score(candidate: Candidate, request: ScoreRequest) -> int:
    """Total score in [0, 100]; 0 when the candidate has no covering window"""
    breakdown = score_breakdown(candidate, request)
    return breakdown.total if breakdown else 0


def rank_candidates(candidates: Iterable[Candidate], request: ScoreRequest) -> List[RankedCandidate]:
    """
    Score and sort candidates best-first.

    Candidates without a covering window are dropped. Order: total score
    descending, then fewer upcoming sessions, then lower provider id.
    """
    ranked = [r for r in (evaluate(c, request) for c in candidates) if r is not None]

    ranked.sort(key=lambda r: (-r.score, r.candidate.upcoming_sessions, r.candidate.provider_id))

    if ranked:
        top = ranked[0]
        logger.debug(
            f"Ranked {len(ranked)} candidates; top provider {top.candidate.provider_id} "
            f"scored {top.score} {top.breakdown.to_dict()}"
        )
    return ranked
