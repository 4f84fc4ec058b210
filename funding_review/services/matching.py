"""Evaluator/proposal match scoring with conflict-of-interest detection.

Everything here is read-only. `load_match_context` gathers the shared inputs
in a handful of queries, after which `compute_match_cell` is a pure function
that can run across a whole proposals × evaluators cross-product.
"""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import String, cast, or_
from sqlmodel import col, select

from funding_review.core.config import settings
from funding_review.core.logging import get_logger
from funding_review.models.assignments import ACTIVE_STATUSES, Assignment
from funding_review.models.calls import Call
from funding_review.models.evaluator_profiles import EvaluatorProfile
from funding_review.models.proposals import Proposal
from funding_review.services.directory import active_workloads, capacity_for

if TYPE_CHECKING:
    from collections import Counter
    from collections.abc import Iterable
    from datetime import datetime

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)

SEVERITY_NONE = "none"
SEVERITY_ADVISORY = "advisory"
SEVERITY_BLOCKING = "blocking"
_SEVERITY_RANK = {SEVERITY_NONE: 0, SEVERITY_ADVISORY: 1, SEVERITY_BLOCKING: 2}

RULE_AUTHOR = "author"
RULE_DECLARED_COI = "declared_coi"
RULE_SAME_DEPARTMENT = "same_department"
RULE_SAME_CAMPUS = "same_campus"
RULE_PRIOR_COLLABORATION = "prior_collaboration"

ALWAYS_BLOCKING_RULES = frozenset({RULE_AUTHOR, RULE_DECLARED_COI})
DEFAULT_ADVISORY_RULES = frozenset({RULE_SAME_DEPARTMENT, RULE_PRIOR_COLLABORATION})
OPT_IN_RULES = frozenset({RULE_SAME_CAMPUS})
HARD_POLICY_PREFIX = "hard:"
_WORD_RE = re.compile(r"[a-z0-9]+")

_RULE_REASONS = {
    RULE_AUTHOR: "Evaluator is an author of this proposal",
    RULE_DECLARED_COI: "Evaluator declared a conflict of interest",
    RULE_SAME_DEPARTMENT: "Same department as the proposal",
    RULE_SAME_CAMPUS: "Same campus as a proposal author",
    RULE_PRIOR_COLLABORATION: "Has co-authored with a proposal author",
}


@dataclass(frozen=True)
class ConflictPolicy:
    """Conflict rules enabled for a call and the subset escalated to blocking."""

    enabled: frozenset[str]
    hard: frozenset[str]

    def severity_of(self, rule: str) -> str:
        if rule in ALWAYS_BLOCKING_RULES or rule in self.hard:
            return SEVERITY_BLOCKING
        return SEVERITY_ADVISORY


@dataclass(frozen=True)
class ConflictFlag:
    rule: str
    severity: str
    reason: str


@dataclass
class MatchContext:
    """Shared inputs for computing match cells."""

    workloads: Counter[UUID]
    policies: dict[UUID, ConflictPolicy] = field(default_factory=dict)
    declared_coi: set[tuple[UUID, UUID]] = field(default_factory=set)
    collaborators: dict[str, set[str]] = field(default_factory=dict)
    author_campuses: dict[str, str] = field(default_factory=dict)
    active_assignments: dict[tuple[UUID, UUID], Assignment] = field(default_factory=dict)
    as_of: datetime | None = None


@dataclass(frozen=True)
class MatchCell:
    """Ephemeral fit of one evaluator for one proposal."""

    proposal_id: UUID
    evaluator_id: UUID
    match_score: float
    expertise_score: float
    availability_score: float
    conflict_flags: list[str]
    conflict_severity: str
    reasoning: str
    available: bool
    assignable: bool
    stale: bool
    assignment_id: UUID | None = None
    assignment_status: str | None = None


def parse_conflict_policies(policies: Iterable[str]) -> ConflictPolicy:
    """Turn a call's policy strings into enabled and hard rule sets.

    A bare rule name enables it as advisory; `hard:<rule>` enables it as
    blocking. Unknown rules are ignored.
    """
    known = DEFAULT_ADVISORY_RULES | OPT_IN_RULES
    enabled = set(DEFAULT_ADVISORY_RULES)
    hard: set[str] = set()
    for raw in policies:
        text = raw.strip().lower()
        is_hard = text.startswith(HARD_POLICY_PREFIX)
        rule = text.removeprefix(HARD_POLICY_PREFIX).strip()
        if rule not in known:
            logger.debug("matching.policy.unknown policy=%s", raw)
            continue
        enabled.add(rule)
        if is_hard:
            hard.add(rule)
    return ConflictPolicy(enabled=frozenset(enabled), hard=frozenset(hard))


def _normalize_tag(value: str | None) -> str:
    return (value or "").strip().lower()


def proposal_tags(proposal: Proposal) -> list[str]:
    tags = [_normalize_tag(keyword) for keyword in proposal.keywords]
    tags.append(_normalize_tag(proposal.project_type))
    return sorted({tag for tag in tags if tag})


def evaluator_tags(profile: EvaluatorProfile) -> list[str]:
    tags = [_normalize_tag(area) for area in profile.expertise]
    tags.append(_normalize_tag(profile.department))
    return sorted({tag for tag in tags if tag})


def _tag_words(tag: str) -> frozenset[str]:
    return frozenset(_WORD_RE.findall(tag))


def _tags_match(left: str, right: str) -> bool:
    """Whole-tag match, or every word of one tag appears as a word of the other."""
    if left == right:
        return True
    left_words, right_words = _tag_words(left), _tag_words(right)
    if not left_words or not right_words:
        return False
    return left_words <= right_words or right_words <= left_words


def expertise_score(profile: EvaluatorProfile, proposal: Proposal) -> tuple[float, list[str]]:
    """Percentage of proposal tags covered by the evaluator, floored at the baseline."""
    wanted = proposal_tags(proposal)
    offered = evaluator_tags(profile)
    matched = [tag for tag in wanted if any(_tags_match(tag, have) for have in offered)]
    if not wanted:
        return settings.expertise_baseline_score, []
    score = len(matched) / len(wanted) * 100
    return round(max(settings.expertise_baseline_score, score), 2), matched


def detect_conflicts(
    profile: EvaluatorProfile,
    proposal: Proposal,
    *,
    policy: ConflictPolicy,
    context: MatchContext,
) -> list[ConflictFlag]:
    """List every conflict rule that fires for the pair."""
    evaluator_key = str(profile.id)
    authors = set(proposal.author_ids)
    fired: list[str] = []

    if evaluator_key in authors:
        fired.append(RULE_AUTHOR)
    if (proposal.id, profile.id) in context.declared_coi:
        fired.append(RULE_DECLARED_COI)
    if (
        RULE_SAME_DEPARTMENT in policy.enabled
        and _normalize_tag(profile.department)
        and _normalize_tag(profile.department) == _normalize_tag(proposal.department)
    ):
        fired.append(RULE_SAME_DEPARTMENT)
    if RULE_SAME_CAMPUS in policy.enabled and _normalize_tag(profile.campus):
        campus = _normalize_tag(profile.campus)
        if any(
            _normalize_tag(context.author_campuses.get(author)) == campus
            for author in authors
            if author != evaluator_key
        ):
            fired.append(RULE_SAME_CAMPUS)
    if RULE_PRIOR_COLLABORATION in policy.enabled and RULE_AUTHOR not in fired:
        if any(evaluator_key in context.collaborators.get(author, set()) for author in authors):
            fired.append(RULE_PRIOR_COLLABORATION)

    return [
        ConflictFlag(rule=rule, severity=policy.severity_of(rule), reason=_RULE_REASONS[rule])
        for rule in fired
    ]


def conflict_severity(flags: Iterable[ConflictFlag]) -> str:
    severity = SEVERITY_NONE
    for flag in flags:
        if _SEVERITY_RANK[flag.severity] > _SEVERITY_RANK[severity]:
            severity = flag.severity
    return severity


def availability(load: int, capacity: int) -> tuple[bool, float]:
    """Whether another assignment fits, and remaining headroom as 0-100."""
    if capacity <= 0:
        return False, 0.0
    headroom = max(0.0, (capacity - load) / capacity * 100)
    return load < capacity, round(headroom, 2)


def blend_match_score(
    *,
    expertise: float,
    headroom: float,
    available: bool,
    advisory_count: int,
) -> float:
    weight = settings.match_expertise_weight
    score = weight * expertise + (1 - weight) * headroom
    if not available:
        score -= settings.unavailable_penalty
    score -= settings.advisory_conflict_penalty * advisory_count
    return round(min(100.0, max(0.0, score)), 2)


def _is_stale(profile: EvaluatorProfile, proposal: Proposal, as_of: datetime | None) -> bool:
    if as_of is None:
        return False
    touched = [
        moment
        for moment in (profile.last_assignment_at, proposal.last_assignment_at)
        if moment is not None
    ]
    return any(moment > as_of for moment in touched)


def compute_match_cell(
    proposal: Proposal,
    profile: EvaluatorProfile,
    *,
    context: MatchContext,
) -> MatchCell:
    """Score one pair. Blocking conflicts leave the score visible but unassignable."""
    policy = context.policies.get(proposal.call_id) or parse_conflict_policies([])
    flags = detect_conflicts(profile, proposal, policy=policy, context=context)
    severity = conflict_severity(flags)
    load = context.workloads[profile.id]
    capacity = capacity_for(profile)
    available, headroom = availability(load, capacity)
    expertise, matched = expertise_score(profile, proposal)
    advisory_count = sum(1 for flag in flags if flag.severity == SEVERITY_ADVISORY)
    score = blend_match_score(
        expertise=expertise,
        headroom=headroom,
        available=available,
        advisory_count=advisory_count,
    )
    existing = context.active_assignments.get((proposal.id, profile.id))

    parts = [
        f"Expertise {expertise:g}%"
        + (f" ({', '.join(matched)})" if matched else " (baseline, no overlap)"),
        f"load {load}/{capacity}" + ("" if available else " (at capacity)"),
    ]
    if flags:
        parts.append(
            "; ".join(f"{flag.severity}: {flag.reason.lower()}" for flag in flags),
        )
    if existing is not None:
        parts.append(f"already {existing.status}")

    return MatchCell(
        proposal_id=proposal.id,
        evaluator_id=profile.id,
        match_score=score,
        expertise_score=expertise,
        availability_score=headroom,
        conflict_flags=[flag.rule for flag in flags],
        conflict_severity=severity,
        reasoning="; ".join(parts),
        available=available,
        assignable=severity != SEVERITY_BLOCKING and available and existing is None,
        stale=_is_stale(profile, proposal, context.as_of),
        assignment_id=existing.id if existing is not None else None,
        assignment_status=existing.status if existing is not None else None,
    )


def build_collaboration_index(author_lists: Iterable[list[str]]) -> dict[str, set[str]]:
    """Map each author to everyone they share a proposal with."""
    index: dict[str, set[str]] = defaultdict(set)
    for authors in author_lists:
        unique = set(authors)
        for author in unique:
            index[author].update(unique - {author})
    return dict(index)


def _as_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None


async def _coauthor_lists(session: AsyncSession, authors: set[str]) -> list[list[str]]:
    """Author lists of every proposal sharing at least one author with `authors`."""
    if not authors:
        return []
    # author_ids is stored as JSON text; match each id as a quoted array element.
    author_text = cast(col(Proposal.author_ids), String)
    statement = select(Proposal.author_ids).where(
        or_(*(author_text.contains(f'"{author}"') for author in sorted(authors))),
    )
    rows = await session.exec(statement)
    return [list(row) for row in rows if row and authors.intersection(row)]


async def load_match_context(
    session: AsyncSession,
    *,
    proposals: list[Proposal],
    evaluators: list[EvaluatorProfile],
    as_of: datetime | None = None,
) -> MatchContext:
    """Gather workloads, policies, COI declarations and co-authorship for a batch."""
    proposal_ids = [proposal.id for proposal in proposals]
    evaluator_ids = [profile.id for profile in evaluators]

    workloads = await active_workloads(session, evaluator_ids)
    calls = await Call.objects.by_ids({proposal.call_id for proposal in proposals}).all(session)
    policies = {call.id: parse_conflict_policies(call.conflict_policies) for call in calls}

    pair_rows: list[Assignment] = []
    if proposal_ids and evaluator_ids:
        pair_rows = await Assignment.objects.filter(
            col(Assignment.proposal_id).in_(proposal_ids),
            col(Assignment.evaluator_id).in_(evaluator_ids),
        ).all(session)
    declared = {(row.proposal_id, row.evaluator_id) for row in pair_rows if row.coi_declared}
    active = {
        (row.proposal_id, row.evaluator_id): row
        for row in pair_rows
        if row.status in ACTIVE_STATUSES
    }

    batch_authors = {author for proposal in proposals for author in proposal.author_ids}
    author_lists = await _coauthor_lists(session, batch_authors)
    author_ids = {parsed for author in batch_authors if (parsed := _as_uuid(author)) is not None}
    author_profiles = await EvaluatorProfile.objects.by_ids(author_ids).all(session)

    return MatchContext(
        workloads=workloads,
        policies=policies,
        declared_coi=declared,
        collaborators=build_collaboration_index(author_lists),
        author_campuses={
            str(profile.id): profile.campus for profile in author_profiles if profile.campus
        },
        active_assignments=active,
        as_of=as_of,
    )


async def evaluate_pair(
    session: AsyncSession,
    proposal: Proposal,
    profile: EvaluatorProfile,
) -> MatchCell:
    """Fresh match cell for a single pair, as used by assignment admission."""
    context = await load_match_context(session, proposals=[proposal], evaluators=[profile])
    return compute_match_cell(proposal, profile, context=context)
