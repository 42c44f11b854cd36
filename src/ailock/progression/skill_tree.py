"""Static skill tree: 12 skills across 4 branches.

Stored as a flat dict keyed by skill id so prerequisite checks are plain
set-membership lookups. The graph is acyclic by construction.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

BRANCHES: tuple[str, ...] = ("research", "collaboration", "efficiency", "convenience")

BRANCH_NAMES: dict[str, str] = {
    "research": "Research",
    "collaboration": "Collaboration",
    "efficiency": "Efficiency",
    "convenience": "Convenience",
}

BRANCH_COLORS: dict[str, str] = {
    "research": "#3b82f6",
    "collaboration": "#10b981",
    "efficiency": "#f59e0b",
    "convenience": "#8b5cf6",
}

NO_EFFECT = "No effect at this level."
UNKNOWN_EFFECT = "Unknown skill effect."


@dataclass(frozen=True)
class SkillDefinition:
    id: str
    name: str
    description: str
    branch: str
    prerequisites: tuple[str, ...]
    effects: tuple[str, ...]

    @property
    def max_level(self) -> int:
        return len(self.effects)


_SKILLS: list[SkillDefinition] = [
    # Research
    SkillDefinition(
        id="semantic_search",
        name="Semantic Search",
        description="Improves the relevance and accuracy of all searches.",
        branch="research",
        prerequisites=(),
        effects=(
            "Basic keyword and category matching.",
            "Enabled semantic understanding for deeper context.",
            "AI predicts search intent for hyper-relevant results.",
        ),
    ),
    SkillDefinition(
        id="deep_research",
        name="Deep Research",
        description="Performs comprehensive analysis using multiple data sources.",
        branch="research",
        prerequisites=("semantic_search",),
        effects=(
            "Analyzes up to 3 external sources for reports.",
            "Cross-references up to 10 sources and identifies patterns.",
            "Generates detailed reports with cited sources and novel insights.",
        ),
    ),
    SkillDefinition(
        id="proactive_analysis",
        name="Proactive Analysis",
        description="Ailock anticipates your needs and suggests relevant information.",
        branch="research",
        prerequisites=("deep_research",),
        effects=(
            "Provides basic suggestions based on current chat context.",
            "Sends notifications about relevant new opportunities.",
            "Delivers predictive trend analysis for your field.",
        ),
    ),
    # Collaboration
    SkillDefinition(
        id="chain_builder",
        name="Chain Builder",
        description="Breaks down complex user requests into manageable project steps.",
        branch="collaboration",
        prerequisites=(),
        effects=(
            "Decomposes requests into a simple checklist (3-5 steps).",
            "Creates detailed project plans with dependencies.",
            "Dynamically optimizes project plans based on progress.",
        ),
    ),
    SkillDefinition(
        id="cultural_adaptation",
        name="Cultural Adaptation",
        description="Adapts communication style for effective international collaboration.",
        branch="collaboration",
        prerequisites=("chain_builder",),
        effects=(
            "Adjusts tone and formality for different regions.",
            "Recognizes and adapts to cultural nuances in communication.",
            "Provides real-time cultural intelligence and advice.",
        ),
    ),
    SkillDefinition(
        id="predictive_matching",
        name="Predictive Matching",
        description="Uses advanced algorithms to find your perfect collaborator.",
        branch="collaboration",
        prerequisites=("cultural_adaptation",),
        effects=(
            "Calculates a basic compatibility score for potential partners.",
            "Multi-dimensional matching based on skills, work style, and personality.",
            "Models the predicted success probability for each potential collaboration.",
        ),
    ),
    # Efficiency
    SkillDefinition(
        id="cost_optimization",
        name="Cost Optimization",
        description="Smartly selects AI models to optimize cost and performance.",
        branch="efficiency",
        prerequisites=(),
        effects=(
            "Switches to cheaper models for simple, non-critical tasks.",
            "Dynamically balances cost vs. performance based on task complexity.",
            "Predictively models API costs and suggests budget-saving strategies.",
        ),
    ),
    SkillDefinition(
        id="result_caching",
        name="Result Caching",
        description="Intelligently caches results to speed up repeated queries.",
        branch="efficiency",
        prerequisites=("cost_optimization",),
        effects=(
            "Caches identical queries for 1 hour.",
            "Smarter cache invalidation and caches similar queries.",
            "Predictively pre-computes and caches common follow-up queries.",
        ),
    ),
    SkillDefinition(
        id="autonomous_actions",
        name="Autonomous Actions",
        description="Authorizes Ailock to execute routine tasks without intervention.",
        branch="efficiency",
        prerequisites=("result_caching",),
        effects=(
            "Can perform simple, pre-approved actions (e.g., save intent).",
            "Handles multi-step autonomous workflows that you configure.",
            "Learns from your behavior to suggest new automations.",
        ),
    ),
    # Convenience
    SkillDefinition(
        id="multi_format_output",
        name="Multi-Format Output",
        description="Generates content in various formats like cards, lists, and tables.",
        branch="convenience",
        prerequisites=(),
        effects=(
            "Can format responses as structured lists or text.",
            "Generates rich formats like summary cards and comparison tables.",
            "Creates interactive elements and data visualizations in chat.",
        ),
    ),
    SkillDefinition(
        id="document_generation",
        name="Document Generation",
        description="Creates professional documents from your conversations.",
        branch="convenience",
        prerequisites=("multi_format_output",),
        effects=(
            "Exports chat summary to a formatted text document.",
            "Generates structured reports (e.g., project proposals) in PDF format.",
            "Creates interactive slide decks from project plans.",
        ),
    ),
    SkillDefinition(
        id="media_creation",
        name="Media Creation",
        description="Generates images, diagrams, and other media to visualize ideas.",
        branch="convenience",
        prerequisites=("document_generation",),
        effects=(
            "Generates simple diagrams (e.g., Mermaid.js flowcharts).",
            "Creates custom charts and infographics based on data.",
            "Generates illustrative images for concepts using DALL-E or similar.",
        ),
    ),
]

SKILL_TREE: dict[str, SkillDefinition] = {s.id: s for s in _SKILLS}


def get_skill(skill_id: str) -> SkillDefinition | None:
    return SKILL_TREE.get(skill_id)


def get_skills_by_branch(branch: str) -> list[SkillDefinition]:
    return [s for s in SKILL_TREE.values() if s.branch == branch]


def get_skill_prerequisites(skill_id: str) -> tuple[str, ...]:
    skill = SKILL_TREE.get(skill_id)
    return skill.prerequisites if skill else ()


def can_unlock_skill(skill_id: str, unlocked_skill_ids: Iterable[str]) -> bool:
    """True iff every prerequisite of `skill_id` is already unlocked.

    Unknown skill ids (and prerequisites that point at unknown ids) are never
    unlockable.
    """
    skill = SKILL_TREE.get(skill_id)
    if skill is None:
        return False
    unlocked = set(unlocked_skill_ids)
    return all(p in SKILL_TREE and p in unlocked for p in skill.prerequisites)


def get_skill_effect(skill_id: str, level: int) -> str:
    """Effect text for `level`, capped at the highest defined level."""
    skill = SKILL_TREE.get(skill_id)
    if skill is None:
        return UNKNOWN_EFFECT
    if level < 1:
        return NO_EFFECT
    return skill.effects[min(level, skill.max_level) - 1]
