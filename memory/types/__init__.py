"""Typed memory payload models."""

from memory.types.document import MemoryDocument, SummaryCache
from memory.types.episodic import Episode
from memory.types.goals import ContextualReminder, Goal
from memory.types.mood import MoodEntry, MoodJournal, MoodPattern
from memory.types.relationship import (
    InsideJoke,
    Milestone,
    RelationshipDepth,
    SignificantMoment,
)
from memory.types.self_model import PersonalityTrait, TraitSignal, TraitSnapshot
from memory.types.semantic import MemoryRecord
from memory.types.social import Person, RelationshipEdge, SocialGraph

__all__ = [
    "ContextualReminder",
    "Episode",
    "Goal",
    "InsideJoke",
    "MemoryDocument",
    "MemoryRecord",
    "Milestone",
    "MoodEntry",
    "MoodJournal",
    "MoodPattern",
    "Person",
    "PersonalityTrait",
    "RelationshipDepth",
    "RelationshipEdge",
    "SignificantMoment",
    "SocialGraph",
    "SummaryCache",
    "TraitSignal",
    "TraitSnapshot",
]
