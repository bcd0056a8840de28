"""Conflict decisions for skills whose install target already exists."""

from enum import Enum
from typing import Mapping, Optional


class Decision(str, Enum):
    """What to do with one skill whose target may already exist."""

    SKIP = "skip"
    OVERWRITE = "overwrite"


class ConflictPolicy(str, Enum):
    """Batch-wide default for every conflicting skill."""

    SKIP_ALL = "skipAll"
    OVERWRITE_ALL = "overwriteAll"


_POLICY_DECISIONS = {
    ConflictPolicy.SKIP_ALL: Decision.SKIP,
    ConflictPolicy.OVERWRITE_ALL: Decision.OVERWRITE,
}


class ConflictResolver:
    """Resolves ``(skill_name, target_exists)`` to a Decision.

    An explicit per-skill decision wins, then the batch policy; a target
    that does not exist yet is simply written. ``None`` means the skill is
    an unresolved conflict.
    """

    def __init__(
        self,
        decisions: Optional[Mapping[str, Decision]] = None,
        policy: Optional[ConflictPolicy] = None,
    ):
        self.decisions = {name: Decision(value) for name, value in (decisions or {}).items()}
        self.policy = ConflictPolicy(policy) if policy else None

    def explicit(self, skill_name: str) -> Optional[Decision]:
        return self.decisions.get(skill_name)

    def policy_default(self, target_exists: bool) -> Optional[Decision]:
        if not target_exists:
            return Decision.OVERWRITE
        if self.policy is None:
            return None
        return _POLICY_DECISIONS[self.policy]

    def __call__(self, skill_name: str, target_exists: bool) -> Optional[Decision]:
        return self.explicit(skill_name) or self.policy_default(target_exists)

    def is_conflict(self, skill_name: str, target_exists: bool) -> bool:
        """True if the target exists and nothing says what to do with it."""
        return target_exists and self(skill_name, target_exists) is None
