"""
Skill alias map: bidirectional synonym lookup for skill names.

Loaded from a JSON object mapping a canonical skill to its aliases:

    {"javascript": ["js", "ecmascript"], "kubernetes": ["k8s"]}

Two skills match when they are equal, when either contains the other, or
when both belong to the same alias group.
"""

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from career_copilot.common.config import Config
from career_copilot.common.logger import get_logger


def normalize_skill(skill: str) -> str:
    return (skill or "").strip().lower()


class SkillAliasMap:
    """Groups of interchangeable skill names."""

    def __init__(self, aliases: Optional[Dict[str, List[str]]] = None):
        self._logger = get_logger(__name__, component="skills")
        self._group_of: Dict[str, int] = {}
        self._groups: List[Set[str]] = []
        if aliases:
            for canonical, variations in aliases.items():
                self.extend(canonical, variations)

    @classmethod
    def from_dict(cls, aliases: Dict[str, List[str]]) -> "SkillAliasMap":
        return cls(aliases)

    @classmethod
    def from_file(cls, path: Optional[Path] = None) -> "SkillAliasMap":
        """
        Load the map from a JSON file (defaults to Config.SKILL_ALIASES_PATH).

        Raises:
            FileNotFoundError: File missing
            json.JSONDecodeError: File is not valid JSON
            ValueError: Top level is not an object
        """
        alias_path = Path(path or Config.SKILL_ALIASES_PATH)
        with open(alias_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Skill aliases file must contain a JSON object: {alias_path}")

        alias_map = cls(data)
        alias_map._logger.info(f"Loaded {len(data)} skill alias groups from {alias_path}")
        return alias_map

    def extend(self, canonical: str, variations: Iterable[str]) -> None:
        """
        Add a group (or merge into the group `canonical` already belongs to).
        """
        names = {normalize_skill(canonical)} | {normalize_skill(v) for v in variations}
        names.discard("")
        if not names:
            return

        existing = {self._group_of[name] for name in names if name in self._group_of}
        if existing:
            target = min(existing)
            for index in existing - {target}:
                names |= self._groups[index]
                self._groups[index] = set()
            self._groups[target] |= names
        else:
            target = len(self._groups)
            self._groups.append(set(names))

        for name in self._groups[target]:
            self._group_of[name] = target

    def aliases_of(self, skill: str) -> Set[str]:
        """All names in the skill's group, including itself."""
        name = normalize_skill(skill)
        index = self._group_of.get(name)
        if index is None:
            return {name} if name else set()
        return set(self._groups[index])

    def are_similar(self, first: str, second: str) -> bool:
        """True for equal names or names in the same alias group."""
        a, b = normalize_skill(first), normalize_skill(second)
        if not a or not b:
            return False
        if a == b:
            return True
        index = self._group_of.get(a)
        return index is not None and index == self._group_of.get(b)

    def matches(self, skill: str, requirement: str) -> bool:
        """
        Loose match used by scoring and filtering: substring either way, or
        alias group membership.

        Example:
            >>> SkillAliasMap({"javascript": ["js"]}).matches("JS", "JavaScript")
            True
        """
        a, b = normalize_skill(skill), normalize_skill(requirement)
        if not a or not b:
            return False
        return a in b or b in a or self.are_similar(a, b)

    def any_match(self, skills: Iterable[str], requirement: str) -> bool:
        return any(self.matches(skill, requirement) for skill in skills)

    def __len__(self) -> int:
        return sum(1 for group in self._groups if group)


_default_alias_map: Optional[SkillAliasMap] = None


def get_default_alias_map() -> SkillAliasMap:
    """Process-wide map loaded lazily from Config.SKILL_ALIASES_PATH."""
    global _default_alias_map
    if _default_alias_map is None:
        _default_alias_map = SkillAliasMap.from_file()
    return _default_alias_map
