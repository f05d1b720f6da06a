"""Rank ladder and team table.

A team is a contiguous band of rank levels sharing a badge prefix and numeric range.
All team/badge decisions go through ``team_for_level`` so promote, demote, hiring and
display formatting share one source of truth.
"""
from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from personnel.errors import RankBoundaryError

MIN_LEVEL = 1
MAX_LEVEL = 17

RANKS: Dict[int, str] = {
    1: 'Cadet',
    2: 'Junior Officer',
    3: 'Officer',
    4: 'Senior Officer',
    5: 'Corporal',
    6: 'Sergeant I',
    7: 'Sergeant II',
    8: 'Staff Sergeant',
    9: 'Lieutenant I',
    10: 'Lieutenant II',
    11: 'Captain',
    12: 'Major',
    13: 'Commander',
    14: 'Deputy Chief',
    15: 'Assistant Chief',
    16: 'Chief of Police',
    17: 'Commissioner',
}

BADGE_PATTERN = re.compile(r'^([A-Z]+)-(\d+)$')
DISPLAY_PREFIX_PATTERN = re.compile(r'^\[[A-Z]+-\d+\]\s*')


@dataclass(frozen=True)
class Team:
    name: str
    min_level: int
    max_level: int
    badge_prefix: str
    badge_min: int
    badge_max: int

    def contains_level(self, level: int) -> bool:
        return self.min_level <= level <= self.max_level

    def format_badge(self, number: int) -> str:
        return f"{self.badge_prefix}-{number:02d}"

    def badge_number(self, badge: str) -> Optional[int]:
        """Return the numeric part if ``badge`` belongs to this team's prefix, else None."""
        m = BADGE_PATTERN.match(badge or '')
        if not m or m.group(1) != self.badge_prefix:
            return None
        return int(m.group(2))

    def owns_badge(self, badge: str) -> bool:
        n = self.badge_number(badge)
        return n is not None and self.badge_min <= n <= self.badge_max


TEAMS: Tuple[Team, ...] = (
    Team('Green', 1, 5, 'G', 1, 99),
    Team('Silver', 6, 9, 'S', 1, 50),
    Team('Gold', 10, 12, 'GD', 1, 30),
    Team('Red', 13, 15, 'R', 1, 15),
    Team('White', 16, 17, 'W', 1, 5),
)

# Automatic uprank lock applied after an approved uprank, per team reached.
TEAM_LOCK_WEEKS: Dict[str, int] = {
    'Green': 1,
    'Silver': 2,
    'Gold': 4,
}


def team_for_level(level: int) -> Team:
    for team in TEAMS:
        if team.contains_level(level):
            return team
    raise RankBoundaryError(f'Rank level {level} outside {MIN_LEVEL}..{MAX_LEVEL}')


def team_by_name(name: str) -> Optional[Team]:
    for team in TEAMS:
        if team.name.lower() == (name or '').lower():
            return team
    return None


def team_for_badge(badge: str) -> Optional[Team]:
    m = BADGE_PATTERN.match(badge or '')
    if not m:
        return None
    for team in TEAMS:
        if team.badge_prefix == m.group(1):
            return team
    return None


def rank_name(level: int) -> str:
    if level not in RANKS:
        raise RankBoundaryError(f'Rank level {level} outside {MIN_LEVEL}..{MAX_LEVEL}')
    return RANKS[level]


def level_for_rank(name: str) -> Optional[int]:
    for level, rank in RANKS.items():
        if rank.lower() == (name or '').strip().lower():
            return level
    return None


__all__ = [
    'MIN_LEVEL', 'MAX_LEVEL', 'RANKS', 'TEAMS', 'TEAM_LOCK_WEEKS', 'Team', 'BADGE_PATTERN',
    'DISPLAY_PREFIX_PATTERN', 'team_for_level', 'team_by_name', 'team_for_badge', 'rank_name',
    'level_for_rank',
]
