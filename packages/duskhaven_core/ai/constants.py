"""Relationship and goal thresholds shared by memory, relationships and goals.

All relationship scores live on one scale: friendship and trust in [-100, 100],
hostility and fear in [0, 100].
"""

from __future__ import annotations

SCORE_MIN = -100.0
SCORE_MAX = 100.0

ENEMY_HOSTILITY = 30.0
FRIEND_FRIENDSHIP = 20.0
CLOSE_FRIEND_FRIENDSHIP = 50.0
LOVER_FRIENDSHIP = 80.0
LOVER_TRUST = 60.0
ALLY_FRIENDSHIP = FRIEND_FRIENDSHIP

DEFAULT_RECENCY_HALF_LIFE_HOURS = 168.0
DEFAULT_RETENTION_HOURS = 720
DEFAULT_MAX_MEMORY_EVENTS = 200
IMPORTANT_EVENT = 0.7

REVENGE_HOSTILITY = ENEMY_HOSTILITY
REVENGE_VENGEFULNESS_FLOOR = 0.4
MAX_REVENGE_GOALS = 2

LEADER_AMBITION = 0.7
LEADER_SOCIABILITY = 0.6
LEADER_MIN_BONDS = 2
LEADER_BOND_FRIENDSHIP = 12.0
FOLLOWER_LOYALTY = 0.6
FOLLOWER_FRIENDSHIP = 25.0
INFLUENCE_GANG_SIZE = 3

WEALTH_GOAL_GOLD = 5000
WEAPON_BASE_COST = 100
HEAL_TRIGGER_RATIO = 0.3
HEAL_DONE_RATIO = 0.8
RULER_MIN_LEVEL = 10
ELITE_LEVEL = 15
