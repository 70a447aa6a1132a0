"""
Level Curve

Pure mapping between total XP and reader level.

Leveling Curve:
- Levels 1-10: fixed thresholds 0, 100, 300, 600, 1000, 1500, 2100, 2800, 3600, 4500
- Level 10+: flat 1000 XP per level, unbounded

Titles are named for levels 1-10; past that they become
"Grand Reader II", "Grand Reader III", ...
"""

from reading_journey.models.gamification import XPProgress

LEVEL_THRESHOLDS = (0, 100, 300, 600, 1000, 1500, 2100, 2800, 3600, 4500)
XP_PER_LEVEL_AFTER_10 = 1000
MAX_NAMED_LEVEL = len(LEVEL_THRESHOLDS)

LEVEL_NAMES = {
    1: "Bookworm Egg",
    2: "Page Turner",
    3: "Chapter Chaser",
    4: "Story Seeker",
    5: "Novel Navigator",
    6: "Tome Tracker",
    7: "Library Legend",
    8: "Bibliophile",
    9: "Literary Sage",
    10: "Grand Reader",
}

_ROMAN_NUMERALS = (
    (1000, "M"), (900, "CM"), (500, "D"), (400, "CD"),
    (100, "C"), (90, "XC"), (50, "L"), (40, "XL"),
    (10, "X"), (9, "IX"), (5, "V"), (4, "IV"), (1, "I"),
)


def level_for_xp(xp: int) -> int:
    """Level for a total XP amount (negative XP counts as level 1)"""
    cap = LEVEL_THRESHOLDS[-1]
    if xp >= cap:
        return MAX_NAMED_LEVEL + (xp - cap) // XP_PER_LEVEL_AFTER_10

    level = 1
    for index, threshold in enumerate(LEVEL_THRESHOLDS):
        if xp >= threshold:
            level = index + 1
    return level


def xp_floor_for_level(level: int) -> int:
    """Minimum total XP for a level; inverse of level_for_xp"""
    if level < 1:
        raise ValueError(f"level must be >= 1, got {level}")
    if level <= MAX_NAMED_LEVEL:
        return LEVEL_THRESHOLDS[level - 1]
    return LEVEL_THRESHOLDS[-1] + (level - MAX_NAMED_LEVEL) * XP_PER_LEVEL_AFTER_10


def xp_progress(xp: int) -> XPProgress:
    """
    Progress through the current level

    Returns:
        XPProgress(current=xp into level, required=size of level, percentage=0-100)
    """
    level = level_for_xp(xp)
    floor = xp_floor_for_level(level)
    required = xp_floor_for_level(level + 1) - floor
    current = max(0, xp - floor)
    # halves round up
    percentage = min(100, int(100 * current / required + 0.5))
    return XPProgress(current=current, required=required, percentage=percentage)


def to_roman(number: int) -> str:
    parts = []
    for value, numeral in _ROMAN_NUMERALS:
        while number >= value:
            parts.append(numeral)
            number -= value
    return "".join(parts)


def level_name(level: int) -> str:
    """Display title for a level"""
    if level <= MAX_NAMED_LEVEL:
        return LEVEL_NAMES.get(level, "Reader")
    return f"{LEVEL_NAMES[MAX_NAMED_LEVEL]} {to_roman(level - 9)}"
