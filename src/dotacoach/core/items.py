"""
Item catalogue and the allow-lists used by item-build and key-moment analysis.

Item ids follow the match provider's numbering. Allow-lists are matched by
substring against display names (or provider keys for purchases) so upgraded
variants such as "Swift Blink" count as blink items.
"""

from __future__ import annotations

ITEM_NAMES: dict[int, str] = {
    1: "Blink Dagger",
    2: "Blades of Attack",
    3: "Broadsword",
    4: "Chainmail",
    5: "Claymore",
    6: "Helm of Iron Will",
    7: "Javelin",
    8: "Mithril Hammer",
    9: "Platemail",
    10: "Quarterstaff",
    11: "Quelling Blade",
    12: "Ring of Protection",
    13: "Gauntlets of Strength",
    14: "Slippers of Agility",
    15: "Mantle of Intelligence",
    16: "Iron Branch",
    17: "Belt of Strength",
    18: "Band of Elvenskin",
    19: "Robe of the Magi",
    20: "Circlet",
    21: "Ogre Axe",
    22: "Blade of Alacrity",
    23: "Staff of Wizardry",
    25: "Ultimate Orb",
    26: "Gloves of Haste",
    27: "Morbid Mask",
    29: "Boots of Speed",
    30: "Gem of True Sight",
    31: "Cloak",
    32: "Talisman of Evasion",
    33: "Cheese",
    34: "Magic Stick",
    36: "Magic Wand",
    37: "Ghost Scepter",
    38: "Clarity",
    39: "Healing Salve",
    40: "Dust of Appearance",
    41: "Bottle",
    42: "Observer Ward",
    43: "Sentry Ward",
    44: "Tango",
    46: "Town Portal Scroll",
    48: "Boots of Travel",
    50: "Phase Boots",
    51: "Demon Edge",
    52: "Eaglesong",
    53: "Reaver",
    54: "Sacred Relic",
    56: "Ring of Regen",
    57: "Ring of Health",
    58: "Void Stone",
    59: "Mystic Staff",
    60: "Energy Booster",
    61: "Point Booster",
    62: "Vitality Booster",
    63: "Power Treads",
    65: "Hand of Midas",
    67: "Oblivion Staff",
    69: "Perseverance",
    73: "Bracer",
    75: "Wraith Band",
    77: "Null Talisman",
    79: "Mekansm",
    81: "Vladmir's Offering",
    86: "Buckler",
    88: "Ring of Basilius",
    90: "Pipe of Insight",
    92: "Urn of Shadows",
    94: "Headdress",
    96: "Scythe of Vyse",
    98: "Orchid Malevolence",
    100: "Eul's Scepter of Divinity",
    102: "Force Staff",
    104: "Dagon",
    106: "Necronomicon",
    108: "Aghanim's Scepter",
    110: "Refresher Orb",
    112: "Assault Cuirass",
    114: "Heart of Tarrasque",
    116: "Black King Bar",
    117: "Aegis of the Immortal",
    119: "Shiva's Guard",
    121: "Bloodstone",
    123: "Linken's Sphere",
    125: "Vanguard",
    127: "Blade Mail",
    129: "Soul Booster",
    131: "Hood of Defiance",
    133: "Divine Rapier",
    135: "Monkey King Bar",
    137: "Radiance",
    139: "Butterfly",
    141: "Daedalus",
    143: "Skull Basher",
    145: "Battle Fury",
    147: "Manta Style",
    149: "Crystalys",
    151: "Armlet of Mordiggian",
    152: "Shadow Blade",
    154: "Sange and Yasha",
    156: "Satanic",
    158: "Mjollnir",
    160: "Eye of Skadi",
    162: "Sange",
    164: "Helm of the Dominator",
    166: "Maelstrom",
    168: "Desolator",
    170: "Yasha",
    172: "Mask of Madness",
    174: "Diffusal Blade",
    176: "Ethereal Blade",
    178: "Soul Ring",
    180: "Arcane Boots",
    181: "Orb of Venom",
    185: "Drum of Endurance",
    187: "Medallion of Courage",
    188: "Smoke of Deceit",
    190: "Veil of Discord",
    206: "Rod of Atos",
    208: "Abyssal Blade",
    210: "Heaven's Halberd",
    214: "Tranquil Boots",
    226: "Lotus Orb",
    229: "Solar Crest",
    231: "Guardian Greaves",
    232: "Aether Lens",
    235: "Octarine Core",
    236: "Dragon Lance",
    242: "Crimson Guard",
    249: "Silver Edge",
    250: "Bloodthorn",
    252: "Echo Sabre",
    254: "Glimmer Cape",
    256: "Aeon Disk",
    259: "Kaya",
    263: "Hurricane Pike",
    267: "Spirit Vessel",
    271: "Aghanim's Blessing",
    273: "Kaya and Sange",
    277: "Yasha and Kaya",
    600: "Overwhelming Blink",
    603: "Swift Blink",
    604: "Arcane Blink",
    609: "Aghanim's Shard",
    612: "Wind Waker",
    1097: "Disperser",
    1107: "Phylactery",
    1128: "Pavise",
    1808: "Harpoon",
}

# Final-inventory allow-lists (matched against display names)
SPELL_IMMUNITY_ITEMS = ("Black King Bar",)
MOBILITY_ITEMS = ("Blink", "Force Staff", "Hurricane Pike")
EARLY_STAT_ITEMS = ("Wraith Band", "Null Talisman", "Bracer")
BOOT_ITEMS = ("Boots", "Treads", "Greaves")
DAMAGE_ITEMS = (
    "Daedalus",
    "Monkey King Bar",
    "Butterfly",
    "Desolator",
    "Bloodthorn",
    "Mjollnir",
    "Radiance",
    "Battle Fury",
)
DEFENSIVE_ITEMS = (
    "Black King Bar",
    "Linken",
    "Aeon Disk",
    "Lotus Orb",
    "Heart",
    "Skadi",
)
FARM_ACCELERATOR_ITEMS = ("Battle Fury", "Maelstrom", "Mjollnir", "Radiance", "Midas")
LOW_GPM_FARM_ITEMS = ("Battle Fury", "Maelstrom", "Radiance")
LUXURY_ITEMS = ("Daedalus", "Butterfly", "Abyssal", "Bloodthorn", "Skadi", "Satanic")
SUPPORT_UTILITY_ITEMS = ("Glimmer", "Force Staff", "Mekansm", "Guardian Greaves")
CARRY_ITEMS = ("Daedalus", "Butterfly", "Radiance", "Battle Fury", "Monkey King Bar")
VISION_ITEMS = ("Gem",)
# Matched by exact name; other items also have "Scepter" in their names
SCEPTER_ITEMS = ("Aghanim's Scepter", "Aghanim's Blessing")

# Purchase-log keys that count as a major timing (matched as substrings)
MAJOR_PURCHASE_KEYS = (
    "blink",
    "black_king_bar",
    "butterfly",
    "daedalus",
    "monkey_king_bar",
    "radiance",
    "battle_fury",
    "bfury",
    "mjollnir",
    "assault",
    "heart",
    "skadi",
    "ethereal_blade",
    "ultimate_scepter",
    "aghanims_scepter",
    "refresher",
    "manta",
    "satanic",
    "abyssal_blade",
    "bloodstone",
    "shivas_guard",
    "sheepstick",
    "scythe",
    "nullifier",
)


def item_name(item_id: int) -> str | None:
    """Display name for an item id, or None for ids outside the catalogue."""
    return ITEM_NAMES.get(item_id)


def item_names(item_ids: list[int] | tuple[int, ...]) -> list[str]:
    """Known display names for a final inventory; empty slots and unknown ids drop out."""
    return [ITEM_NAMES[i] for i in item_ids if i and i in ITEM_NAMES]


def matching(items: list[str], allow_list: tuple[str, ...]) -> list[str]:
    """Items whose name contains any allow-list entry."""
    return [item for item in items if any(fragment in item for fragment in allow_list)]


def has_any(items: list[str], allow_list: tuple[str, ...]) -> bool:
    return bool(matching(items, allow_list))


def has_exact(items: list[str], names: tuple[str, ...]) -> bool:
    return any(item in names for item in items)


def is_major_purchase(item_key: str) -> bool:
    key = item_key.lower()
    return any(major in key for major in MAJOR_PURCHASE_KEYS)


def format_item_key(item_key: str) -> str:
    """Turn a provider key like ``black_king_bar`` into ``Black King Bar``."""
    if not item_key:
        return "Unknown Item"
    return " ".join(word.capitalize() for word in item_key.split("_"))
