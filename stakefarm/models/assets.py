from dataclasses import dataclass


@dataclass(frozen=True)
class TokenType:
    """Represents a plantable token definition from token_types.json."""
    id: str
    name: str
    growth_time_ms: int
    rarity: str = "common"
    unlock_level: int = 1
    description: str = ""
