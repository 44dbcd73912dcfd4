from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .board import Marker


class GameState(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class Outcome(str, Enum):
    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"


@dataclass(frozen=True)
class Identity:
    id: str                                # opaque id from the identity provider
    name: str
    avatar_url: str | None = None


@dataclass
class Player:
    id: str
    name: str
    marker: Marker
    avatar_url: str | None = None
    joined_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class PlayerStats:
    player_id: str
    wins: int = 0
    losses: int = 0
    draws: int = 0

    def apply(self, outcome: Outcome) -> None:
        if outcome is Outcome.WIN:
            self.wins += 1
        elif outcome is Outcome.LOSS:
            self.losses += 1
        else:
            self.draws += 1
