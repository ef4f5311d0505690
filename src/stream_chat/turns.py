from enum import Enum
from typing import Dict, Iterator, List, NamedTuple


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Turn(NamedTuple):
    """One message of the conversation."""

    role: Role
    content: str

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Turn":
        return cls(Role.ASSISTANT, content)

    def to_message(self) -> Dict[str, str]:
        """Return the chat-completions message for this turn."""
        return {"role": self.role.value, "content": self.content}


class Transcript:
    """Append-only history of turns, in display order."""

    def __init__(self):
        self._turns: List[Turn] = []

    def append(self, turn: Turn) -> None:
        self._turns.append(turn)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self._turns)

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]

    def to_list(self) -> List[Dict[str, str]]:
        return [turn.to_message() for turn in self._turns]
