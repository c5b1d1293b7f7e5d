# asclepius/context.py
from __future__ import annotations

from dataclasses import dataclass

ATHLETE = "athlete"
PHYSIO = "physio"


@dataclass(frozen=True)
class SessionContext:
    """
    Who is acting. Produced by authentication and handed to every
    controller call explicitly; nothing looks the current user up globally.
    """
    uid: str
    role: str
    token: str = ""

    @property
    def is_physio(self) -> bool:
        return self.role == PHYSIO

    @property
    def is_athlete(self) -> bool:
        return self.role == ATHLETE
