"""Pattern registry mapping ``(topic, cmd)`` pairs to store handlers."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type

from mongostore.schemas.requests import StoreRequest

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class Pattern:
    """A registered command pattern.

    Attributes:
        topic: Topic the pattern is registered under
        cmd: Command discriminator
        model: Request model validating the message body
        handler: Coroutine function executing the command
    """

    topic: str
    cmd: str
    model: Type[StoreRequest]
    handler: Handler


class PatternRegistry:
    """Fixed set of command patterns, populated once at startup."""

    def __init__(self):
        self._patterns: Dict[Tuple[str, str], Pattern] = {}

    def add(
        self, topic: str, cmd: str, model: Type[StoreRequest], handler: Handler
    ) -> Pattern:
        """Register a handler for a pattern.

        Raises:
            ValueError: If the pattern is already registered
        """
        key = (topic, cmd)
        if key in self._patterns:
            raise ValueError(f"Pattern already registered: topic={topic} cmd={cmd}")

        pattern = Pattern(topic=topic, cmd=cmd, model=model, handler=handler)
        self._patterns[key] = pattern
        logger.debug(f"Registered pattern topic={topic} cmd={cmd}")
        return pattern

    def lookup(self, topic: Optional[str], cmd: Optional[str]) -> Optional[Pattern]:
        """Return the pattern for ``(topic, cmd)``, or None when unmatched."""
        return self._patterns.get((topic, cmd))

    def patterns(self) -> List[Pattern]:
        return list(self._patterns.values())

    def __len__(self) -> int:
        return len(self._patterns)
