import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Awaitable, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from tubegate.services.ytdlp import FailureKind, ToolError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Decision(Enum):
    CONTINUE = auto()
    ABORT = auto()


# Every failure moves on to the next attempt unless a policy says otherwise
CONTINUE_ON_ANY: Dict[FailureKind, Decision] = {kind: Decision.CONTINUE for kind in FailureKind}


@dataclass
class Attempt(Generic[T]):
    label: str
    run: Callable[[], Awaitable[T]]


class ChainExhausted(Exception):
    """Every attempt of a chain failed (or one aborted it)"""

    def __init__(self, name: str, failures: List[ToolError]):
        self.name = name
        self.failures = failures
        super().__init__(f"{name}: {len(failures)} attempt(s) failed")

    @property
    def last(self) -> Optional[ToolError]:
        return self.failures[-1] if self.failures else None

    def has_kind(self, kind: FailureKind) -> bool:
        return any(f.kind is kind for f in self.failures)


class FallbackChain(Generic[T]):
    """
    Run attempts sequentially in priority order and stop at the first success.
    Failures are logged only; the policy decides whether the chain goes on.
    """

    def __init__(
        self,
        name: str,
        attempts: Sequence[Attempt[T]],
        policy: Optional[Dict[FailureKind, Decision]] = None
    ):
        self.name = name
        self.attempts = list(attempts)
        self.policy = policy or CONTINUE_ON_ANY

    async def run(self) -> T:
        failures: List[ToolError] = []

        for attempt in self.attempts:
            try:
                result = await attempt.run()
            except ToolError as e:
                failures.append(e)
                decision = self.policy.get(e.kind, Decision.CONTINUE)
                logger.warning(
                    "%s: attempt %r failed (%s): %s",
                    self.name, attempt.label, e.kind.name, e.reason[:200]
                )
                if decision is Decision.ABORT:
                    break
                continue

            logger.info("%s: attempt %r succeeded", self.name, attempt.label)
            return result

        raise ChainExhausted(self.name, failures)
