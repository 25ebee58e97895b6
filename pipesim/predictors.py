"""
Branch predictors.

All predictors share one contract: predict(pc) returns a taken/not-taken
guess for the branch at pc, update(pc, taken) trains with the resolved
outcome. Callers make at most one predict/update pair per dynamic branch.
The human-readable name is a read-only `name` property rather than a method.
Per-pc state lives in plain dicts for the predictor's lifetime, with no
eviction.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple


class BranchPredictor(ABC):
    """
    Base class for branch predictors.

    Keeps the guess for each unresolved pc so that a repeated predict() for
    the same branch returns the same answer without recounting, and so that
    update() can score the guess that was actually used.
    """

    def __init__(self):
        self.predictions = 0
        self.mispredictions = 0
        self._pending: Dict[int, bool] = {}

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name."""

    @abstractmethod
    def _guess(self, pc: int) -> bool:
        """Compute a fresh prediction for pc from current state."""

    @abstractmethod
    def _train(self, pc: int, taken: bool) -> None:
        """Update internal state with the resolved outcome."""

    def predict(self, pc: int) -> bool:
        """
        Predict whether the branch at pc is taken.

        Args:
            pc: Branch address

        Returns:
            True for taken
        """
        if pc in self._pending:
            return self._pending[pc]
        guess = self._guess(pc)
        self._pending[pc] = guess
        self.predictions += 1
        return guess

    def update(self, pc: int, taken: bool) -> None:
        """
        Train with the actual outcome of the branch at pc.

        Args:
            pc: Branch address, same as the paired predict() call
            taken: Resolved outcome
        """
        if pc in self._pending:
            if self._pending.pop(pc) != taken:
                self.mispredictions += 1
        self._train(pc, taken)

    def accuracy(self) -> float:
        """Percentage of scored predictions that were correct."""
        if self.predictions == 0:
            return 0.0
        return 100.0 * (self.predictions - self.mispredictions) / self.predictions

    def reset(self) -> None:
        """Forget all learned state and statistics."""
        self.predictions = 0
        self.mispredictions = 0
        self._pending.clear()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class StaticPredictor(BranchPredictor):
    """Always predicts the same direction, ignoring pc."""

    def __init__(self, taken: bool = False):
        super().__init__()
        self.always_taken = taken

    @property
    def name(self) -> str:
        return "Static-AlwaysTaken" if self.always_taken else "Static-AlwaysNotTaken"

    def _guess(self, pc: int) -> bool:
        return self.always_taken

    def _train(self, pc: int, taken: bool) -> None:
        pass


class OneBitPredictor(BranchPredictor):
    """Predicts the last observed outcome per pc (not-taken if unseen)."""

    def __init__(self):
        super().__init__()
        self.table: Dict[int, bool] = {}  # pc -> last outcome

    @property
    def name(self) -> str:
        return "OneBit"

    def _guess(self, pc: int) -> bool:
        return self.table.get(pc, False)

    def _train(self, pc: int, taken: bool) -> None:
        self.table[pc] = taken

    def reset(self) -> None:
        super().reset()
        self.table.clear()


class TwoBitPredictor(BranchPredictor):
    """
    Saturating 2-bit counter per pc.

    States 0-1 predict not-taken, 2-3 predict taken. Counters start at 0.
    """

    MAX_STATE = 3
    TAKEN_THRESHOLD = 2

    def __init__(self):
        super().__init__()
        self.table: Dict[int, int] = {}  # pc -> state (0..3)

    @property
    def name(self) -> str:
        return "TwoBit"

    def _guess(self, pc: int) -> bool:
        return self.table.get(pc, 0) >= self.TAKEN_THRESHOLD

    def _train(self, pc: int, taken: bool) -> None:
        state = self.table.get(pc, 0)
        if taken:
            state = min(state + 1, self.MAX_STATE)
        else:
            state = max(state - 1, 0)
        self.table[pc] = state

    def reset(self) -> None:
        super().reset()
        self.table.clear()


class TournamentPredictor(BranchPredictor):
    """
    Meta-predictor choosing between a 1-bit and a 2-bit component.

    A per-pc chooser counter (0..3) picks the 2-bit component when >= 2.
    Both components predict on every call; on update both are trained and
    the chooser moves toward whichever component alone was right.
    """

    CHOOSER_INIT = 2

    def __init__(self):
        super().__init__()
        self.one_bit = OneBitPredictor()
        self.two_bit = TwoBitPredictor()
        self.chooser: Dict[int, int] = {}  # pc -> 0..3
        self._components: Dict[int, Tuple[bool, bool]] = {}

    @property
    def name(self) -> str:
        return "Tournament"

    def _guess(self, pc: int) -> bool:
        p1 = self.one_bit.predict(pc)
        p2 = self.two_bit.predict(pc)
        self._components[pc] = (p1, p2)
        if self.chooser.get(pc, self.CHOOSER_INIT) >= 2:
            return p2
        return p1

    def _train(self, pc: int, taken: bool) -> None:
        if pc in self._components:
            p1, p2 = self._components.pop(pc)
        else:
            p1, p2 = self.one_bit._guess(pc), self.two_bit._guess(pc)

        self.one_bit.update(pc, taken)
        self.two_bit.update(pc, taken)

        if p1 != p2:
            choice = self.chooser.get(pc, self.CHOOSER_INIT)
            if p2 == taken:
                choice = min(choice + 1, 3)
            else:
                choice = max(choice - 1, 0)
            self.chooser[pc] = choice

    def reset(self) -> None:
        super().reset()
        self.one_bit.reset()
        self.two_bit.reset()
        self.chooser.clear()
        self._components.clear()


# =============================================================================
# Predictor registry
# =============================================================================

@dataclass(frozen=True)
class PredictorSpec:
    """
    Registry entry for a predictor key.

    Attributes:
        label: Menu label
        slug: Token used in output filenames
        factory: Zero-argument constructor
    """

    label: str
    slug: str
    factory: Callable[[], BranchPredictor]


PREDICTORS = {
    "static_nt": PredictorSpec("Static (Always Not Taken)", "static_nt", lambda: StaticPredictor(False)),
    "static_t": PredictorSpec("Static (Always Taken)", "static_t", lambda: StaticPredictor(True)),
    "1bit": PredictorSpec("One-bit predictor", "one_bit", OneBitPredictor),
    "2bit": PredictorSpec("Two-bit predictor", "two_bit", TwoBitPredictor),
    "tournament": PredictorSpec("Tournament predictor", "tournament", TournamentPredictor),
}

DEFAULT_PREDICTOR = "static_nt"

PREDICTOR_SLUGS = {key: spec.slug for key, spec in PREDICTORS.items()}


def resolve_predictor_name(name: str) -> str:
    """Normalize a predictor key, falling back to the default if unknown."""
    key = (name or "").strip().lower()
    return key if key in PREDICTORS else DEFAULT_PREDICTOR


def make_predictor(name: str) -> BranchPredictor:
    """
    Build a predictor by key.

    Args:
        name: One of static_nt, static_t, 1bit, 2bit, tournament
              (case-insensitive). Unknown names give static_nt.

    Returns:
        New predictor instance
    """
    return PREDICTORS[resolve_predictor_name(name)].factory()


def get_predictor_names() -> List[str]:
    """Get predictor keys in menu order."""
    return list(PREDICTORS.keys())
