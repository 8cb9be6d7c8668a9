"""
Frame-to-frame identity matching for PoseLock.

The detector returns people in no particular order, and its order can flip
between frames when two people stand side by side. The tracker reorders each
frame's skeletons so that index i keeps referring to the same person slot,
which is what the per-slot smoothing, lock and animation state is keyed on.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from ..config import TrackingConfig
from ..pose.geometry import distance
from ..pose.skeleton import JointName, Skeleton

logger = logging.getLogger(__name__)


@dataclass
class TrackAssignment:
    """Result of matching one frame against the previous one."""
    ordered: List[Skeleton]                 # Skeletons in slot order, len == len(current)
    matches: List[Optional[int]]            # Per current index: previous slot it continues, or None
    order: List[int] = field(default_factory=list)   # ordered[k] is current[order[k]]
    costs: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))  # (previous, current)

    @property
    def new_count(self) -> int:
        """Skeletons that did not continue any previous slot."""
        return sum(1 for m in self.matches if m is None)


class IdentityTracker:
    """
    Assigns current skeletons to persistent slot indices.

    Matching is nearest-neighbour on a handful of stable anchor joints.
    Two strategies:
    - greedy: previous slots in index order each take their closest unused
      skeleton (the installation default)
    - optimal: minimum total cost assignment (Hungarian method via scipy)
    """

    def __init__(self, config: Optional[TrackingConfig] = None):
        """
        Initialize identity tracker.

        Args:
            config: Anchor joints, confidence gate, match distance and strategy
        """
        self.config = config or TrackingConfig()
        self.previous: List[Skeleton] = []
        self.frame_count = 0

    @property
    def anchor_joints(self) -> List[JointName]:
        return [JointName(n) for n in self.config.anchor_joints]

    def cost(self, a: Optional[Skeleton], b: Optional[Skeleton]) -> float:
        """
        Mean distance between the anchor joints confident in both skeletons.

        Returns:
            Distance in normalized units, or inf when no anchor is shared
        """
        if a is None or b is None:
            return math.inf
        gate = self.config.min_confidence
        total, count = 0.0, 0
        for name in self.anchor_joints:
            if a.is_confident(name, gate) and b.is_confident(name, gate):
                total += distance(a.joints[name].point, b.joints[name].point)
                count += 1
        return total / count if count else math.inf

    def cost_matrix(self, previous: Sequence[Skeleton], current: Sequence[Skeleton]) -> np.ndarray:
        costs = np.full((len(previous), len(current)), np.inf)
        for i, prev in enumerate(previous):
            for j, cur in enumerate(current):
                costs[i, j] = self.cost(prev, cur)
        return costs

    def _greedy(self, costs: np.ndarray) -> List[Optional[int]]:
        limit = self.config.max_match_distance
        matches: List[Optional[int]] = [None] * costs.shape[1]
        for i in range(costs.shape[0]):
            best_j, best_cost = None, limit
            for j in range(costs.shape[1]):
                if matches[j] is None and costs[i, j] < best_cost:
                    best_j, best_cost = j, costs[i, j]
            if best_j is not None:
                matches[best_j] = i
        return matches

    def _optimal(self, costs: np.ndarray) -> List[Optional[int]]:
        from scipy.optimize import linear_sum_assignment

        limit = self.config.max_match_distance
        matches: List[Optional[int]] = [None] * costs.shape[1]
        if costs.size == 0:
            return matches
        # Pairs at or beyond the limit are forbidden; a large finite cost keeps the solver happy
        finite = np.where(costs < limit, costs, limit * 1e3 + 1.0)
        rows, cols = linear_sum_assignment(finite)
        for i, j in zip(rows, cols):
            if costs[i, j] < limit:
                matches[j] = int(i)
        return matches

    def match(self, current: Sequence[Skeleton], previous: Sequence[Skeleton]) -> TrackAssignment:
        """
        Reorder current skeletons to follow the previous frame's slots.

        Matched skeletons keep their previous slot index; the rest fill the
        free indices in detection order. Holes left by people who vanished
        are closed up so the result has exactly len(current) entries.

        Args:
            current: This frame's skeletons, detector order
            previous: Last frame's skeletons, slot order

        Returns:
            TrackAssignment
        """
        current = list(current)
        previous = list(previous)
        costs = self.cost_matrix(previous, current)

        if self.config.strategy == "optimal":
            matches = self._optimal(costs)
        else:
            matches = self._greedy(costs)

        width = max(len(previous), len(current))
        slots: List[Optional[int]] = [None] * width
        for j, i in enumerate(matches):
            if i is not None:
                slots[i] = j

        free = (k for k in range(width) if slots[k] is None)
        for j, i in enumerate(matches):
            if i is None:
                slots[next(free)] = j

        order = [j for j in slots if j is not None]
        return TrackAssignment(
            ordered=[current[j] for j in order],
            matches=matches,
            order=order,
            costs=costs,
        )

    def update(self, current: Sequence[Skeleton]) -> TrackAssignment:
        """Match against the remembered previous frame, then remember this one."""
        self.frame_count += 1
        if not current:
            if self.previous:
                logger.debug("No people in frame %d, clearing track history", self.frame_count)
            self.previous = []
            return TrackAssignment(ordered=[], matches=[], order=[], costs=np.zeros((0, 0)))

        assignment = self.match(current, self.previous)
        if assignment.new_count:
            logger.debug(
                "Frame %d: %d new skeleton(s) out of %d",
                self.frame_count, assignment.new_count, len(assignment.ordered)
            )
        self.previous = list(assignment.ordered)
        return assignment

    def reset(self) -> None:
        self.previous = []
        self.frame_count = 0
