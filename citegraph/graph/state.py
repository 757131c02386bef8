from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Set


@dataclass
class TraversalState:
    """Visited-set and level map shared by every branch of one traversal.

    ``mark`` is the only way an id enters the visited-set. It performs the
    check and the insert without awaiting in between, which keeps it atomic
    for coroutines on one event loop. Code that moves traversal onto real
    threads must guard ``mark`` with a lock.
    """

    visited: Set[str] = field(default_factory=set)
    levels: Dict[str, int] = field(default_factory=dict)

    def is_visited(self, paper_id: str) -> bool:
        return paper_id in self.visited

    def mark(self, paper_id: str, depth: int) -> bool:
        if paper_id in self.visited:
            return False
        self.visited.add(paper_id)
        self.levels[paper_id] = depth
        return True
