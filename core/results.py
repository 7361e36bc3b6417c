# core/results.py

from dataclasses import dataclass
from typing import Dict, Iterator, List, Sequence, Tuple


@dataclass(frozen=True)
class ScoredCandidate:
    """An image together with its similarity to the query"""
    identity: str
    similarity: float


@dataclass(frozen=True)
class RetrievalResult:
    """
    Ranked search output, best match first.

    An empty result is a normal outcome (nothing reached the threshold)
    and evaluates as False.
    """
    candidates: Tuple[ScoredCandidate, ...] = ()

    @classmethod
    def from_candidates(cls, candidates: Sequence[ScoredCandidate]) -> 'RetrievalResult':
        return cls(tuple(candidates))

    def __len__(self) -> int:
        return len(self.candidates)

    def __iter__(self) -> Iterator[ScoredCandidate]:
        return iter(self.candidates)

    def __getitem__(self, index):
        return self.candidates[index]

    def __bool__(self) -> bool:
        return bool(self.candidates)

    def to_dicts(self) -> List[Dict]:
        """Plain representation for JSON export"""
        return [
            {"path": c.identity, "similarity": float(c.similarity)}
            for c in self.candidates
        ]
