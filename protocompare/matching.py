# Copyright 2023 Intrinsic Innovation LLC

"""Containment checks between collections under an arbitrary predicate.

The predicate deciding whether an actual element corresponds to an expected
element need not be transitive or symmetric, e.g. when extra repeated field
elements are ignored. Elements therefore cannot be grouped or sorted; all
checks here work on the full bipartite graph of corresponding pairs.
"""

import dataclasses
import enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from absl import logging

# predicate(actual_index, expected_index) -> True if the elements correspond.
IndexPredicate = Callable[[int, int], bool]


class Outcome(enum.Enum):
  PASSED = "passed"
  ELEMENTS_DIFFER = "elements differ"
  NOT_IN_ORDER = "not in order"


@dataclasses.dataclass(frozen=True)
class MatchResult:
  """The result of a containment check.

  Attributes:
    outcome: Whether the check passed, and if not, why.
    pairs: Corresponding (actual_index, expected_index) pairs, sorted by
      expected index. For contains_none these are the offending pairs.
    unmatched_actual: Indices of actual elements not in any pair.
    unmatched_expected: Indices of expected elements not in any pair.
  """

  outcome: Outcome
  pairs: Tuple[Tuple[int, int], ...] = ()
  unmatched_actual: Tuple[int, ...] = ()
  unmatched_expected: Tuple[int, ...] = ()

  @property
  def passed(self) -> bool:
    return self.outcome is Outcome.PASSED


def _edges(
    num_actual: int, num_expected: int, predicate: IndexPredicate
) -> List[List[int]]:
  """Returns, per expected index, the corresponding actual indices."""
  return [
      [
          actual_index
          for actual_index in range(num_actual)
          if predicate(actual_index, expected_index)
      ]
      for expected_index in range(num_expected)
  ]


def _augment(
    start: int,
    edges: List[List[int]],
    actual_to_expected: Dict[int, int],
    visited: List[bool],
) -> bool:
  """Searches an augmenting path from the free expected index start.

  The depth first search keeps its own stack, since a path may run through
  every element of the collections.

  Returns:
    True if a path was found and applied to actual_to_expected.
  """
  # stack[i] is an expected index with the iterator over its candidates;
  # path[i] is the actual index leading from stack[i] to stack[i + 1].
  stack = [(start, iter(edges[start]))]
  path: List[int] = []
  while stack:
    for actual_index in stack[-1][1]:
      if not visited[actual_index]:
        visited[actual_index] = True
        break
    else:
      stack.pop()
      if path:
        path.pop()
      continue
    other = actual_to_expected.get(actual_index)
    if other is None:
      path.append(actual_index)
      for (expected_index, _), matched in zip(stack, path):
        actual_to_expected[matched] = expected_index
      return True
    path.append(actual_index)
    stack.append((other, iter(edges[other])))
  return False


def _kuhn(num_actual: int, edges: List[List[int]]) -> Dict[int, int]:
  """Returns a maximum matching as a dict from actual to expected index."""
  actual_to_expected: Dict[int, int] = {}
  # Most-constrained expected elements first keeps search paths short.
  for expected_index in sorted(
      range(len(edges)), key=lambda e: len(edges[e])
  ):
    _augment(
        expected_index, edges, actual_to_expected, [False] * num_actual
    )
  return actual_to_expected


def _preferred_matching(
    edges: List[List[int]], preferred: IndexPredicate
) -> Dict[int, int]:
  """Returns a maximum matching with as many preferred pairs as possible.

  Augments along shortest paths (Bellman-Ford) where preferred pairs cost -1
  and others 0. Each augmentation keeps the matching of minimum cost for its
  size, so the final maximum matching has the most preferred pairs.

  Returns:
    A dict from actual to expected index.
  """
  cost = {
      (a, e): -1 if preferred(a, e) else 0
      for e, candidates in enumerate(edges)
      for a in candidates
  }
  actual_to_expected: Dict[int, int] = {}
  expected_to_actual: Dict[int, int] = {}
  while True:
    expected_distance = {
        e: 0 for e in range(len(edges)) if e not in expected_to_actual
    }
    actual_distance: Dict[int, int] = {}
    reached_from: Dict[int, int] = {}
    changed = True
    while changed:
      changed = False
      for e, distance in list(expected_distance.items()):
        for a in edges[e]:
          if actual_to_expected.get(a) == e:
            continue
          candidate = distance + cost[(a, e)]
          if candidate < actual_distance.get(a, candidate + 1):
            actual_distance[a] = candidate
            reached_from[a] = e
            changed = True
      for a, distance in actual_distance.items():
        e = actual_to_expected.get(a)
        if e is None:
          continue
        candidate = distance - cost[(a, e)]
        if candidate < expected_distance.get(e, candidate + 1):
          expected_distance[e] = candidate
          changed = True
    free = [a for a in actual_distance if a not in actual_to_expected]
    if not free:
      return actual_to_expected
    a = min(free, key=lambda x: (actual_distance[x], x))
    while a is not None:
      e = reached_from[a]
      previous = expected_to_actual.get(e)
      actual_to_expected[a] = e
      expected_to_actual[e] = a
      a = previous


def maximum_matching(
    num_actual: int,
    num_expected: int,
    predicate: IndexPredicate,
    preferred: Optional[IndexPredicate] = None,
) -> Dict[int, int]:
  """Finds a maximum one-to-one matching between actual and expected indices.

  Uses augmenting path search (Kuhn's algorithm). With a preference, the
  maximum matching with the most preferred pairs is returned instead.

  Args:
    num_actual: Number of actual elements.
    num_expected: Number of expected elements.
    predicate: Whether an actual element corresponds to an expected one.
    preferred: Optional tie-breaker, e.g. equality of pairing keys.

  Returns:
    A dict from expected index to matched actual index.
  """
  edges = _edges(num_actual, num_expected, predicate)
  logging.vlog(
      1,
      "Matching %d actual and %d expected elements over %d edges.",
      num_actual,
      num_expected,
      sum(len(candidates) for candidates in edges),
  )
  if preferred is None:
    actual_to_expected = _kuhn(num_actual, edges)
  else:
    actual_to_expected = _preferred_matching(edges, preferred)
  return {e: a for a, e in actual_to_expected.items()}


def _result(
    outcome: Outcome,
    matching: Dict[int, int],
    num_actual: int,
    num_expected: int,
) -> MatchResult:
  matched_actual = set(matching.values())
  return MatchResult(
      outcome=outcome,
      pairs=tuple((matching[e], e) for e in sorted(matching)),
      unmatched_actual=tuple(
          a for a in range(num_actual) if a not in matched_actual
      ),
      unmatched_expected=tuple(
          e for e in range(num_expected) if e not in matching
      ),
  )


def greedy_subsequence(
    num_actual: int, num_expected: int, predicate: IndexPredicate
) -> Dict[int, int]:
  """Pairs expected elements in order with the earliest possible actual ones.

  Matching every expected element to the earliest possible actual element is
  optimal for any predicate: it leaves the longest suffix for the rest.
  Expected elements without an actual element after the previous pair are
  skipped.

  Returns:
    A dict from expected index to actual index, increasing in both.
  """
  matching = {}
  actual_index = 0
  for expected_index in range(num_expected):
    for candidate in range(actual_index, num_actual):
      if predicate(candidate, expected_index):
        matching[expected_index] = candidate
        actual_index = candidate + 1
        break
  return matching


def find_subsequence(
    num_actual: int, num_expected: int, predicate: IndexPredicate
) -> Optional[Dict[int, int]]:
  """Embeds the expected sequence into the actual one, preserving order.

  Returns:
    A dict from expected index to actual index, or None if the expected
    elements are not a subsequence of the actual elements.
  """
  matching = greedy_subsequence(num_actual, num_expected, predicate)
  if len(matching) != num_expected:
    return None
  return matching


def contains_exactly(
    num_actual: int,
    num_expected: int,
    predicate: IndexPredicate,
    *,
    in_order: bool = False,
    preferred: Optional[IndexPredicate] = None,
) -> MatchResult:
  """Checks that actual and expected correspond one-to-one.

  Multiplicity counts: duplicates are distinct slots on both sides.

  Args:
    num_actual: Number of actual elements.
    num_expected: Number of expected elements.
    predicate: Whether an actual element corresponds to an expected one.
    in_order: If set, additionally requires actual[i] to correspond to
      expected[i] for all i.
    preferred: Optional tie-breaker for the reported matching.

  Returns:
    The result. NOT_IN_ORDER is only reported if the elements correspond
    ignoring order.
  """
  matching = maximum_matching(num_actual, num_expected, predicate, preferred)
  if len(matching) != num_actual or len(matching) != num_expected:
    return _result(
        Outcome.ELEMENTS_DIFFER, matching, num_actual, num_expected
    )
  if in_order and not all(predicate(i, i) for i in range(num_expected)):
    return _result(Outcome.NOT_IN_ORDER, matching, num_actual, num_expected)
  if in_order:
    matching = {i: i for i in range(num_expected)}
  return _result(Outcome.PASSED, matching, num_actual, num_expected)


def contains_all(
    num_actual: int,
    num_expected: int,
    predicate: IndexPredicate,
    *,
    in_order: bool = False,
    preferred: Optional[IndexPredicate] = None,
) -> MatchResult:
  """Checks that every expected element has its own corresponding actual one.

  Args:
    num_actual: Number of actual elements.
    num_expected: Number of expected elements.
    predicate: Whether an actual element corresponds to an expected one.
    in_order: If set, additionally requires an order preserving assignment,
      i.e. expected is a subsequence of actual; gaps are allowed.
    preferred: Optional tie-breaker for the reported matching.
  """
  matching = maximum_matching(num_actual, num_expected, predicate, preferred)
  if len(matching) != num_expected:
    return _result(
        Outcome.ELEMENTS_DIFFER, matching, num_actual, num_expected
    )
  if in_order:
    ordered = find_subsequence(num_actual, num_expected, predicate)
    if ordered is None:
      return _result(Outcome.NOT_IN_ORDER, matching, num_actual, num_expected)
    matching = ordered
  return _result(Outcome.PASSED, matching, num_actual, num_expected)


def contains_any(
    num_actual: int, num_expected: int, predicate: IndexPredicate
) -> MatchResult:
  """Checks that at least one actual element corresponds to an expected one.

  Returns:
    The result; if passed, pairs holds the first corresponding pair found.
  """
  for expected_index in range(num_expected):
    for actual_index in range(num_actual):
      if predicate(actual_index, expected_index):
        return _result(
            Outcome.PASSED,
            {expected_index: actual_index},
            num_actual,
            num_expected,
        )
  return _result(Outcome.ELEMENTS_DIFFER, {}, num_actual, num_expected)


def contains_none(
    num_actual: int, num_excluded: int, predicate: IndexPredicate
) -> MatchResult:
  """Checks that no actual element corresponds to any excluded element.

  Returns:
    The result; pairs holds every offending (actual, excluded) pair.
  """
  offending = tuple(
      (actual_index, excluded_index)
      for excluded_index in range(num_excluded)
      for actual_index in range(num_actual)
      if predicate(actual_index, excluded_index)
  )
  if not offending:
    return MatchResult(
        Outcome.PASSED,
        unmatched_actual=tuple(range(num_actual)),
        unmatched_expected=tuple(range(num_excluded)),
    )
  offending_actual = {a for a, _ in offending}
  offending_excluded = {e for _, e in offending}
  return MatchResult(
      Outcome.ELEMENTS_DIFFER,
      pairs=offending,
      unmatched_actual=tuple(
          a for a in range(num_actual) if a not in offending_actual
      ),
      unmatched_expected=tuple(
          e for e in range(num_excluded) if e not in offending_excluded
      ),
  )


def index_predicate(
    actual: Sequence[Any],
    expected: Sequence[Any],
    predicate: Callable[[Any, Any], bool],
) -> IndexPredicate:
  """Lifts an element predicate to indices, evaluating each pair once."""
  cache: Dict[Tuple[int, int], bool] = {}

  def evaluate(actual_index: int, expected_index: int) -> bool:
    key = (actual_index, expected_index)
    if key not in cache:
      cache[key] = predicate(actual[actual_index], expected[expected_index])
    return cache[key]

  return evaluate
