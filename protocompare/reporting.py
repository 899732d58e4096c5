# Copyright 2023 Intrinsic Innovation LLC

"""Failure reports for containment checks over messages.

Pairing by key only improves the message: unmatched actual and expected
elements with the same key are shown together along with their diff. It
never changes whether a check passes.
"""

import collections
import dataclasses
import enum
import textwrap
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from absl import logging
from google.protobuf import message
from google.protobuf import text_format
from protocompare import correspondence as correspondence_lib
from protocompare import matching


class Check(enum.Enum):
  """The containment checks a failure can be reported for."""

  CONTAINS_EXACTLY = "contains exactly"
  CONTAINS_ALL = "contains all of"
  CONTAINS_ANY = "contains any of"
  CONTAINS_NONE = "contains none of"


@dataclasses.dataclass(frozen=True)
class KeyedPair:
  """An unmatched expected element and the unmatched actual ones with its key.

  Attributes:
    key: The shared key.
    expected_index: Index of the expected element.
    actual_indices: Indices of the actual elements.
  """

  key: Any
  expected_index: int
  actual_indices: Tuple[int, ...]


@dataclasses.dataclass(frozen=True)
class Pairing:
  """The result of pairing unmatched elements by key.

  Attributes:
    pairs: The keyed pairs, in expected order.
    unpaired_actual: Unmatched actual indices not in any pair.
    unpaired_expected: Unmatched expected indices not in any pair.
    ambiguous_keys: Keys shared by several unmatched expected elements, which
      were not paired.
  """

  pairs: Tuple[KeyedPair, ...] = ()
  unpaired_actual: Tuple[int, ...] = ()
  unpaired_expected: Tuple[int, ...] = ()
  ambiguous_keys: Tuple[Any, ...] = ()


def pair_by_key(
    actual: Sequence[Any],
    expected: Sequence[Any],
    unmatched_actual: Sequence[int],
    unmatched_expected: Sequence[int],
    key_fn: Callable[[Any], Any],
) -> Pairing:
  """Pairs unmatched actual and expected elements with equal keys.

  Elements with a None key are never paired. If several unmatched expected
  elements share a key, that key is skipped entirely.

  Args:
    actual: All actual elements.
    expected: All expected elements.
    unmatched_actual: Indices into actual to pair.
    unmatched_expected: Indices into expected to pair.
    key_fn: Returns the hashable key of an element, or None.

  Returns:
    The pairing.
  """
  expected_by_key: Dict[Any, List[int]] = collections.defaultdict(list)
  for expected_index in unmatched_expected:
    key = key_fn(expected[expected_index])
    if key is not None:
      expected_by_key[key].append(expected_index)
  ambiguous_keys = tuple(
      key for key, indices in expected_by_key.items() if len(indices) > 1
  )
  if ambiguous_keys:
    logging.debug(
        "Not pairing by keys %s, they are shared by several expected"
        " elements.",
        ambiguous_keys,
    )
  unique = {
      key: indices[0]
      for key, indices in expected_by_key.items()
      if len(indices) == 1
  }

  actual_by_key: Dict[Any, List[int]] = collections.defaultdict(list)
  for actual_index in unmatched_actual:
    key = key_fn(actual[actual_index])
    if key is not None and key in unique:
      actual_by_key[key].append(actual_index)

  pairs = tuple(
      KeyedPair(key, unique[key], tuple(actual_by_key[key]))
      for key in sorted(unique, key=unique.get)
      if key in actual_by_key
  )
  paired_actual = {a for pair in pairs for a in pair.actual_indices}
  paired_expected = {pair.expected_index for pair in pairs}
  return Pairing(
      pairs=pairs,
      unpaired_actual=tuple(
          a for a in unmatched_actual if a not in paired_actual
      ),
      unpaired_expected=tuple(
          e for e in unmatched_expected if e not in paired_expected
      ),
      ambiguous_keys=ambiguous_keys,
  )


def format_element(element: Any) -> str:
  if isinstance(element, message.Message):
    return "{ %s }" % text_format.MessageToString(element, as_one_line=True)
  return repr(element)


def _format_elements(
    elements: Sequence[Any], indices: Sequence[int]
) -> List[str]:
  return [f"  #{index}: {format_element(elements[index])}" for index in indices]


def _indent(text: str, prefix: str) -> str:
  return textwrap.indent(text, prefix) if text else text


def format_failure(
    check: Check,
    actual: Sequence[Any],
    expected: Sequence[Any],
    result: matching.MatchResult,
    correspondence: correspondence_lib.ProtoCorrespondence,
) -> str:
  """Renders the failure of a containment check.

  Args:
    check: The check which failed.
    actual: The actual elements.
    expected: The expected, or for CONTAINS_NONE the excluded, elements.
    result: The failed result.
    correspondence: The correspondence the check used.

  Returns:
    A multi-line explanation of the failure.
  """
  lines = [
      f"Not true that actual {check.value} expected"
      f" ({result.outcome.value})."
  ]
  if result.outcome is matching.Outcome.NOT_IN_ORDER:
    lines.append(
        "All expected elements were found, but the order was wrong."
    )
  elif check is Check.CONTAINS_NONE:
    lines.append("found excluded elements:")
    for actual_index, excluded_index in result.pairs:
      lines.append(
          f"  actual #{actual_index} {format_element(actual[actual_index])}"
          f" corresponds to excluded #{excluded_index}"
      )
  elif check is Check.CONTAINS_ANY:
    lines.append("none of the expected elements were found.")
  else:
    _append_unmatched(check, actual, expected, result, correspondence, lines)

  lines.append("expected:")
  lines.extend(_format_elements(expected, range(len(expected))))
  lines.append("actual:")
  lines.extend(_format_elements(actual, range(len(actual))))
  return "\n".join(lines)


def _append_unmatched(
    check: Check,
    actual: Sequence[Any],
    expected: Sequence[Any],
    result: matching.MatchResult,
    correspondence: correspondence_lib.ProtoCorrespondence,
    lines: List[str],
) -> None:
  """Lists missing and unexpected elements, paired by key where possible."""
  pairing = Pairing(
      unpaired_actual=result.unmatched_actual,
      unpaired_expected=result.unmatched_expected,
  )
  if correspondence.config.pairing_key_fn is not None:
    pairing = pair_by_key(
        actual,
        expected,
        result.unmatched_actual,
        result.unmatched_expected,
        correspondence.key,
    )

  for pair in pairing.pairs:
    missing = expected[pair.expected_index]
    lines.append(f"for key {pair.key!r}:")
    lines.append(
        f"  missing #{pair.expected_index}: {format_element(missing)}"
    )
    for actual_index in pair.actual_indices:
      lines.append(
          f"  unexpected #{actual_index}:"
          f" {format_element(actual[actual_index])}"
      )
      diff = correspondence.format_diff(actual[actual_index], missing)
      if diff:
        lines.append("  diff:")
        lines.append(_indent(diff, "    "))
  if pairing.unpaired_expected:
    lines.append(f"missing ({len(pairing.unpaired_expected)}):")
    lines.extend(_format_elements(expected, pairing.unpaired_expected))
  # Leftover actual elements are fine unless the containment is exact.
  if check is Check.CONTAINS_EXACTLY and pairing.unpaired_actual:
    lines.append(f"unexpected ({len(pairing.unpaired_actual)}):")
    lines.extend(_format_elements(actual, pairing.unpaired_actual))


def key_preference(
    correspondence: correspondence_lib.ProtoCorrespondence,
    actual: Sequence[Any],
    expected: Sequence[Any],
) -> Optional[matching.IndexPredicate]:
  """Returns a tie-breaker preferring pairs with equal, non-None keys.

  Matching equally keyed elements with each other where possible leaves the
  leftovers with keys that pair up in the report.
  """
  if correspondence.config.pairing_key_fn is None:
    return None
  actual_keys = [correspondence.key(element) for element in actual]
  expected_keys = [correspondence.key(element) for element in expected]

  def preferred(actual_index: int, expected_index: int) -> bool:
    key = expected_keys[expected_index]
    return key is not None and actual_keys[actual_index] == key

  return preferred
