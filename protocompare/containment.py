# Copyright 2023 Intrinsic Innovation LLC

"""Containment checks between collections of messages.

Each check binds the configuration to the expected messages, runs the
matching over the resulting correspondence and returns a Verdict which can
render its own failure message:

  verdict = containment.contains_exactly(
      actual_protos,
      expected_protos,
      config.DEFAULT_CONFIG.ignoring_repeated_field_order(),
  )
  if not verdict.passed:
    print(verdict.failure_message())
"""

import dataclasses
from typing import Any, Iterable, Optional, Tuple

from google.protobuf import message
from protocompare import config as config_lib
from protocompare import correspondence as correspondence_lib
from protocompare import differ
from protocompare import matching
from protocompare import reporting


@dataclasses.dataclass(frozen=True)
class Verdict:
  """The outcome of a containment check.

  Attributes:
    check: The check that was run.
    actual: The actual elements.
    expected: The expected, or excluded, elements.
    result: The matching result.
    correspondence: The correspondence the elements were compared with.
  """

  check: reporting.Check
  actual: Tuple[Any, ...]
  expected: Tuple[Any, ...]
  result: matching.MatchResult
  correspondence: correspondence_lib.ProtoCorrespondence

  @property
  def passed(self) -> bool:
    return self.result.passed

  def failure_message(self) -> Optional[str]:
    """Returns the rendered failure, None if the check passed."""
    if self.passed:
      return None
    return reporting.format_failure(
        self.check, self.actual, self.expected, self.result, self.correspondence
    )


def _prepare(
    actual: Iterable[Optional[message.Message]],
    expected: Iterable[Optional[message.Message]],
    config: config_lib.ComparisonConfig,
):
  actual = tuple(actual)
  expected = tuple(expected)
  correspondence = correspondence_lib.for_collections(config, actual, expected)
  predicate = matching.index_predicate(actual, expected, correspondence)
  return actual, expected, correspondence, predicate


def contains_exactly(
    actual: Iterable[Optional[message.Message]],
    expected: Iterable[Optional[message.Message]],
    config: config_lib.ComparisonConfig = config_lib.DEFAULT_CONFIG,
    *,
    in_order: bool = False,
) -> Verdict:
  """Checks that actual and expected correspond one-to-one.

  Args:
    actual: The messages under test.
    expected: The expected messages; duplicates must be matched as often.
    config: The comparison rules.
    in_order: If set, actual[i] must correspond to expected[i].

  Returns:
    The verdict.

  Raises:
    UnresolvedFieldError: If config refers to fields that exist on none of
      the expected message types.
  """
  actual, expected, correspondence, predicate = _prepare(
      actual, expected, config
  )
  result = matching.contains_exactly(
      len(actual),
      len(expected),
      predicate,
      in_order=in_order,
      preferred=reporting.key_preference(correspondence, actual, expected),
  )
  return Verdict(
      reporting.Check.CONTAINS_EXACTLY,
      actual,
      expected,
      result,
      correspondence,
  )


def contains_all(
    actual: Iterable[Optional[message.Message]],
    expected: Iterable[Optional[message.Message]],
    config: config_lib.ComparisonConfig = config_lib.DEFAULT_CONFIG,
    *,
    in_order: bool = False,
) -> Verdict:
  """Checks that every expected message has its own corresponding actual one.

  Args:
    actual: The messages under test; may have extra elements.
    expected: The expected messages; duplicates must be matched as often.
    config: The comparison rules.
    in_order: If set, expected must correspond to a subsequence of actual.

  Returns:
    The verdict.
  """
  actual, expected, correspondence, predicate = _prepare(
      actual, expected, config
  )
  result = matching.contains_all(
      len(actual),
      len(expected),
      predicate,
      in_order=in_order,
      preferred=reporting.key_preference(correspondence, actual, expected),
  )
  return Verdict(
      reporting.Check.CONTAINS_ALL, actual, expected, result, correspondence
  )


def contains_any(
    actual: Iterable[Optional[message.Message]],
    expected: Iterable[Optional[message.Message]],
    config: config_lib.ComparisonConfig = config_lib.DEFAULT_CONFIG,
) -> Verdict:
  """Checks that some actual message corresponds to some expected one."""
  actual, expected, correspondence, predicate = _prepare(
      actual, expected, config
  )
  result = matching.contains_any(len(actual), len(expected), predicate)
  return Verdict(
      reporting.Check.CONTAINS_ANY, actual, expected, result, correspondence
  )


def contains_none(
    actual: Iterable[Optional[message.Message]],
    excluded: Iterable[Optional[message.Message]],
    config: config_lib.ComparisonConfig = config_lib.DEFAULT_CONFIG,
) -> Verdict:
  """Checks that no actual message corresponds to any excluded one."""
  actual, excluded, correspondence, predicate = _prepare(
      actual, excluded, config
  )
  result = matching.contains_none(len(actual), len(excluded), predicate)
  return Verdict(
      reporting.Check.CONTAINS_NONE, actual, excluded, result, correspondence
  )


def compare(
    actual: message.Message,
    expected: message.Message,
    config: config_lib.ComparisonConfig = config_lib.DEFAULT_CONFIG,
) -> differ.MessageDiff:
  """Returns the diff of two messages under config.

  Raises:
    UnresolvedFieldError: If config refers to fields unknown to the type of
      expected.
  """
  correspondence = correspondence_lib.for_collections(
      config, (actual,), (expected,)
  )
  return correspondence.diff(actual, expected)
