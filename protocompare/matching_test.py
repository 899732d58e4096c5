# Copyright 2023 Intrinsic Innovation LLC

"""Tests for protocompare.matching."""

from protocompare import matching
from absl.testing import absltest
from absl.testing import parameterized

_Outcome = matching.Outcome


def _equal(actual, expected):
  return lambda a, e: actual[a] == expected[e]


class MaximumMatchingTest(absltest.TestCase):

  def test_augments_over_greedy_choice(self):
    # expected 0 accepts actual 0 or 1, expected 1 only actual 0.
    edges = {(0, 0), (1, 0), (0, 1)}
    result = matching.maximum_matching(2, 2, lambda a, e: (a, e) in edges)
    self.assertEqual(result, {0: 1, 1: 0})

  def test_preferred_pairs_are_maximized(self):
    # Every actual corresponds to every expected; keys pair 0-1 and 1-0.
    result = matching.maximum_matching(
        2, 2, lambda a, e: True, preferred=lambda a, e: a != e
    )
    self.assertEqual(result, {0: 1, 1: 0})

  def test_preference_never_shrinks_the_matching(self):
    # Preferring 0-0 would leave expected 1 without a partner.
    edges = {(0, 0), (1, 0), (0, 1)}
    result = matching.maximum_matching(
        2,
        2,
        lambda a, e: (a, e) in edges,
        preferred=lambda a, e: (a, e) == (0, 0),
    )
    self.assertEqual(result, {0: 1, 1: 0})

  def test_preferred_pairs_found_through_reassignment(self):
    # Expected 0 prefers actual 1, expected 1 prefers actual 2.
    preferred = {(1, 0), (2, 1)}
    result = matching.maximum_matching(
        3,
        2,
        lambda a, e: a >= e,
        preferred=lambda a, e: (a, e) in preferred,
    )
    self.assertEqual(result, {0: 1, 1: 2})

  def test_augmenting_path_through_every_element(self):
    # Expected j accepts actual j and j + 1, cyclically. Matching the last
    # expected element reassigns every earlier one.
    size = 2000
    result = matching.maximum_matching(
        size, size, lambda a, e: a == e or a == (e + 1) % size
    )
    self.assertLen(result, size)
    self.assertLen(set(result.values()), size)


class ContainsExactlyTest(parameterized.TestCase):

  def test_order_is_ignored(self):
    actual, expected = [1, 2, 3], [3, 1, 2]
    result = matching.contains_exactly(3, 3, _equal(actual, expected))
    self.assertTrue(result.passed)
    self.assertEqual(result.pairs, ((2, 0), (0, 1), (1, 2)))

  def test_multiplicity_counts(self):
    actual, expected = ["x", "x", "y"], ["x", "y"]
    result = matching.contains_exactly(3, 2, _equal(actual, expected))
    self.assertEqual(result.outcome, _Outcome.ELEMENTS_DIFFER)
    self.assertEqual(result.unmatched_actual, (1,))
    self.assertEqual(result.unmatched_expected, ())

  def test_missing_element(self):
    actual, expected = [1], [1, 2]
    result = matching.contains_exactly(1, 2, _equal(actual, expected))
    self.assertEqual(result.outcome, _Outcome.ELEMENTS_DIFFER)
    self.assertEqual(result.unmatched_expected, (1,))

  def test_in_order(self):
    actual, expected = [1, 2], [2, 1]
    predicate = _equal(actual, expected)
    self.assertEqual(
        matching.contains_exactly(2, 2, predicate, in_order=True).outcome,
        _Outcome.NOT_IN_ORDER,
    )
    self.assertTrue(
        matching.contains_exactly(2, 2, _equal(actual, actual), in_order=True)
        .passed
    )

  def test_empty(self):
    self.assertTrue(matching.contains_exactly(0, 0, lambda a, e: True).passed)

  def test_long_chain(self):
    size = 1500
    result = matching.contains_exactly(
        size, size, lambda a, e: a == e or a == (e + 1) % size
    )
    self.assertTrue(result.passed)


class ContainsAllTest(parameterized.TestCase):

  @parameterized.named_parameters(
      ("subsequence", [1, 2, 3], [1, 3], True, _Outcome.PASSED),
      ("reversed", [1, 2, 3], [3, 1], True, _Outcome.NOT_IN_ORDER),
      ("reversed_unordered", [1, 2, 3], [3, 1], False, _Outcome.PASSED),
      ("missing", [1, 2, 3], [4], False, _Outcome.ELEMENTS_DIFFER),
      ("duplicate", [1, 2], [1, 1], False, _Outcome.ELEMENTS_DIFFER),
      ("empty_expected", [1], [], True, _Outcome.PASSED),
  )
  def test_contains_all(self, actual, expected, in_order, outcome):
    result = matching.contains_all(
        len(actual), len(expected), _equal(actual, expected), in_order=in_order
    )
    self.assertEqual(result.outcome, outcome)

  def test_in_order_pairs_are_the_subsequence(self):
    actual, expected = [1, 2, 3], [1, 3]
    result = matching.contains_all(
        3, 2, _equal(actual, expected), in_order=True
    )
    self.assertEqual(result.pairs, ((0, 0), (2, 1)))
    self.assertEqual(result.unmatched_actual, (1,))


class ContainsAnyAndNoneTest(absltest.TestCase):

  def test_contains_any(self):
    actual, expected = [1, 2], [5, 2]
    result = matching.contains_any(2, 2, _equal(actual, expected))
    self.assertTrue(result.passed)
    self.assertEqual(result.pairs, ((1, 1),))

  def test_contains_any_of_nothing_fails(self):
    result = matching.contains_any(2, 0, lambda a, e: True)
    self.assertEqual(result.outcome, _Outcome.ELEMENTS_DIFFER)

  def test_contains_none(self):
    actual, excluded = [1, 2, 2], [2, 3]
    result = matching.contains_none(3, 2, _equal(actual, excluded))
    self.assertEqual(result.outcome, _Outcome.ELEMENTS_DIFFER)
    self.assertEqual(result.pairs, ((1, 0), (2, 0)))
    self.assertEqual(result.unmatched_actual, (0,))
    self.assertEqual(result.unmatched_expected, (1,))

  def test_contains_none_passes(self):
    result = matching.contains_none(1, 1, lambda a, e: False)
    self.assertTrue(result.passed)


class IndexPredicateTest(absltest.TestCase):

  def test_evaluates_each_pair_once(self):
    calls = []

    def predicate(actual, expected):
      calls.append((actual, expected))
      return actual == expected

    evaluate = matching.index_predicate(["a"], ["a", "b"], predicate)
    self.assertTrue(evaluate(0, 0))
    self.assertTrue(evaluate(0, 0))
    self.assertFalse(evaluate(0, 1))
    self.assertEqual(calls, [("a", "a"), ("a", "b")])


if __name__ == "__main__":
  absltest.main()
