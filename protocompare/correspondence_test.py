# Copyright 2023 Intrinsic Innovation LLC

"""Tests for protocompare.correspondence."""

from protocompare import config
from protocompare import correspondence
from protocompare import errors
from protocompare.testing import test_messages
from absl.testing import absltest

_DEFAULT = config.DEFAULT_CONFIG
_M2 = test_messages.TestMessage2
_M3 = test_messages.TestMessage3


class ProtoCorrespondenceTest(absltest.TestCase):

  def test_compare(self):
    matcher = correspondence.ProtoCorrespondence(_DEFAULT)
    self.assertTrue(matcher.compare(_M2(o_int=1), _M2(o_int=1)))
    self.assertFalse(matcher.compare(_M2(o_int=1), _M2(o_int=2)))
    self.assertTrue(matcher(_M2(o_int=1), _M2(o_int=1)))

  def test_none_only_corresponds_to_none(self):
    matcher = correspondence.ProtoCorrespondence(_DEFAULT)
    self.assertTrue(matcher.compare(None, None))
    self.assertFalse(matcher.compare(None, _M2()))
    self.assertFalse(matcher.compare(_M2(), None))
    self.assertIsNone(matcher.format_diff(None, _M2()))

  def test_type_mismatch_is_not_an_error(self):
    matcher = correspondence.ProtoCorrespondence(_DEFAULT)
    self.assertFalse(matcher.compare(_M3(), _M2()))
    self.assertFalse(matcher.compare("o_int: 1", _M2(o_int=1)))

  def test_format_diff(self):
    matcher = correspondence.ProtoCorrespondence(_DEFAULT)
    self.assertEqual(
        matcher.format_diff(
            _M2(o_int=2, r_string=["a"]), _M2(o_int=1, r_string=["a"])
        ),
        'modified: o_int: 1 -> 2\nmatched: r_string[0]: "a"',
    )
    mismatches_only = correspondence.ProtoCorrespondence(
        _DEFAULT.reporting_mismatches_only()
    )
    self.assertEqual(
        mismatches_only.format_diff(
            _M2(o_int=2, r_string=["a"]), _M2(o_int=1, r_string=["a"])
        ),
        "modified: o_int: 1 -> 2",
    )

  def test_expected_fields_only_uses_all_expected_messages(self):
    expected = [_M2(o_int=1), _M2(r_string=["a"])]
    matcher = correspondence.ProtoCorrespondence(
        _DEFAULT.comparing_expected_fields_only(), expected
    )
    # o_int is in scope because the first expected message sets it.
    self.assertFalse(
        matcher.compare(_M2(o_int=5, r_string=["a"]), expected[1])
    )
    self.assertTrue(
        matcher.compare(_M2(r_string=["a"], o_float=1), expected[1])
    )

  def test_not_symmetric_with_extra_elements(self):
    matcher = correspondence.ProtoCorrespondence(
        _DEFAULT.ignoring_extra_repeated_field_elements()
    )
    big = _M2(r_string=["a", "b"])
    small = _M2(r_string=["a"])
    self.assertTrue(matcher.compare(big, small))
    self.assertFalse(matcher.compare(small, big))

  def test_key(self):
    matcher = correspondence.ProtoCorrespondence(_DEFAULT)
    self.assertIsNone(matcher.key(_M2(o_int=1)))
    keyed = correspondence.ProtoCorrespondence(
        _DEFAULT.displaying_diffs_paired_by(lambda msg: msg.o_int)
    )
    self.assertEqual(keyed.key(_M2(o_int=1)), 1)
    self.assertIsNone(keyed.key(None))


class ForCollectionsTest(absltest.TestCase):

  def test_validates_expected_message_types(self):
    # TestMessage3 has no field 5.
    comparison = _DEFAULT.ignoring_fields(5)
    correspondence.for_collections(comparison, [_M2()], [_M2()])
    with self.assertRaises(errors.UnresolvedFieldError):
      correspondence.for_collections(comparison, [_M2()], [_M3()])

  def test_actual_of_other_type_does_not_correspond(self):
    matcher = correspondence.for_collections(
        _DEFAULT.ignoring_fields(5), [_M3(o_int=1)], [_M2(o_int=1)]
    )
    self.assertFalse(matcher.compare(_M3(o_int=1), _M2(o_int=1)))
    self.assertTrue(matcher.compare(_M2(o_int=1, o_float=2.0), _M2(o_int=1)))

  def test_fits_one_of_the_expected_types(self):
    matcher = correspondence.for_collections(
        _DEFAULT.ignoring_fields(5), [], [_M3(o_int=1), _M2(o_int=1)]
    )
    self.assertTrue(matcher.compare(_M3(o_int=1), _M3(o_int=1)))
    self.assertFalse(matcher.compare(_M3(o_int=2), _M3(o_int=1)))

  def test_validates_actual_types_without_expected_messages(self):
    with self.assertRaises(errors.UnresolvedFieldError):
      correspondence.for_collections(
          _DEFAULT.ignoring_fields(5), [_M3()], [None]
      )

  def test_expected_fields_only_per_type(self):
    matcher = correspondence.for_collections(
        _DEFAULT.comparing_expected_fields_only(),
        [],
        [_M3(o_int=1), _M2(o_float=1.0)],
    )
    self.assertTrue(matcher.compare(_M3(o_int=1, o_double=2.0), _M3(o_int=1)))
    self.assertTrue(matcher.compare(_M2(o_int=7, o_float=1.0), _M2(o_float=1)))
    self.assertFalse(matcher.compare(_M2(o_float=2.0), _M2(o_float=1.0)))

  def test_skips_none(self):
    matcher = correspondence.for_collections(_DEFAULT, [None], [None, _M2()])
    self.assertTrue(matcher.compare(None, None))

  def test_unresolved_path(self):
    with self.assertRaises(errors.UnresolvedFieldError):
      correspondence.for_collections(
          _DEFAULT.ignoring_field_paths("o_test_message.o_missing"),
          [],
          [_M2()],
      )


if __name__ == "__main__":
  absltest.main()
