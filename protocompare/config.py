# Copyright 2023 Intrinsic Innovation LLC

"""Immutable configuration of proto comparisons.

Every rule method returns a new ComparisonConfig, so a configuration can be
shared freely, e.g. as a module level constant in a test:

  _CONFIG = config.DEFAULT_CONFIG.ignoring_repeated_field_order()
"""

import dataclasses
import math
from typing import Any, Callable, Iterable, Optional

from google.protobuf import descriptor
from google.protobuf import message
import numpy as np
from protocompare import errors
from protocompare import field_scope

KeyFunction = Callable[[message.Message], Any]


def _check_tolerance(tolerance: float) -> None:
  if isinstance(tolerance, bool) or not isinstance(
      tolerance, (int, float, np.floating)
  ):
    raise errors.InvalidArgumentError(
        f"Tolerance must be a number, got {tolerance!r}."
    )
  if not math.isfinite(tolerance) or tolerance < 0:
    raise errors.InvalidArgumentError(
        f"Tolerance must be finite and non-negative, got {tolerance}."
    )


@dataclasses.dataclass(frozen=True)
class ComparisonConfig:
  """The rules of a proto comparison.

  Attributes:
    scope: The fields to compare, before comparing_expected_fields_only is
      applied.
    ignore_field_absence: If set, unset fields compare equal to fields set to
      their default value.
    ignore_repeated_field_order: If set, repeated fields at all depths are
      compared as multisets. Map fields are always compared by key.
    ignore_extra_repeated_field_elements: If set, repeated and map fields of
      the actual message may have elements which are not expected, unless the
      expected field is empty.
    double_tolerance: Absolute tolerance for double fields.
    float_tolerance: Absolute tolerance for float fields.
    compare_expected_fields_only: If set, the scope is limited to the fields
      set in the expected messages.
    report_mismatches_only: If set, rendered diffs only list mismatches. This
      never changes the verdict.
    pairing_key_fn: Function to pair unmatched actual and expected elements
      with in failure reports.
  """

  scope: field_scope.FieldScope = dataclasses.field(
      default_factory=field_scope.all_fields
  )
  ignore_field_absence: bool = False
  ignore_repeated_field_order: bool = False
  ignore_extra_repeated_field_elements: bool = False
  double_tolerance: Optional[float] = None
  float_tolerance: Optional[float] = None
  compare_expected_fields_only: bool = False
  report_mismatches_only: bool = False
  pairing_key_fn: Optional[KeyFunction] = None

  def ignoring_field_absence(self) -> "ComparisonConfig":
    """Compares unset fields equal to fields set to their default value.

    This only affects fields which track presence, e.g. optional fields of
    proto2 messages. Proto3 scalars without presence are unaffected.
    """
    return dataclasses.replace(self, ignore_field_absence=True)

  def ignoring_repeated_field_order(self) -> "ComparisonConfig":
    """Ignores the order of repeated fields, at all depths.

    Structure is not ignored: elements are still compared as a whole, so the
    elements of nested repeated fields cannot be swapped across parents.
    """
    return dataclasses.replace(self, ignore_repeated_field_order=True)

  def ignoring_extra_repeated_field_elements(self) -> "ComparisonConfig":
    """Ignores elements of actual repeated and map fields not expected.

    Unless repeated field order is ignored as well, the expected elements
    have to appear in the actual field as a subsequence. Expected fields
    which are empty still require the actual field to be empty.
    """
    return dataclasses.replace(self, ignore_extra_repeated_field_elements=True)

  def using_double_tolerance(self, tolerance: float) -> "ComparisonConfig":
    """Compares finite double fields as equal within an absolute tolerance.

    Args:
      tolerance: A finite, non-negative tolerance.

    Raises:
      InvalidArgumentError: If tolerance is negative or not finite.
    """
    _check_tolerance(tolerance)
    return dataclasses.replace(self, double_tolerance=float(tolerance))

  def using_float_tolerance(self, tolerance: float) -> "ComparisonConfig":
    """Compares finite float fields as equal within an absolute tolerance.

    Args:
      tolerance: A finite, non-negative tolerance. It is rounded to single
        precision, like the compared values.

    Raises:
      InvalidArgumentError: If tolerance is negative or not finite.
    """
    _check_tolerance(tolerance)
    return dataclasses.replace(
        self, float_tolerance=float(np.float32(tolerance))
    )

  def comparing_expected_fields_only(self) -> "ComparisonConfig":
    """Limits the comparison to the fields set in the expected message(s).

    When several messages are expected, the union of their set fields is
    compared. Proto3 fields at their default value count as unset.
    """
    return dataclasses.replace(self, compare_expected_fields_only=True)

  def with_partial_scope(
      self, scope: field_scope.FieldScope
  ) -> "ComparisonConfig":
    """Limits the comparison to the intersection with scope."""
    return dataclasses.replace(self, scope=self.scope.intersect(scope))

  def ignoring_field_scope(
      self, scope: field_scope.FieldScope
  ) -> "ComparisonConfig":
    """Excludes all field paths of scope from the comparison."""
    return dataclasses.replace(self, scope=self.scope.subtract(scope))

  def ignoring_fields(self, *numbers: int) -> "ComparisonConfig":
    """Excludes top-level fields by number, on every occurrence of the type.

    Unknown numbers are accepted here and raise UnresolvedFieldError once the
    compared message type is known.

    Args:
      *numbers: Field numbers of the compared message type.
    """
    return dataclasses.replace(
        self, scope=self.scope.ignoring_fields(*numbers)
    )

  def ignoring_field_descriptors(
      self, *fields: descriptor.FieldDescriptor
  ) -> "ComparisonConfig":
    """Excludes the given fields wherever they occur in the message tree.

    Fields which do not occur in the compared messages are silently ignored.

    Args:
      *fields: The field descriptors to exclude.
    """
    return dataclasses.replace(
        self, scope=self.scope.ignoring_field_descriptors(*fields)
    )

  def ignoring_field_paths(self, *paths: str) -> "ComparisonConfig":
    """Excludes the sub-trees at the given dotted field name paths.

    Args:
      *paths: Paths like 'my_sub_message.my_field' into the compared type.
    """
    return dataclasses.replace(
        self, scope=self.scope.ignoring_field_paths(*paths)
    )

  def reporting_mismatches_only(self) -> "ComparisonConfig":
    return dataclasses.replace(self, report_mismatches_only=True)

  def displaying_diffs_paired_by(
      self, key_fn: KeyFunction
  ) -> "ComparisonConfig":
    """Pairs unmatched actual and expected elements by key in reports.

    Elements with a None key are never paired. This never changes the
    verdict.

    Args:
      key_fn: Function from message to a hashable key.
    """
    if not callable(key_fn):
      raise errors.InvalidArgumentError(
          f"Key function must be callable, got {key_fn!r}."
      )
    return dataclasses.replace(self, pairing_key_fn=key_fn)

  def scope_for(
      self, expected_messages: Iterable[Optional[message.Message]] = ()
  ) -> field_scope.FieldScope:
    """Returns the effective scope for comparing against expected_messages.

    Args:
      expected_messages: The expected side of the comparison. Only used if
        compare_expected_fields_only is set; None elements are skipped.
    """
    if not self.compare_expected_fields_only:
      return self.scope
    return self.scope.intersect(
        field_scope.from_set_fields(
            *[msg for msg in expected_messages if msg is not None]
        )
    )


DEFAULT_CONFIG = ComparisonConfig()
