# Copyright 2023 Intrinsic Innovation LLC

"""Recursive, schema driven diff of two messages of the same type.

The differ walks the fields of the expected message type and compares each
field in scope according to a ComparisonConfig. The result is a tree of diff
nodes mirroring the message, with a verdict on every node. Fields which are
unset on both sides produce no node.
"""

import dataclasses
import enum
import math
from typing import Any, List, Optional, Tuple, Union

from google.protobuf import descriptor
from google.protobuf import message
from google.protobuf import text_format
import numpy as np
from protocompare import config as config_lib
from protocompare import field_scope
from protocompare import matching
from protocompare.util import descriptors

_EXCLUDED_RECURSIVELY = field_scope.FieldScopeResult.EXCLUDED_RECURSIVELY


class Result(enum.Enum):
  """The verdict on a diff node."""

  MATCHED = "matched"
  IGNORED = "ignored"
  MODIFIED = "modified"
  # Present only in the actual message.
  ADDED = "added"
  # Present only in the expected message.
  DELETED = "deleted"

  @property
  def is_match(self) -> bool:
    return self in (Result.MATCHED, Result.IGNORED)


@dataclasses.dataclass(frozen=True)
class MessageDiff:
  """The diff of two messages.

  Attributes:
    result: MATCHED if all compared fields match, MODIFIED otherwise.
    actual: The actual message.
    expected: The expected message.
    fields: Diffs of the fields set in either message.
    type_mismatch: True if the messages are of different types, in which case
      no fields are compared.
  """

  result: Result
  actual: message.Message
  expected: message.Message
  fields: Tuple["FieldDiff", ...] = ()
  type_mismatch: bool = False

  @property
  def is_match(self) -> bool:
    return self.result.is_match

  def format(self, report_mismatches_only: bool = False) -> str:
    """Renders the diff, one line per compared leaf.

    Args:
      report_mismatches_only: If set, matched and ignored leaves are omitted.

    Returns:
      Lines like 'modified: o_int: 3 -> 4'.
    """
    if self.type_mismatch:
      return (
          f"modified: message type: {self.expected.DESCRIPTOR.full_name} ->"
          f" {self.actual.DESCRIPTOR.full_name}"
      )
    lines = []
    _format_message(self, "", report_mismatches_only, lines)
    return "\n".join(lines)


@dataclasses.dataclass(frozen=True)
class SingularFieldDiff:
  """The diff of a non-repeated field.

  Attributes:
    field: The compared field.
    result: The verdict.
    actual: The actual value, None if unset.
    expected: The expected value, None if unset.
    breakdown: For message fields, the diff of the sub-messages.
  """

  field: descriptor.FieldDescriptor
  result: Result
  actual: Any = None
  expected: Any = None
  breakdown: Optional[MessageDiff] = None


@dataclasses.dataclass(frozen=True)
class ElementDiff:
  """The diff of an element of a repeated field.

  Attributes:
    result: The verdict.
    actual_index: Index of the actual element, None if there is none.
    expected_index: Index of the expected element, None if there is none.
    actual: The actual element.
    expected: The expected element.
    breakdown: For message elements, the diff of the two elements.
  """

  result: Result
  actual_index: Optional[int]
  expected_index: Optional[int]
  actual: Any = None
  expected: Any = None
  breakdown: Optional[MessageDiff] = None


@dataclasses.dataclass(frozen=True)
class RepeatedFieldDiff:
  """The diff of a repeated field.

  Attributes:
    field: The compared field.
    result: MATCHED if all elements match, MODIFIED otherwise.
    ordered: False if elements were matched ignoring their order.
    elements: Diffs of the paired and unpaired elements.
  """

  field: descriptor.FieldDescriptor
  result: Result
  ordered: bool
  elements: Tuple[ElementDiff, ...] = ()


@dataclasses.dataclass(frozen=True)
class EntryDiff:
  """The diff of a map entry; entries are always paired by key."""

  key: Any
  result: Result
  actual: Any = None
  expected: Any = None
  breakdown: Optional[MessageDiff] = None


@dataclasses.dataclass(frozen=True)
class MapFieldDiff:
  field: descriptor.FieldDescriptor
  result: Result
  entries: Tuple[EntryDiff, ...] = ()


FieldDiff = Union[SingularFieldDiff, RepeatedFieldDiff, MapFieldDiff]


def _same_float(actual: float, expected: float) -> bool:
  """Representational float equality: NaN equals NaN, 0.0 differs from -0.0."""
  if math.isnan(actual) or math.isnan(expected):
    return math.isnan(actual) and math.isnan(expected)
  return actual == expected and math.copysign(1.0, actual) == math.copysign(
      1.0, expected
  )


def _within_tolerance(actual: float, expected: float, tolerance: float) -> bool:
  if math.isfinite(actual) and math.isfinite(expected):
    return abs(actual - expected) <= tolerance
  return _same_float(actual, expected)


def _within_float_tolerance(
    actual: float, expected: float, tolerance: float
) -> bool:
  if math.isfinite(actual) and math.isfinite(expected):
    with np.errstate(over="ignore"):
      difference = abs(np.float32(actual) - np.float32(expected))
    return bool(difference <= np.float32(tolerance))
  return _same_float(actual, expected)


class Differ:
  """Compares messages according to a ComparisonConfig.

  The scope is passed per call as a resolved FieldScopeLogic, since it may
  depend on the expected messages.
  """

  def __init__(self, config: config_lib.ComparisonConfig):
    self._config = config

  def diff(
      self,
      actual: message.Message,
      expected: message.Message,
      logic: field_scope.FieldScopeLogic,
  ) -> MessageDiff:
    """Returns the diff of two messages.

    Args:
      actual: The actual message.
      expected: The expected message.
      logic: The scope, resolved against the type of expected.
    """
    if actual.DESCRIPTOR.full_name != expected.DESCRIPTOR.full_name:
      return MessageDiff(
          Result.MODIFIED, actual, expected, type_mismatch=True
      )
    fields = []
    for field in expected.DESCRIPTOR.fields:
      if descriptors.is_map(field):
        node = self._diff_map_field(actual, expected, field, logic)
      elif descriptors.is_repeated(field):
        node = self._diff_repeated_field(actual, expected, field, logic)
      else:
        node = self._diff_singular_field(actual, expected, field, logic)
      if node is not None:
        fields.append(node)
    result = (
        Result.MATCHED
        if all(node.result.is_match for node in fields)
        else Result.MODIFIED
    )
    return MessageDiff(result, actual, expected, tuple(fields))

  def _values_equal(
      self, field: descriptor.FieldDescriptor, actual: Any, expected: Any
  ) -> bool:
    if descriptors.is_double(field):
      if self._config.double_tolerance is not None:
        return _within_tolerance(
            actual, expected, self._config.double_tolerance
        )
      return _same_float(actual, expected)
    if descriptors.is_float(field):
      if self._config.float_tolerance is not None:
        return _within_float_tolerance(
            actual, expected, self._config.float_tolerance
        )
      return _same_float(actual, expected)
    return actual == expected

  def _compare_values(
      self,
      field: descriptor.FieldDescriptor,
      actual: Any,
      expected: Any,
      logic: field_scope.FieldScopeLogic,
  ) -> Tuple[Result, Optional[MessageDiff]]:
    """Compares two values of field, which may be elements or map values."""
    if descriptors.is_message(field):
      breakdown = self.diff(actual, expected, logic)
      return (
          Result.MATCHED if breakdown.is_match else Result.MODIFIED,
          breakdown,
      )
    if self._values_equal(field, actual, expected):
      return Result.MATCHED, None
    return Result.MODIFIED, None

  def _diff_singular_field(
      self,
      actual: message.Message,
      expected: message.Message,
      field: descriptor.FieldDescriptor,
      logic: field_scope.FieldScopeLogic,
  ) -> Optional[SingularFieldDiff]:
    has_actual = _is_set(actual, field)
    has_expected = _is_set(expected, field)
    if not has_actual and not has_expected:
      return None
    actual_value = getattr(actual, field.name)
    expected_value = getattr(expected, field.name)
    shown_actual = actual_value if has_actual else None
    shown_expected = expected_value if has_expected else None

    policy = logic.policy(field)
    if policy is _EXCLUDED_RECURSIVELY or (
        not policy.included and not descriptors.is_message(field)
    ):
      return SingularFieldDiff(
          field, Result.IGNORED, shown_actual, shown_expected
      )

    compare_presence = (
        policy.included
        and not self._config.ignore_field_absence
        and descriptors.has_presence(field)
    )
    if compare_presence and has_actual != has_expected:
      return SingularFieldDiff(
          field,
          Result.ADDED if has_actual else Result.DELETED,
          shown_actual,
          shown_expected,
      )
    # Unset values compare as their defaults from here on.
    result, breakdown = self._compare_values(
        field, actual_value, expected_value, logic.sub_scope(field)
    )
    return SingularFieldDiff(
        field, result, shown_actual, shown_expected, breakdown
    )

  def _compare_unpaired(
      self,
      field: descriptor.FieldDescriptor,
      value: Any,
      policy: field_scope.FieldScopeResult,
      logic: field_scope.FieldScopeLogic,
      is_actual: bool,
      tolerate_extra: bool,
  ) -> Tuple[Result, Optional[MessageDiff]]:
    """Judges an element or map value without counterpart.

    If the field itself is not in scope, only the in-scope content of the
    value counts, so it is compared to the default instance.
    """
    if not policy.included:
      if not descriptors.is_message(field):
        return Result.IGNORED, None
      default = type(value)()
      if is_actual:
        breakdown = self.diff(value, default, logic)
      else:
        breakdown = self.diff(default, value, logic)
      if breakdown.is_match:
        return Result.IGNORED, None
      return (Result.ADDED if is_actual else Result.DELETED), None
    if is_actual:
      return (Result.IGNORED if tolerate_extra else Result.ADDED), None
    return Result.DELETED, None

  def _diff_repeated_field(
      self,
      actual: message.Message,
      expected: message.Message,
      field: descriptor.FieldDescriptor,
      logic: field_scope.FieldScopeLogic,
  ) -> Optional[RepeatedFieldDiff]:
    actual_list = list(getattr(actual, field.name))
    expected_list = list(getattr(expected, field.name))
    if not actual_list and not expected_list:
      return None
    ordered = not self._config.ignore_repeated_field_order

    policy = logic.policy(field)
    if policy is _EXCLUDED_RECURSIVELY or (
        not policy.included and not descriptors.is_message(field)
    ):
      return RepeatedFieldDiff(field, Result.IGNORED, ordered)

    element_logic = logic.sub_scope(field)
    # An empty expected field still requires an empty actual field.
    tolerate_extra = (
        self._config.ignore_extra_repeated_field_elements
        and bool(expected_list)
    )
    compared = {}

    def compare(actual_index: int, expected_index: int):
      key = (actual_index, expected_index)
      if key not in compared:
        compared[key] = self._compare_values(
            field,
            actual_list[actual_index],
            expected_list[expected_index],
            element_logic,
        )
      return compared[key]

    def corresponds(actual_index: int, expected_index: int) -> bool:
      return compare(actual_index, expected_index)[0].is_match

    if ordered and not tolerate_extra:
      pairing = {
          i: i for i in range(min(len(actual_list), len(expected_list)))
      }
    elif ordered:
      pairing = matching.greedy_subsequence(
          len(actual_list), len(expected_list), corresponds
      )
    else:
      pairing = matching.maximum_matching(
          len(actual_list), len(expected_list), corresponds
      )

    elements: List[ElementDiff] = []
    for expected_index in range(len(expected_list)):
      expected_value = expected_list[expected_index]
      actual_index = pairing.get(expected_index)
      if actual_index is None:
        result, breakdown = self._compare_unpaired(
            field, expected_value, policy, element_logic, False, tolerate_extra
        )
        elements.append(
            ElementDiff(
                result, None, expected_index, None, expected_value, breakdown
            )
        )
        continue
      result, breakdown = compare(actual_index, expected_index)
      elements.append(
          ElementDiff(
              result,
              actual_index,
              expected_index,
              actual_list[actual_index],
              expected_value,
              breakdown,
          )
      )
    paired_actual = set(pairing.values())
    for actual_index, actual_value in enumerate(actual_list):
      if actual_index in paired_actual:
        continue
      result, breakdown = self._compare_unpaired(
          field, actual_value, policy, element_logic, True, tolerate_extra
      )
      elements.append(
          ElementDiff(result, actual_index, None, actual_value, None, breakdown)
      )
    result = (
        Result.MATCHED
        if all(element.result.is_match for element in elements)
        else Result.MODIFIED
    )
    return RepeatedFieldDiff(field, result, ordered, tuple(elements))

  def _diff_map_field(
      self,
      actual: message.Message,
      expected: message.Message,
      field: descriptor.FieldDescriptor,
      logic: field_scope.FieldScopeLogic,
  ) -> Optional[MapFieldDiff]:
    actual_map = getattr(actual, field.name)
    expected_map = getattr(expected, field.name)
    if not actual_map and not expected_map:
      return None
    policy = logic.policy(field)
    if policy is _EXCLUDED_RECURSIVELY:
      return MapFieldDiff(field, Result.IGNORED)

    entry_logic = logic.sub_scope(field)
    value_field = descriptors.map_value_field(field)
    value_policy = entry_logic.policy(value_field)
    value_logic = entry_logic.sub_scope(value_field)
    ignore_values = value_policy is _EXCLUDED_RECURSIVELY or (
        not value_policy.included and not descriptors.is_message(value_field)
    )
    tolerate_extra = (
        self._config.ignore_extra_repeated_field_elements
        and bool(expected_map)
    )

    entries = []
    for key in sorted(set(actual_map) | set(expected_map)):
      in_actual = key in actual_map
      in_expected = key in expected_map
      actual_value = actual_map[key] if in_actual else None
      expected_value = expected_map[key] if in_expected else None
      if in_actual and in_expected:
        if ignore_values:
          result, breakdown = Result.IGNORED, None
        else:
          result, breakdown = self._compare_values(
              value_field, actual_value, expected_value, value_logic
          )
      elif in_actual:
        result, breakdown = self._compare_unpaired(
            value_field, actual_value, policy, value_logic, True, tolerate_extra
        )
      else:
        result, breakdown = self._compare_unpaired(
            value_field,
            expected_value,
            policy,
            value_logic,
            False,
            tolerate_extra,
        )
      entries.append(
          EntryDiff(key, result, actual_value, expected_value, breakdown)
      )
    result = (
        Result.MATCHED
        if all(entry.result.is_match for entry in entries)
        else Result.MODIFIED
    )
    return MapFieldDiff(field, result, tuple(entries))


def _is_set(msg: message.Message, field: descriptor.FieldDescriptor) -> bool:
  if descriptors.has_presence(field):
    return msg.HasField(field.name)
  return getattr(msg, field.name) != field.default_value


def _format_value(field: descriptor.FieldDescriptor, value: Any) -> str:
  if value is None:
    return "<unset>"
  if isinstance(value, message.Message):
    return "{ %s }" % text_format.MessageToString(value, as_one_line=True)
  if field.cpp_type == descriptor.FieldDescriptor.CPPTYPE_ENUM:
    enum_value = field.enum_type.values_by_number.get(value)
    return enum_value.name if enum_value is not None else str(value)
  if isinstance(value, str):
    return '"%s"' % value
  return repr(value)


def _format_leaf(
    result: Result,
    path: str,
    field: descriptor.FieldDescriptor,
    actual: Any,
    expected: Any,
) -> str:
  if result is Result.MODIFIED:
    return (
        f"modified: {path}: {_format_value(field, expected)} ->"
        f" {_format_value(field, actual)}"
    )
  if result is Result.ADDED:
    return f"added: {path}: {_format_value(field, actual)}"
  if result is Result.DELETED:
    return f"deleted: {path}: {_format_value(field, expected)}"
  if result is Result.IGNORED:
    return f"ignored: {path}"
  shown = actual if actual is not None else expected
  return f"matched: {path}: {_format_value(field, shown)}"


def _format_node(
    result: Result,
    path: str,
    field: descriptor.FieldDescriptor,
    actual: Any,
    expected: Any,
    breakdown: Optional[MessageDiff],
    report_mismatches_only: bool,
    lines: List[str],
) -> None:
  if report_mismatches_only and result.is_match:
    return
  if breakdown is not None and result in (Result.MATCHED, Result.MODIFIED):
    _format_message(breakdown, path + ".", report_mismatches_only, lines)
    return
  lines.append(_format_leaf(result, path, field, actual, expected))


def _format_message(
    diff: MessageDiff,
    prefix: str,
    report_mismatches_only: bool,
    lines: List[str],
) -> None:
  for node in diff.fields:
    path = prefix + node.field.name
    if isinstance(node, SingularFieldDiff):
      _format_node(
          node.result,
          path,
          node.field,
          node.actual,
          node.expected,
          node.breakdown,
          report_mismatches_only,
          lines,
      )
    elif isinstance(node, RepeatedFieldDiff):
      if not node.elements:
        if not report_mismatches_only:
          lines.append(f"{node.result.value}: {path}")
        continue
      for element in node.elements:
        if element.expected_index is None:
          index = str(element.actual_index)
        elif element.actual_index in (None, element.expected_index):
          index = str(element.expected_index)
        else:
          index = f"{element.expected_index} -> {element.actual_index}"
        _format_node(
            element.result,
            f"{path}[{index}]",
            node.field,
            element.actual,
            element.expected,
            element.breakdown,
            report_mismatches_only,
            lines,
        )
    else:
      if not node.entries:
        if not report_mismatches_only:
          lines.append(f"{node.result.value}: {path}")
        continue
      value_field = descriptors.map_value_field(node.field)
      for entry in node.entries:
        _format_node(
            entry.result,
            f"{path}[{entry.key!r}]",
            value_field,
            entry.actual,
            entry.expected,
            entry.breakdown,
            report_mismatches_only,
            lines,
        )
