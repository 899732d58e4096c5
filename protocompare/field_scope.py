# Copyright 2023 Intrinsic Innovation LLC

"""Field scopes restrict a proto comparison to a subset of the message tree.

A FieldScope is an immutable, recursively closed set of field paths. It is
built with the factory functions of this module (all_fields(),
ignoring_fields(...), from_set_fields(...), ...) and combined with union,
intersect and subtract.

Scopes that name fields by number only make sense for a concrete message
type, so every scope is resolved against the root descriptor of the compared
messages before it is evaluated. Resolution is cached per scope and
descriptor and never fails: numbers or paths a type does not have simply
match nothing in it. Whether a scope fits a type is checked separately by
FieldScope.validate.

Each field is evaluated to a FieldScopeResult. A non-recursive result decides
only the field itself; the scope of its sub-fields is given by
FieldScopeLogic.sub_scope.
"""

import abc
import collections
import enum
import functools
import threading
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from absl import logging
from google.protobuf import descriptor
from google.protobuf import message
from protocompare import errors
from protocompare.util import descriptors


class FieldScopeResult(enum.Enum):
  """Whether a field is compared, and whether that holds for its sub-tree."""

  INCLUDED_RECURSIVELY = (True, True)
  INCLUDED_NONRECURSIVELY = (True, False)
  EXCLUDED_RECURSIVELY = (False, True)
  EXCLUDED_NONRECURSIVELY = (False, False)

  @property
  def included(self) -> bool:
    return self.value[0]

  @property
  def recursive(self) -> bool:
    return self.value[1]

  @classmethod
  def of(cls, included: bool, recursive: bool) -> "FieldScopeResult":
    return cls((included, recursive))


class FieldScopeLogic(abc.ABC):
  """The evaluable form of a field scope.

  Logic objects are immutable. Before evaluation they have to be resolved
  against the root message descriptor of the comparison.
  """

  def validate(self, msg_descriptor: descriptor.Descriptor) -> None:
    """Checks that the fields this logic names exist on msg_descriptor.

    Raises:
      UnresolvedFieldError: If they do not.
    """
    del msg_descriptor

  def resolve(self, msg_descriptor: descriptor.Descriptor) -> "FieldScopeLogic":
    """Returns a logic bound to msg_descriptor, the root message type."""
    del msg_descriptor
    return self

  @abc.abstractmethod
  def policy(self, field: descriptor.FieldDescriptor) -> FieldScopeResult:
    """Returns whether field is in scope, in the message it is contained in."""

  def sub_scope(self, field: descriptor.FieldDescriptor) -> "FieldScopeLogic":
    """Returns the logic to evaluate the sub-fields of field with."""
    result = self.policy(field)
    if result is FieldScopeResult.INCLUDED_RECURSIVELY:
      return _ALL
    if result is FieldScopeResult.EXCLUDED_RECURSIVELY:
      return _NONE
    return self._sub_scope(field)

  def _sub_scope(self, field: descriptor.FieldDescriptor) -> "FieldScopeLogic":
    del field
    return self


class _AllLogic(FieldScopeLogic):

  def policy(self, field):
    return FieldScopeResult.INCLUDED_RECURSIVELY


class _NoneLogic(FieldScopeLogic):

  def policy(self, field):
    return FieldScopeResult.EXCLUDED_RECURSIVELY


_ALL = _AllLogic()
_NONE = _NoneLogic()


class _FieldNumbersLogic(FieldScopeLogic):
  """Matches the given field numbers wherever the root message type recurs."""

  def __init__(
      self,
      numbers: FrozenSet[int],
      root: Optional[descriptor.Descriptor] = None,
  ):
    self._numbers = numbers
    self._root = root

  def validate(self, msg_descriptor):
    unknown = sorted(
        number
        for number in self._numbers
        if number not in msg_descriptor.fields_by_number
    )
    if unknown:
      raise errors.UnresolvedFieldError(
          f"Field numbers {unknown} do not refer to known fields of message"
          f" {msg_descriptor.full_name}."
      )

  def resolve(self, msg_descriptor):
    return _FieldNumbersLogic(self._numbers, msg_descriptor)

  def policy(self, field):
    if self._root is None:
      raise errors.Error("Field number scopes must be resolved before use.")
    if (
        field.containing_type.full_name == self._root.full_name
        and field.number in self._numbers
    ):
      return FieldScopeResult.INCLUDED_RECURSIVELY
    return FieldScopeResult.EXCLUDED_NONRECURSIVELY


class _FieldDescriptorsLogic(FieldScopeLogic):
  """Matches the given fields anywhere in the tree.

  Descriptors that never occur in the compared tree are a no-op.
  """

  def __init__(self, full_names: FrozenSet[str]):
    self._full_names = full_names

  def policy(self, field):
    if field.full_name in self._full_names:
      return FieldScopeResult.INCLUDED_RECURSIVELY
    return FieldScopeResult.EXCLUDED_NONRECURSIVELY


class _FieldPathsLogic(FieldScopeLogic):
  """Matches sub-trees addressed by field name paths from the root.

  Paths through map fields continue in the map value message, so the logic
  steps over the 'value' field of the map entry.
  """

  def __init__(self, paths: FrozenSet[Tuple[str, ...]]):
    self._paths = paths

  def validate(self, msg_descriptor):
    for path in self._paths:
      descriptors.field_path(msg_descriptor, ".".join(path))

  def policy(self, field):
    for path in self._paths:
      if path[0] != field.name:
        continue
      if len(path) == 1:
        return FieldScopeResult.INCLUDED_RECURSIVELY
      return FieldScopeResult.EXCLUDED_NONRECURSIVELY
    return FieldScopeResult.EXCLUDED_RECURSIVELY

  def _sub_scope(self, field):
    suffixes = frozenset(
        path[1:]
        for path in self._paths
        if path[0] == field.name and len(path) > 1
    )
    if descriptors.is_map(field):
      suffixes = frozenset(("value",) + suffix for suffix in suffixes)
    return _FieldPathsLogic(suffixes)


class _SetFieldsNode:
  """Field numbers set in a message, with nodes for message valued fields."""

  def __init__(self, children: Dict[int, Optional["_SetFieldsNode"]]):
    self.children = children

  def union(self, other: "_SetFieldsNode") -> "_SetFieldsNode":
    children = dict(self.children)
    for number, child in other.children.items():
      mine = children.get(number)
      if mine is None or child is None:
        children[number] = mine or child
      else:
        children[number] = mine.union(child)
    return _SetFieldsNode(children)


def _union_nodes(nodes: Iterable[_SetFieldsNode]) -> _SetFieldsNode:
  return functools.reduce(
      lambda a, b: a.union(b), nodes, _SetFieldsNode({})
  )


def _set_fields_node(msg: message.Message) -> _SetFieldsNode:
  children = {}
  for field, value in msg.ListFields():
    if field.is_extension:
      continue
    if descriptors.is_map(field):
      value_node = None
      if descriptors.is_message(descriptors.map_value_field(field)):
        value_node = _union_nodes(
            _set_fields_node(value[key]) for key in value
        )
      children[field.number] = _SetFieldsNode({1: None, 2: value_node})
    elif descriptors.is_message(field):
      if descriptors.is_repeated(field):
        children[field.number] = _union_nodes(
            _set_fields_node(element) for element in value
        )
      else:
        children[field.number] = _set_fields_node(value)
    else:
      children[field.number] = None
  return _SetFieldsNode(children)


class _SetFieldsLogic(FieldScopeLogic):
  """Matches the fields set in a message tree, position by position.

  The trees are kept per root message type. Resolving picks the tree of the
  resolved type; a type without set fields matches nothing.
  """

  def __init__(
      self,
      nodes: Dict[str, _SetFieldsNode],
      node: Optional[_SetFieldsNode] = None,
  ):
    self._nodes = nodes
    self._node = node

  def resolve(self, msg_descriptor):
    return _SetFieldsLogic(
        self._nodes,
        self._nodes.get(msg_descriptor.full_name, _SetFieldsNode({})),
    )

  def policy(self, field):
    if self._node is None:
      raise errors.Error("Set field scopes must be resolved before use.")
    if field.number not in self._node.children:
      return FieldScopeResult.EXCLUDED_RECURSIVELY
    if self._node.children[field.number] is None:
      return FieldScopeResult.INCLUDED_RECURSIVELY
    return FieldScopeResult.INCLUDED_NONRECURSIVELY

  def _sub_scope(self, field):
    return _SetFieldsLogic(self._nodes, self._node.children[field.number])


class _CompoundLogic(FieldScopeLogic):
  """Applies a binary set operation to the results of two logics."""

  def __init__(self, left: FieldScopeLogic, right: FieldScopeLogic):
    self._left = left
    self._right = right

  @abc.abstractmethod
  def _combine(
      self, left: FieldScopeResult, right: FieldScopeResult
  ) -> FieldScopeResult:
    ...

  def validate(self, msg_descriptor):
    self._left.validate(msg_descriptor)
    self._right.validate(msg_descriptor)

  def resolve(self, msg_descriptor):
    return type(self)(
        self._left.resolve(msg_descriptor), self._right.resolve(msg_descriptor)
    )

  def policy(self, field):
    return self._combine(self._left.policy(field), self._right.policy(field))

  def _sub_scope(self, field):
    return type(self)(
        self._left.sub_scope(field), self._right.sub_scope(field)
    )


def _and(left: FieldScopeResult, right: FieldScopeResult) -> FieldScopeResult:
  excluded = FieldScopeResult.EXCLUDED_RECURSIVELY
  return FieldScopeResult.of(
      left.included and right.included,
      (left.recursive and right.recursive)
      or left is excluded
      or right is excluded,
  )


def _or(left: FieldScopeResult, right: FieldScopeResult) -> FieldScopeResult:
  included = FieldScopeResult.INCLUDED_RECURSIVELY
  return FieldScopeResult.of(
      left.included or right.included,
      (left.recursive and right.recursive)
      or left is included
      or right is included,
  )


def _not(result: FieldScopeResult) -> FieldScopeResult:
  return FieldScopeResult.of(not result.included, result.recursive)


class _UnionLogic(_CompoundLogic):

  def _combine(self, left, right):
    return _or(left, right)


class _IntersectionLogic(_CompoundLogic):

  def _combine(self, left, right):
    return _and(left, right)


class _DifferenceLogic(_CompoundLogic):

  def _combine(self, left, right):
    return _and(left, _not(right))


class FieldScope:
  """An immutable set of field paths to compare.

  Attributes:
    logic: The unresolved logic of this scope.
  """

  def __init__(self, logic: FieldScopeLogic, description: str):
    self._logic = logic
    self._description = description
    self._resolved: Dict[str, FieldScopeLogic] = {}
    self._lock = threading.Lock()

  @property
  def logic(self) -> FieldScopeLogic:
    return self._logic

  def __repr__(self) -> str:
    return self._description

  def union(self, other: "FieldScope") -> "FieldScope":
    return FieldScope(
        _UnionLogic(self._logic, other.logic), f"{self}.union({other})"
    )

  def intersect(self, other: "FieldScope") -> "FieldScope":
    return FieldScope(
        _IntersectionLogic(self._logic, other.logic),
        f"{self}.intersect({other})",
    )

  def subtract(self, other: "FieldScope") -> "FieldScope":
    return FieldScope(
        _DifferenceLogic(self._logic, other.logic),
        f"{self}.subtract({other})",
    )

  def ignoring_fields(self, *numbers: int) -> "FieldScope":
    return self.subtract(allowing_fields(*numbers))

  def ignoring_field_descriptors(
      self, *fields: descriptor.FieldDescriptor
  ) -> "FieldScope":
    return self.subtract(allowing_field_descriptors(*fields))

  def ignoring_field_paths(self, *paths: str) -> "FieldScope":
    return self.subtract(allowing_field_paths(*paths))

  def allowing_fields(self, *numbers: int) -> "FieldScope":
    return self.union(allowing_fields(*numbers))

  def allowing_field_descriptors(
      self, *fields: descriptor.FieldDescriptor
  ) -> "FieldScope":
    return self.union(allowing_field_descriptors(*fields))

  def allowing_field_paths(self, *paths: str) -> "FieldScope":
    return self.union(allowing_field_paths(*paths))

  def validate(self, msg_descriptor: descriptor.Descriptor) -> None:
    """Checks that the field numbers and paths of this scope fit a type.

    Field descriptors are not checked, they may belong to any type in the
    tree.

    Args:
      msg_descriptor: The descriptor of the root message type.

    Raises:
      UnresolvedFieldError: If the scope refers to field numbers or paths
        which do not exist on msg_descriptor.
    """
    self._logic.validate(msg_descriptor)

  def resolve(self, msg_descriptor: descriptor.Descriptor) -> FieldScopeLogic:
    """Returns the logic of this scope bound to msg_descriptor.

    Field numbers and paths unknown to msg_descriptor match no field.

    Args:
      msg_descriptor: The descriptor of the root message type.
    """
    with self._lock:
      resolved = self._resolved.get(msg_descriptor.full_name)
      if resolved is None:
        logging.debug(
            "Resolving field scope %s for %s.", self, msg_descriptor.full_name
        )
        resolved = self._logic.resolve(msg_descriptor)
        self._resolved[msg_descriptor.full_name] = resolved
      return resolved

  def contains(self, path: descriptors.FieldPath) -> bool:
    """Returns True if the field at the end of path is compared.

    Args:
      path: Field descriptors from a field of the root message type down to
        the field in question, e.g. as returned by descriptors.field_path.
    """
    if not path:
      raise errors.InvalidArgumentError("A field path must not be empty.")
    self.validate(path[0].containing_type)
    logic = self.resolve(path[0].containing_type)
    for field in path[:-1]:
      result = logic.policy(field)
      if result.recursive:
        return result.included
      logic = logic.sub_scope(field)
      if descriptors.is_map(field):
        value_field = descriptors.map_value_field(field)
        result = logic.policy(value_field)
        if result.recursive:
          return result.included
        logic = logic.sub_scope(value_field)
    return logic.policy(path[-1]).included


def all_fields() -> FieldScope:
  """Returns the scope of all fields, at all depths."""
  return FieldScope(_ALL, "all_fields()")


def no_fields() -> FieldScope:
  """Returns the empty scope."""
  return FieldScope(_NONE, "no_fields()")


def _check_numbers(numbers: Tuple[int, ...]) -> None:
  for number in numbers:
    if isinstance(number, bool) or not isinstance(number, int):
      raise errors.InvalidArgumentError(
          f"Field numbers must be integers, got {number!r}."
      )


def allowing_fields(*numbers: int) -> FieldScope:
  """Returns a scope of the given field numbers of the root message type.

  The fields are included with all their sub-fields, on every occurrence of
  the root message type in the tree. Unknown numbers raise when the scope is
  resolved against the compared type.

  Args:
    *numbers: Field numbers of the root message type.
  """
  _check_numbers(numbers)
  return FieldScope(
      _FieldNumbersLogic(frozenset(numbers)),
      f"allowing_fields({', '.join(str(n) for n in numbers)})",
  )


def ignoring_fields(*numbers: int) -> FieldScope:
  """Returns all fields except the given field numbers of the root type."""
  return all_fields().ignoring_fields(*numbers)


def allowing_field_descriptors(
    *fields: descriptor.FieldDescriptor,
) -> FieldScope:
  """Returns a scope of the given fields wherever they occur in the tree."""
  return FieldScope(
      _FieldDescriptorsLogic(frozenset(field.full_name for field in fields)),
      "allowing_field_descriptors"
      f"({', '.join(field.full_name for field in fields)})",
  )


def ignoring_field_descriptors(
    *fields: descriptor.FieldDescriptor,
) -> FieldScope:
  """Returns all fields except the given fields wherever they occur."""
  return all_fields().ignoring_field_descriptors(*fields)


def allowing_field_paths(*paths: str) -> FieldScope:
  """Returns a scope of the sub-trees at the given dotted field name paths.

  Args:
    *paths: Paths like 'my_sub_message.my_field', relative to the root type.
  """
  return FieldScope(
      _FieldPathsLogic(frozenset(tuple(path.split(".")) for path in paths)),
      f"allowing_field_paths({', '.join(paths)})",
  )


def ignoring_field_paths(*paths: str) -> FieldScope:
  """Returns all fields except the sub-trees at the given paths."""
  return all_fields().ignoring_field_paths(*paths)


def from_set_fields(*messages: message.Message) -> FieldScope:
  """Returns the scope of fields set in any of the given messages.

  Repeated message fields contribute the union of the fields set in their
  elements, map fields the union of the fields set in their values. Messages
  of different types are kept apart: resolved against a type, the scope
  holds the fields set in the messages of that type.

  Args:
    *messages: The messages whose set fields form the scope.
  """
  by_type: Dict[str, List[message.Message]] = collections.defaultdict(list)
  for msg in messages:
    by_type[msg.DESCRIPTOR.full_name].append(msg)
  nodes = {
      full_name: _union_nodes(_set_fields_node(msg) for msg in group)
      for full_name, group in by_type.items()
  }
  return FieldScope(
      _SetFieldsLogic(nodes), f"from_set_fields(<{len(messages)} messages>)"
  )
