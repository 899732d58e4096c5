# Copyright 2023 Intrinsic Innovation LLC

"""Binds a comparison configuration into a reusable pairwise predicate.

A ProtoCorrespondence answers 'does this actual message correspond to this
expected message' and explains the answer with a diff. It is what generic
containment checks consume: the predicate, a diff formatter and a key
function to pair up leftovers in failure messages.

The predicate is neither transitive nor symmetric in general, e.g. with
ignoring_extra_repeated_field_elements() or comparing_expected_fields_only().
Never use it to group messages into equivalence classes.
"""

from typing import Any, Dict, Iterable, Optional, Sequence

from absl import logging
from google.protobuf import descriptor
from google.protobuf import message
from protocompare import config as config_lib
from protocompare import differ
from protocompare import errors
from protocompare import field_scope


class ProtoCorrespondence:
  """A comparison configuration bound to its expected messages.

  The effective scope is computed once from the expected messages and
  resolved lazily, once per compared message type.
  """

  def __init__(
      self,
      config: config_lib.ComparisonConfig,
      expected_messages: Iterable[Optional[message.Message]] = (),
  ):
    self._config = config
    self._scope = config.scope_for(expected_messages)
    self._differ = differ.Differ(config)

  @property
  def config(self) -> config_lib.ComparisonConfig:
    return self._config

  @property
  def scope(self) -> field_scope.FieldScope:
    return self._scope

  def validate(self, msg_descriptor: descriptor.Descriptor) -> None:
    """Checks that the configured fields exist on msg_descriptor.

    Raises:
      UnresolvedFieldError: If the configuration refers to field numbers or
        paths which do not exist on msg_descriptor.
    """
    self._scope.validate(msg_descriptor)

  def diff(
      self, actual: message.Message, expected: message.Message
  ) -> differ.MessageDiff:
    """Returns the structural diff of actual against expected."""
    if actual.DESCRIPTOR.full_name != expected.DESCRIPTOR.full_name:
      return differ.MessageDiff(
          differ.Result.MODIFIED, actual, expected, type_mismatch=True
      )
    logic = self._scope.resolve(expected.DESCRIPTOR)
    return self._differ.diff(actual, expected, logic)

  def compare(
      self,
      actual: Optional[message.Message],
      expected: Optional[message.Message],
  ) -> bool:
    """Returns True if actual corresponds to expected.

    None only corresponds to None, and messages of different types never
    correspond.
    """
    if actual is None or expected is None:
      return actual is None and expected is None
    if not isinstance(actual, message.Message) or not isinstance(
        expected, message.Message
    ):
      return False
    return self.diff(actual, expected).is_match

  def __call__(
      self,
      actual: Optional[message.Message],
      expected: Optional[message.Message],
  ) -> bool:
    return self.compare(actual, expected)

  def format_diff(
      self,
      actual: Optional[message.Message],
      expected: Optional[message.Message],
  ) -> Optional[str]:
    """Returns a rendered diff, or None if there is nothing to explain."""
    if actual is None or expected is None:
      return None
    if not isinstance(actual, message.Message) or not isinstance(
        expected, message.Message
    ):
      return None
    return self.diff(actual, expected).format(
        self._config.report_mismatches_only
    )

  def key(self, msg: Optional[message.Message]) -> Any:
    """Returns the pairing key of msg, None if no key function is set."""
    if self._config.pairing_key_fn is None or msg is None:
      return None
    return self._config.pairing_key_fn(msg)


def for_collections(
    config: config_lib.ComparisonConfig,
    actual: Sequence[Optional[message.Message]],
    expected: Sequence[Optional[message.Message]],
) -> ProtoCorrespondence:
  """Returns the correspondence to check actual against expected with.

  The configuration is validated up front against the types of the expected
  messages, or of the actual ones if there are no expected messages. It has
  to fit at least one of them. Elements of other types simply do not
  correspond to anything.

  Args:
    config: The comparison rules.
    actual: The messages under test.
    expected: The expected (or excluded) messages.

  Raises:
    UnresolvedFieldError: If the configuration refers to fields which exist
      on none of the compared message types.
  """
  result = ProtoCorrespondence(config, expected)
  types = _message_types(expected) or _message_types(actual)
  errors_by_type = {}
  for full_name, msg_descriptor in types.items():
    try:
      result.validate(msg_descriptor)
    except errors.UnresolvedFieldError as e:
      errors_by_type[full_name] = e
  if types and len(errors_by_type) == len(types):
    raise next(iter(errors_by_type.values()))
  for full_name, error in errors_by_type.items():
    logging.debug("Configuration does not fit %s: %s", full_name, error)
  return result


def _message_types(
    messages: Sequence[Optional[message.Message]],
) -> Dict[str, descriptor.Descriptor]:
  types = {}
  for msg in messages:
    if isinstance(msg, message.Message):
      types.setdefault(msg.DESCRIPTOR.full_name, msg.DESCRIPTOR)
  return types
