# Copyright 2023 Intrinsic Innovation LLC

"""Helpers for inspecting proto descriptors and building descriptor pools."""

from typing import Tuple

from google.protobuf import descriptor
from google.protobuf import descriptor_pb2
from google.protobuf import descriptor_pool
from protocompare import errors

FieldPath = Tuple[descriptor.FieldDescriptor, ...]


def is_repeated(field: descriptor.FieldDescriptor) -> bool:
  """Returns True for repeated fields, including map fields."""
  return field.label == descriptor.FieldDescriptor.LABEL_REPEATED


def is_message(field: descriptor.FieldDescriptor) -> bool:
  return field.cpp_type == descriptor.FieldDescriptor.CPPTYPE_MESSAGE


def is_map(field: descriptor.FieldDescriptor) -> bool:
  """Returns True if field is a map field (a repeated map entry message)."""
  return (
      is_repeated(field)
      and is_message(field)
      and field.message_type.has_options
      and field.message_type.GetOptions().map_entry
  )


def is_double(field: descriptor.FieldDescriptor) -> bool:
  return field.cpp_type == descriptor.FieldDescriptor.CPPTYPE_DOUBLE


def is_float(field: descriptor.FieldDescriptor) -> bool:
  return field.cpp_type == descriptor.FieldDescriptor.CPPTYPE_FLOAT


def has_presence(field: descriptor.FieldDescriptor) -> bool:
  """Returns True if a singular field tracks whether it was explicitly set."""
  if is_repeated(field):
    return False
  return field.has_presence


def map_value_field(
    field: descriptor.FieldDescriptor,
) -> descriptor.FieldDescriptor:
  return field.message_type.fields_by_name["value"]


def field_path(
    msg_descriptor: descriptor.Descriptor, dotted_path: str
) -> FieldPath:
  """Resolves a dotted field name path into a tuple of field descriptors.

  dotted_path contains field names separated by '.' into the message, e.g.,
  my_sub_message.my_repeated_field.my_field. Repeated message fields and map
  fields may be traversed; for maps the next name refers to a field of the
  map value message.

  Args:
    msg_descriptor: The descriptor of the root message type.
    dotted_path: The path to resolve.

  Returns:
    The field descriptors along the path, starting at the root.

  Raises:
    UnresolvedFieldError: If a name along the path is not a field of the
      message it is applied to, or a non-message field is traversed.
  """
  path = []
  current = msg_descriptor
  names = dotted_path.split(".")
  for index, name in enumerate(names):
    if current is None or name not in current.fields_by_name:
      owner = current.full_name if current is not None else "a scalar"
      raise errors.UnresolvedFieldError(
          f"Field {name} in field path {dotted_path} does not refer to"
          f" a known field for message {owner}."
      )
    field = current.fields_by_name[name]
    path.append(field)
    if index == len(names) - 1:
      break
    if is_map(field):
      value = map_value_field(field)
      current = value.message_type if is_message(value) else None
    elif is_message(field):
      current = field.message_type
    else:
      raise errors.UnresolvedFieldError(
          f"Field {name} in field path {dotted_path} does not refer to"
          f" a message field for message {current.full_name}."
      )
  return tuple(path)


def create_descriptor_pool(
    file_set: descriptor_pb2.FileDescriptorSet,
) -> descriptor_pool.DescriptorPool:
  """Returns a new DescriptorPool holding every file of file_set.

  Files are added after the files they import, since the cpp and upb
  backends resolve type names when a file is added. Imports missing from
  file_set must already be known to the pool, i.e. they fail on add.

  Args:
    file_set: The files to add, in any order.
  """
  pool = descriptor_pool.DescriptorPool()
  pending = {file_proto.name: file_proto for file_proto in file_set.file}
  added = set()
  while pending:
    ready = [
        name
        for name, file_proto in pending.items()
        if all(
            dependency in added or dependency not in pending
            for dependency in file_proto.dependency
        )
    ]
    if not ready:
      raise errors.InvalidArgumentError(
          f"Files {sorted(pending)} import each other in a cycle."
      )
    for name in ready:
      pool.AddSerializedFile(pending.pop(name).SerializeToString())
      added.add(name)
  return pool
