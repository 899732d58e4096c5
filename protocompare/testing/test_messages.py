# Copyright 2023 Intrinsic Innovation LLC

"""Message types for testing proto comparisons.

The types are built at import time from a text format FileDescriptorSet, so
no generated code is needed. For brevity: o_ means 'optional', r_ means
'repeated'.
"""

from google.protobuf import descriptor_pb2
from google.protobuf import message_factory
from google.protobuf import text_format
from protocompare.util import descriptors

_PACKAGE = "protocompare.testing"

_FILE_DESCRIPTOR_SET = """
file {
  name: "protocompare/testing/test_message2.proto"
  package: "protocompare.testing"
  syntax: "proto2"
  message_type {
    name: "TestMessage2"
    field { name: "o_int" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }
    field { name: "r_string" number: 2 label: LABEL_REPEATED type: TYPE_STRING }
    field {
      name: "o_long_defaults_to_42"
      number: 3
      label: LABEL_OPTIONAL
      type: TYPE_INT64
      default_value: "42"
    }
    field {
      name: "o_enum"
      number: 4
      label: LABEL_OPTIONAL
      type: TYPE_ENUM
      type_name: ".protocompare.testing.TestMessage2.TestEnum2"
    }
    field { name: "o_float" number: 5 label: LABEL_OPTIONAL type: TYPE_FLOAT }
    field { name: "o_double" number: 6 label: LABEL_OPTIONAL type: TYPE_DOUBLE }
    field {
      name: "o_required_string_message"
      number: 7
      label: LABEL_OPTIONAL
      type: TYPE_MESSAGE
      type_name: ".protocompare.testing.RequiredStringMessage2"
    }
    field {
      name: "r_required_string_message"
      number: 8
      label: LABEL_REPEATED
      type: TYPE_MESSAGE
      type_name: ".protocompare.testing.RequiredStringMessage2"
    }
    field {
      name: "o_test_message"
      number: 9
      label: LABEL_OPTIONAL
      type: TYPE_MESSAGE
      type_name: ".protocompare.testing.TestMessage2"
    }
    field {
      name: "r_test_message"
      number: 10
      label: LABEL_REPEATED
      type: TYPE_MESSAGE
      type_name: ".protocompare.testing.TestMessage2"
    }
    field {
      name: "o_sub_test_message"
      number: 11
      label: LABEL_OPTIONAL
      type: TYPE_MESSAGE
      type_name: ".protocompare.testing.SubTestMessage2"
    }
    field {
      name: "r_sub_test_message"
      number: 12
      label: LABEL_REPEATED
      type: TYPE_MESSAGE
      type_name: ".protocompare.testing.SubTestMessage2"
    }
    field {
      name: "test_message_map"
      number: 13
      label: LABEL_REPEATED
      type: TYPE_MESSAGE
      type_name: ".protocompare.testing.TestMessage2.TestMessageMapEntry"
    }
    field {
      name: "string_int_map"
      number: 14
      label: LABEL_REPEATED
      type: TYPE_MESSAGE
      type_name: ".protocompare.testing.TestMessage2.StringIntMapEntry"
    }
    field { name: "r_double" number: 15 label: LABEL_REPEATED type: TYPE_DOUBLE}
    field { name: "r_float" number: 16 label: LABEL_REPEATED type: TYPE_FLOAT }
    nested_type {
      name: "TestMessageMapEntry"
      field { name: "key" number: 1 label: LABEL_OPTIONAL type: TYPE_STRING }
      field {
        name: "value"
        number: 2
        label: LABEL_OPTIONAL
        type: TYPE_MESSAGE
        type_name: ".protocompare.testing.TestMessage2"
      }
      options { map_entry: true }
    }
    nested_type {
      name: "StringIntMapEntry"
      field { name: "key" number: 1 label: LABEL_OPTIONAL type: TYPE_STRING }
      field { name: "value" number: 2 label: LABEL_OPTIONAL type: TYPE_INT32 }
      options { map_entry: true }
    }
    enum_type {
      name: "TestEnum2"
      value { name: "DEFAULT" number: 0 }
      value { name: "ONE" number: 1 }
      value { name: "TWO" number: 2 }
    }
  }
  message_type {
    name: "RequiredStringMessage2"
    field {
      name: "required_string"
      number: 1
      label: LABEL_REQUIRED
      type: TYPE_STRING
    }
  }
  message_type {
    name: "SubTestMessage2"
    field { name: "o_int" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }
    field { name: "r_string" number: 2 label: LABEL_REPEATED type: TYPE_STRING }
    field {
      name: "o_test_message"
      number: 3
      label: LABEL_OPTIONAL
      type: TYPE_MESSAGE
      type_name: ".protocompare.testing.TestMessage2"
    }
    field {
      name: "o_sub_sub_test_message"
      number: 4
      label: LABEL_OPTIONAL
      type: TYPE_MESSAGE
      type_name: ".protocompare.testing.SubSubTestMessage2"
    }
  }
  message_type {
    name: "SubSubTestMessage2"
    field { name: "o_int" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }
    field { name: "r_string" number: 2 label: LABEL_REPEATED type: TYPE_STRING }
  }
}
file {
  name: "protocompare/testing/test_message3.proto"
  package: "protocompare.testing"
  syntax: "proto3"
  message_type {
    name: "TestMessage3"
    field { name: "o_int" number: 1 label: LABEL_OPTIONAL type: TYPE_INT32 }
    field { name: "r_string" number: 2 label: LABEL_REPEATED type: TYPE_STRING }
    field {
      name: "o_test_message"
      number: 3
      label: LABEL_OPTIONAL
      type: TYPE_MESSAGE
      type_name: ".protocompare.testing.TestMessage3"
    }
    field { name: "o_double" number: 4 label: LABEL_OPTIONAL type: TYPE_DOUBLE }
  }
}
"""


def _file_descriptor_set() -> descriptor_pb2.FileDescriptorSet:
  return text_format.Parse(
      _FILE_DESCRIPTOR_SET, descriptor_pb2.FileDescriptorSet()
  )


_POOL = descriptors.create_descriptor_pool(_file_descriptor_set())


def _message_class(name: str):
  return message_factory.GetMessageClass(
      _POOL.FindMessageTypeByName(f"{_PACKAGE}.{name}")
  )


# pylint: disable=invalid-name
TestMessage2 = _message_class("TestMessage2")
RequiredStringMessage2 = _message_class("RequiredStringMessage2")
SubTestMessage2 = _message_class("SubTestMessage2")
SubSubTestMessage2 = _message_class("SubSubTestMessage2")
TestMessage3 = _message_class("TestMessage3")
# pylint: enable=invalid-name
