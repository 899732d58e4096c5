# Copyright 2023 Intrinsic Innovation LLC

"""Errors raised by the proto comparison library.

Comparison mismatches are never raised, they are reported as diffs. Only
misuse of the configuration API ends up here.
"""


class Error(Exception):
  """Top-level module error for proto comparisons."""


class InvalidArgumentError(Error, ValueError):
  """Thrown when invalid arguments are passed to a comparison rule."""


class UnresolvedFieldError(Error, ValueError):
  """Thrown when a field number or path does not exist on the compared type."""
