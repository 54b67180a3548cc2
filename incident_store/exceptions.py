# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Errors and data-quality warnings raised while loading and aggregating incidents."""


class DataFormatError(ValueError):
    """The corpus document is malformed or has no incident collection."""


class FieldDefaultingWarning(UserWarning):
    """An optional field held a value of the wrong type and was defaulted."""


class UnmappedLocationWarning(UserWarning):
    """A target country has no coordinates and was left off the map."""
