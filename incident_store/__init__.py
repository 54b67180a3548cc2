# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Incident store package.

Loads a cyber-incident corpus, normalizes every record into immutable
dataclasses and sorts it into the canonical order used by all derived views.
"""
