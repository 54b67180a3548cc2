# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""
MITRE ATT&CK Matrix Package

Technique-frequency matrix aligned to the Enterprise tactic order, and export
of observed techniques as ATT&CK Navigator layers.
"""
