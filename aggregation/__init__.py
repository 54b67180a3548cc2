# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Aggregation module for cyber incident analysis.

This module provides filtering, drill-down overlays and the statistical,
temporal and geographic aggregates behind the incident dashboard.
"""
