# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Shared pytest fixtures for the incident dashboard tests."""

# pylint: disable=redefined-outer-name

import json

import pytest

from incident_store.loader import load_incidents
from incident_store.tests.fixtures.sample_data import sample_document
from mitre_mapping.matrix import build_tactic_catalog

# ===== Corpus Fixtures =====


@pytest.fixture
def raw_document():
    """Return a fresh copy of the raw sample corpus document."""
    return sample_document()


@pytest.fixture
def corpus(raw_document):
    """Return the sample corpus normalized and in canonical order."""
    return load_incidents(raw_document)


@pytest.fixture
def dated_corpus(corpus):
    """Return the incidents that carry a year (what the default filter keeps)."""
    return [incident for incident in corpus if incident.year is not None]


@pytest.fixture
def catalog(corpus):
    """Return the tactic catalog of the full sample corpus."""
    return build_tactic_catalog(corpus)


@pytest.fixture
def corpus_file(tmp_path, raw_document):
    """Write the sample corpus to a temporary JSON file and return its path."""
    path = tmp_path / "incident_map.json"
    with path.open("w", encoding="utf-8") as f:
        json.dump(raw_document, f)
    return path
