# Copyright 2025 Gowtham Rao <rao@ohdsi.org>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Tests for the ClinicalTrials.gov study normalizer."""

import pytest

from py_curalink.transformers.trials import (
    filter_trials,
    is_trial_external_id,
    normalize_trial,
)

MOCK_STUDY = {
    "protocolSection": {
        "identificationModule": {"nctId": "NCT01234567", "briefTitle": "Aspirin in Glioma"},
        "statusModule": {
            "overallStatus": "RECRUITING",
            "enrollmentInfo": {"count": 120},
            "startDateStruct": {"date": "2023-01"},
            "completionDateStruct": {"date": "2026-06-30"},
        },
        "descriptionModule": {"briefSummary": "A study of aspirin."},
        "conditionsModule": {"conditions": ["Glioma", "Brain Tumor"]},
        "designModule": {"phases": ["PHASE2", "PHASE3"]},
        "eligibilityModule": {
            "eligibilityCriteria": "Adults only.",
            "minimumAge": "18 Years",
            "maximumAge": "75 Years",
            "sex": "FEMALE",
        },
        "contactsLocationsModule": {
            "locations": [
                {"city": "Boston", "state": "Massachusetts", "country": "United States"},
                {"city": "Toronto", "country": "Canada"},
            ]
        },
        "sponsorCollaboratorsModule": {"leadSponsor": {"name": "Dana-Farber"}},
    }
}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("NCT12345", True),
        ("nct999", True),
        ("12345", False),
        ("NCT", False),
        ("NCT123a", False),
        (None, False),
        (12345, False),
    ],
)
def test_is_trial_external_id(value, expected):
    assert is_trial_external_id(value) is expected


def test_normalize_trial_full_study():
    """
    Tests that every module of a complete study maps onto the canonical trial.
    """
    trial = normalize_trial(MOCK_STUDY)

    assert trial.external_id == "NCT01234567"
    assert trial.title == "Aspirin in Glioma"
    assert trial.description == "A study of aspirin."
    assert trial.phase == "PHASE2, PHASE3"
    assert trial.status == "RECRUITING"
    assert trial.recruiting is True
    assert trial.sponsor == "Dana-Farber"
    assert trial.conditions == ["Glioma", "Brain Tumor"]
    assert trial.conditions_display == "Glioma, Brain Tumor"
    assert trial.locations == [
        "Boston, Massachusetts, United States",
        "Toronto, Canada",
    ]
    assert trial.enrollment == 120
    assert trial.start_date == "2023-01"
    assert trial.completion_date == "2026-06-30"
    assert trial.eligibility == "Adults only."
    assert trial.min_age == "18 Years"
    assert trial.max_age == "75 Years"
    assert trial.sex == "FEMALE"
    assert trial.url == "https://clinicaltrials.gov/study/NCT01234567"


def test_normalize_trial_empty_study_uses_defaults():
    """
    Tests that a study with no modules still yields a complete trial.
    """
    trial = normalize_trial({})

    assert trial.external_id == "N/A"
    assert trial.title == "Untitled Study"
    assert trial.description == "No description available"
    assert trial.phase == "Not specified"
    assert trial.status == "Unknown"
    assert trial.recruiting is False
    assert trial.sponsor == "Unknown"
    assert trial.conditions == []
    assert trial.locations == []
    assert trial.enrollment is None
    assert trial.start_date == "Not specified"
    assert trial.eligibility == "Not specified"
    assert trial.sex == "All"


def test_normalize_trial_accepts_bare_protocol_section():
    trial = normalize_trial(MOCK_STUDY["protocolSection"])
    assert trial.external_id == "NCT01234567"


def test_normalize_trial_caps_locations_at_five():
    study = {
        "protocolSection": {
            "contactsLocationsModule": {
                "locations": [{"city": f"City {i}", "country": "France"} for i in range(7)]
            }
        }
    }

    trial = normalize_trial(study)

    assert len(trial.locations) == 5
    assert trial.locations[0] == "City 0, France"
    assert trial.locations[4] == "City 4, France"


def test_normalize_trial_drops_empty_location_components():
    study = {
        "protocolSection": {
            "contactsLocationsModule": {
                "locations": [{"city": "", "state": None, "country": "Japan"}, {}]
            }
        }
    }

    assert normalize_trial(study).locations == ["Japan"]


def test_normalize_trial_truncates_long_eligibility():
    study = {"protocolSection": {"eligibilityModule": {"eligibilityCriteria": "x" * 600}}}

    trial = normalize_trial(study)

    assert len(trial.eligibility) == 503
    assert trial.eligibility.endswith("...")


def test_normalize_trial_keeps_short_eligibility_unmarked():
    study = {"protocolSection": {"eligibilityModule": {"eligibilityCriteria": "y" * 500}}}

    trial = normalize_trial(study)

    assert len(trial.eligibility) == 500
    assert not trial.eligibility.endswith("...")


@pytest.mark.parametrize(
    "status, recruiting",
    [
        ("RECRUITING", True),
        ("NOT_YET_RECRUITING", True),
        ("recruiting", False),
        ("COMPLETED", False),
        ("ACTIVE_NOT_RECRUITING", False),
    ],
)
def test_recruiting_flag_is_case_sensitive(status, recruiting):
    study = {"protocolSection": {"statusModule": {"overallStatus": status}}}
    assert normalize_trial(study).recruiting is recruiting


def test_normalize_trial_default_condition():
    trial = normalize_trial({"protocolSection": {}}, default_condition="asthma")
    assert trial.conditions == ["asthma"]


def test_normalize_trial_rejects_non_dict():
    with pytest.raises(TypeError):
        normalize_trial(["not", "a", "study"])


def test_filter_trials_by_phase_and_status():
    phase3 = normalize_trial(MOCK_STUDY)
    other = normalize_trial(
        {"protocolSection": {"designModule": {"phases": ["PHASE1"]},
                             "statusModule": {"overallStatus": "COMPLETED"}}}
    )

    assert filter_trials([phase3, other], phase="phase3") == [phase3]
    assert filter_trials([phase3, other], status="completed") == [other]
    assert filter_trials([phase3, other]) == [phase3, other]
