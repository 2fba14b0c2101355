"""
Tests for the legacy patient match score.
"""

import pytest

from medsight.applicability.patient_match import (
    DEFAULT_ALIGNMENT_REASON,
    NO_PATIENT_REASON,
    AgeRange,
    MatchParams,
    compute_patient_match,
)
from medsight.core.enums import Sex
from medsight.core.schemas import PatientProfile

from conftest import make_paper


@pytest.fixture
def adult_asthma_papers():
    return [
        make_paper(
            "pubmed-1",
            "Inhaled corticosteroids in asthma",
            "A trial in adults with moderate asthma and allergic rhinitis.",
        )
    ]


class TestNoPatient:
    """Neutral score without patient data."""

    def test_none(self, adult_asthma_papers):
        output = compute_patient_match(adult_asthma_papers, None)

        assert output.match_score == 0.75
        assert output.mismatch_reasons == [NO_PATIENT_REASON]

    def test_empty_profile(self, adult_asthma_papers):
        output = compute_patient_match(adult_asthma_papers, PatientProfile())

        assert output.match_score == 0.75
        assert output.mismatch_reasons == [NO_PATIENT_REASON]

    def test_medications_alone_do_not_count(self, adult_asthma_papers):
        output = compute_patient_match(
            adult_asthma_papers, PatientProfile(medications=["salbutamol"])
        )
        assert output.match_score == 0.75


class TestPenalties:
    """Each missing population costs a fixed amount."""

    def test_full_alignment(self, adult_asthma_papers):
        patient = PatientProfile(age=40, sex=Sex.FEMALE, primary_condition="Asthma")
        output = compute_patient_match(adult_asthma_papers, patient)

        assert output.match_score == 1.0
        assert output.mismatch_reasons == [DEFAULT_ALIGNMENT_REASON]

    def test_pediatric_penalty(self, adult_asthma_papers):
        patient = PatientProfile(age=10, sex=Sex.FEMALE, primary_condition="asthma")
        output = compute_patient_match(adult_asthma_papers, patient)

        assert output.match_score == 0.8
        assert "Limited data for pediatric population." in output.mismatch_reasons

    def test_pediatric_terms_lift_penalty(self):
        papers = [make_paper("pubmed-1", "Asthma in children", "A pediatric trial.")]
        patient = PatientProfile(age=10, primary_condition="asthma")

        assert compute_patient_match(papers, patient).match_score == 1.0

    def test_geriatric_penalty_needs_no_adult_terms(self):
        papers = [make_paper("pubmed-1", "Asthma outcomes", "A trial in asthma.")]
        patient = PatientProfile(age=70, primary_condition="asthma")

        output = compute_patient_match(papers, patient)

        assert output.match_score == 0.85
        assert "Limited data for older adults." in output.mismatch_reasons

    def test_adult_terms_cover_geriatric(self, adult_asthma_papers):
        patient = PatientProfile(age=70, primary_condition="asthma")
        assert compute_patient_match(adult_asthma_papers, patient).match_score == 1.0

    def test_condition_prefix_is_matched(self, adult_asthma_papers):
        # Only the first 20 characters of the condition are looked up
        patient = PatientProfile(
            age=40, primary_condition="Moderate asthma and severe exacerbations"
        )
        assert compute_patient_match(adult_asthma_papers, patient).match_score == 1.0

    def test_condition_and_comorbidity_penalties(self, adult_asthma_papers):
        patient = PatientProfile(
            age=10,
            primary_condition="cystic fibrosis",
            comorbidities=["diabetes"],
        )
        output = compute_patient_match(adult_asthma_papers, patient)

        assert output.match_score == pytest.approx(0.6)
        assert len(output.mismatch_reasons) == 3

    def test_every_comorbidity_must_appear(self, adult_asthma_papers):
        patient = PatientProfile(
            age=40, primary_condition="asthma", comorbidities=["allergic rhinitis", "obesity"]
        )
        assert compute_patient_match(adult_asthma_papers, patient).match_score == 0.9

    def test_score_stays_in_range(self):
        params = MatchParams(
            age_range=AgeRange(min=70, max=10),
            condition="sarcoidosis",
            comorbidities=("gout",),
        )
        output = compute_patient_match([make_paper("pubmed-1", "Unrelated")], params)

        assert 0.0 <= output.match_score <= 1.0
        assert output.match_score == pytest.approx(0.45)
