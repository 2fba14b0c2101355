"""
Tests for the command line entry point.
"""

import json
import logging

import pytest

from medsight.__main__ import build_parser, load_papers, main, patient_from_args


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


PAPER = {
    "id": "pubmed-1001",
    "title": "Randomized controlled trial of apixaban in atrial fibrillation",
    "abstract": "Apixaban reduced stroke.",
    "year": 2022,
    "journal": "NEJM",
    "studyType": "RCT",
    "source": "pubmed",
}


class TestLoadPapers:
    def test_reads_camel_case_list(self, tmp_path):
        path = tmp_path / "papers.json"
        path.write_text(json.dumps([PAPER]))

        papers = load_papers(path)

        assert papers[0].id == "pubmed-1001"
        assert papers[0].study_type == "RCT"

    def test_rejects_non_list(self, tmp_path):
        path = tmp_path / "papers.json"
        path.write_text(json.dumps(PAPER))

        with pytest.raises(ValueError):
            load_papers(path)


class TestMain:
    @pytest.mark.parametrize(
        "content",
        ["{not json", json.dumps({"papers": []}), json.dumps([{"id": "x"}])],
        ids=["bad-json", "not-a-list", "invalid-paper"],
    )
    def test_bad_papers_file_exits_2(self, tmp_path, capsys, content):
        path = tmp_path / "papers.json"
        path.write_text(content)

        code = main(["apixaban", "--papers", str(path)])

        assert code == 2
        assert "Cannot load papers" in capsys.readouterr().err

    def test_missing_papers_file_exits_2(self, tmp_path, capsys):
        code = main(["apixaban", "--papers", str(tmp_path / "absent.json")])

        assert code == 2
        assert "Cannot load papers" in capsys.readouterr().err

    def test_invalid_request_exits_2(self, capsys):
        code = main(["apixaban", "--mode", "clinical"])

        assert code == 2
        assert "Invalid request" in capsys.readouterr().err

    def test_synthesis_without_provider_exits_1(self, tmp_path, capsys):
        path = tmp_path / "papers.json"
        path.write_text(json.dumps([PAPER]))

        code = main(["apixaban", "--papers", str(path)])

        assert code == 1
        assert "Analysis failed" in capsys.readouterr().err


class TestPatientFromArgs:
    def test_no_flags(self):
        assert patient_from_args(build_parser().parse_args(["q"])) is None

    def test_age_zero_is_kept(self):
        patient = patient_from_args(build_parser().parse_args(["q", "--age", "0"]))

        assert patient == {"age": 0, "comorbidities": [], "medications": []}
