"""Tests for loading the labeled intent corpus from CSV files."""

from __future__ import annotations

import pytest

from skyvoice.services.corpus import CorpusNotFoundError, CorpusPathError, load_corpus, read_examples

HEADER = "id,text,intent,category,priority\n"


@pytest.fixture
def corpus_dir(tmp_path):
    root = tmp_path / "intents"
    (root / "flight_booking").mkdir(parents=True)
    (root / "flight_cancellation").mkdir()
    (root / "flight_booking" / "flight_booking_1.csv").write_text(
        HEADER
        + 'fb-1,"book a flight",flight_booking,booking,high\n'
        + 'fb-2,"book me a seat on a flight",flight_booking,booking,high\n'
    )
    (root / "flight_cancellation" / "flight_cancellation_1.csv").write_text(
        HEADER
        + 'fc-1,"cancel my flight",flight_cancellation,booking,high\n'
        + "fc-2,,flight_cancellation,booking,high\n"
    )
    (root / "README.txt").write_text("not a folder")
    return root


class TestReadExamples:
    def test_parses_rows_and_skips_incomplete(self, corpus_dir):
        examples = read_examples(corpus_dir / "flight_cancellation" / "flight_cancellation_1.csv")
        assert examples == [
            {
                "id": "fc-1",
                "text": "cancel my flight",
                "intent": "flight_cancellation",
                "category": "booking",
                "priority": "high",
            }
        ]

    def test_strips_embedded_quotes(self, tmp_path):
        path = tmp_path / "q.csv"
        path.write_text(HEADER + 'q-1,"say ""hello""",general_inquiry,information,low\n')
        assert read_examples(path)[0]["text"] == "say hello"


class TestLoadCorpus:
    def test_loads_every_folder(self, matcher, corpus_dir):
        summary = load_corpus(matcher, corpus_dir)

        assert summary["success"] is True
        assert summary["total_processed"] == 3
        assert summary["total_succeeded"] == 3
        assert [f["intent_folder"] for f in summary["files"]] == ["flight_booking", "flight_cancellation"]
        assert matcher.index.count() == 3

    def test_single_folder(self, matcher, corpus_dir):
        summary = load_corpus(matcher, corpus_dir, intent_folder="flight_cancellation")
        assert summary["total_processed"] == 1

    def test_single_file(self, matcher, corpus_dir):
        summary = load_corpus(
            matcher, corpus_dir, intent_folder="flight_booking", file_name="flight_booking_1.csv",
        )
        assert summary["total_succeeded"] == 2

    def test_file_requires_folder(self, matcher, corpus_dir):
        with pytest.raises(ValueError):
            load_corpus(matcher, corpus_dir, file_name="flight_booking_1.csv")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"intent_folder": "no_such_intent"},
            {"intent_folder": "flight_booking", "file_name": "missing.csv"},
        ],
    )
    def test_missing_paths(self, matcher, corpus_dir, kwargs):
        with pytest.raises(CorpusNotFoundError):
            load_corpus(matcher, corpus_dir, **kwargs)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"intent_folder": "../outside"},
            {"intent_folder": ".."},
            {"intent_folder": "flight_booking", "file_name": "../../outside/leak.csv"},
        ],
    )
    def test_paths_outside_corpus_are_rejected(self, matcher, corpus_dir, kwargs):
        outside = corpus_dir.parent / "outside"
        outside.mkdir()
        (outside / "leak.csv").write_text(HEADER + "l-1,book secret password,flight_booking,booking,high\n")
        with pytest.raises(CorpusPathError):
            load_corpus(matcher, corpus_dir, **kwargs)
        assert matcher.index.count() == 0

    def test_missing_directory(self, matcher, tmp_path):
        with pytest.raises(CorpusNotFoundError):
            load_corpus(matcher, tmp_path / "nowhere")

    def test_partial_embedding_failure_is_counted(self, matcher, tmp_path):
        folder = tmp_path / "flight_status"
        folder.mkdir()
        (folder / "s.csv").write_text(
            HEADER
            + "s-1,is my flight on time,flight_status,information,medium\n"
            + "s-2,FAIL this one,flight_status,information,medium\n"
        )
        summary = load_corpus(matcher, tmp_path)
        assert summary["total_processed"] == 2
        assert summary["total_succeeded"] == 1
