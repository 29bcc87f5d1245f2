"""
Content records: legacy field mapping and loading a game authored as JSON.
"""

import json

import pytest

from taletrail.engine.definitions import (
    ANSWER_TYPE_CHOICE,
    BeforePuzzle,
    End,
    Puzzle,
    SplashScreen,
    Start,
    anchor_from_legacy,
    anchor_from_parts,
    load_game_file,
)
from taletrail.engine.errors import ValidationError
from taletrail.engine.timeline import compose


def test_anchor_from_parts():
    assert anchor_from_parts("start") == Start()
    assert anchor_from_parts(None) == Start()
    assert anchor_from_parts("END") == End()
    assert anchor_from_parts("puzzle", "p-1") == BeforePuzzle("p-1")
    with pytest.raises(ValidationError):
        anchor_from_parts("puzzle")
    with pytest.raises(ValidationError):
        anchor_from_parts("middle")


def test_anchor_from_legacy_column():
    assert anchor_from_legacy(None) == Start()
    assert anchor_from_legacy("") == Start()
    assert anchor_from_legacy("END") == End()
    assert anchor_from_legacy("p-1") == BeforePuzzle("p-1")


def test_dropdown_is_choice():
    puzzle = Puzzle.from_dict({"id": "p", "answer": "b", "answer_type": "dropdown", "answer_options": ["a", "b"]})
    assert puzzle.answer_type == ANSWER_TYPE_CHOICE
    puzzle.validate()


def test_validate_choice_answer_must_be_an_option():
    puzzle = Puzzle.from_dict({"id": "p", "answer": "c", "answer_type": "choice", "answer_options": ["a", "b"]})
    with pytest.raises(ValidationError):
        puzzle.validate()


def test_player_dict_hides_answer_and_clues():
    puzzle = Puzzle.from_dict({"id": "p", "answer": "x", "clues": ["one"]})
    out = puzzle.to_dict()
    assert "answer" not in out and "clues" not in out
    assert out["clue_count"] == 1
    assert puzzle.to_dict(include_answer=True)["answer"] == "x"


def test_splash_round_trip_keeps_anchor():
    splash = SplashScreen(id="s", game_id="g", sequence_order=2.0, anchor=BeforePuzzle("p"))
    assert SplashScreen.from_dict(splash.to_dict()) == splash


def test_load_bundled_sample_game():
    game, puzzles, splashes = load_game_file()
    assert game.id == "lighthouse"
    assert all(p.game_id == game.id for p in puzzles)
    timeline = compose(puzzles, splashes)
    assert [e.id for e in timeline] == ["s-welcome", "p-bell", "s-stone", "p-year", "p-keeper", "s-finale"]
    assert timeline.get_puzzle("p-year").is_choice


def test_load_game_file_rejects_invalid_puzzles(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text(json.dumps({"game": {"id": "g"}, "puzzles": [{"id": "p", "answer": ""}]}))
    with pytest.raises(ValidationError):
        load_game_file(path)
