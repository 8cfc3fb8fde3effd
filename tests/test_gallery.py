"""Tests for roster loading."""

import json
from pathlib import Path

import pytest

from sigmatch.gallery import GalleryEntry, load_gallery


def test_load_pairs(tmp_path):
    roster = tmp_path / "anchors.json"
    roster.write_text(json.dumps([["Annah", "Annah 1_grayscale.jpg"], ["Usman", "usman1_grayscale.jpg"]]))

    entries = load_gallery(roster, anchor_dir=tmp_path)
    assert entries == [
        GalleryEntry("Annah", str(tmp_path / "Annah 1_grayscale.jpg")),
        GalleryEntry("Usman", str(tmp_path / "usman1_grayscale.jpg")),
    ]


def test_load_objects_and_urls(tmp_path):
    roster = tmp_path / "anchors.json"
    roster.write_text(json.dumps([
        {"name": "Rian", "image": "https://example.com/rian.png"},
        {"name": "Juan", "image": "/srv/anchors/juan.png"},
    ]))

    entries = load_gallery(roster, anchor_dir="anchors")
    assert entries[0].image_ref == "https://example.com/rian.png"
    assert entries[1].image_ref == "/srv/anchors/juan.png"


def test_without_anchor_dir(tmp_path):
    roster = tmp_path / "anchors.json"
    roster.write_text(json.dumps([["Nuel", "nuel1_grayscale.jpg"]]))
    assert load_gallery(roster)[0].image_ref == "nuel1_grayscale.jpg"


@pytest.mark.parametrize("payload", [
    {"Annah": "a.png"},
    [["Annah"]],
    [{"name": "", "image": "a.png"}],
])
def test_malformed_roster(tmp_path, payload):
    roster = tmp_path / "anchors.json"
    roster.write_text(json.dumps(payload))
    with pytest.raises(ValueError):
        load_gallery(roster)


def test_missing_roster(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_gallery(tmp_path / "missing.json")


def test_bundled_roster_is_valid():
    roster = Path(__file__).resolve().parent.parent / "anchors" / "anchors.json"
    entries = load_gallery(roster, anchor_dir="anchors")
    names = [entry.display_name for entry in entries]
    assert len(names) == len(set(names))
    assert "Siti Aminah" in names
