# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Tests for the tab-reclaimer CLI."""

import json

import yaml

from tab_reclaimer.cli import main


def write_journal(state_dir, entries):
    state_dir.mkdir(parents=True, exist_ok=True)
    (state_dir / "local.json").write_text(json.dumps({"journal_entries": entries}))


class TestConfigCommand:
    def test_defaults_when_missing(self, tmp_path, capsys):
        """A missing file prints the defaults and a notice."""
        assert main(["config", "--file", str(tmp_path / "missing.yaml")]) == 0

        captured = capsys.readouterr()
        data = yaml.safe_load(captured.out)
        assert data["reclaimer"]["capacity"] == 50
        assert "not found" in captured.err

    def test_clamped_values(self, tmp_path, capsys):
        path = tmp_path / "reclaimer.yaml"
        path.write_text("reclaimer:\n  capacity: 0\n  cycle_period_minutes: 10\n")

        main(["config", "--file", str(path)])

        data = yaml.safe_load(capsys.readouterr().out)["reclaimer"]
        assert data["capacity"] == 1
        assert data["cycle_period_minutes"] == 10


class TestJournalCommand:
    """Tests for reading the journal from a state directory."""

    def test_empty_journal(self, tmp_path, capsys):
        assert main(["journal", "--state", str(tmp_path)]) == 0
        assert "No closed tabs found" in capsys.readouterr().out

    def test_json_output_with_search(self, tmp_path, capsys):
        write_journal(
            tmp_path,
            [
                {"title": "Python docs", "url": "https://docs.python.org", "closed_at": 1, "is_read": False},
                {"title": "News", "url": "https://news.example.com", "closed_at": 2, "is_read": True},
            ],
        )

        main(["journal", "--state", str(tmp_path), "--search", "python", "--json"])

        rows = json.loads(capsys.readouterr().out)
        assert [r["url"] for r in rows] == ["https://docs.python.org"]

    def test_unread_filter(self, tmp_path, capsys):
        write_journal(
            tmp_path,
            [
                {"title": "Unread", "url": "https://a.example.com", "closed_at": 1, "is_read": False},
                {"title": "Read", "url": "https://b.example.com", "closed_at": 2, "is_read": True},
            ],
        )

        main(["journal", "--state", str(tmp_path), "--unread"])

        out = capsys.readouterr().out
        assert "* Unread" in out
        assert "b.example.com" not in out

    def test_mark_read(self, tmp_path, capsys):
        """--mark-read persists the read state."""
        write_journal(
            tmp_path,
            [{"title": "A", "url": "https://a.example.com", "closed_at": 1, "is_read": False}],
        )

        main(["journal", "--state", str(tmp_path), "--mark-read"])

        data = json.loads((tmp_path / "local.json").read_text())
        assert data["journal_entries"][0]["is_read"] is True
        assert "Marked 1 entries read" in capsys.readouterr().err


class TestNoCommand:
    def test_help_returns_error(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out
