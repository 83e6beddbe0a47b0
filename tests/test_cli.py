from __future__ import annotations

from pathlib import Path

import pytest

from pycapmetro.cli import main, read_stops

_STOPS_TXT = (
    "stop_id,stop_code,stop_name,stop_lat,stop_lon\n"
    "5867,5867,Congress/11th,30.2727,-97.7404\n"
    "5868,5868,Broken,,-97.7404\n"
    "5869,5869,Guadalupe/21st,30.2840,-97.7420\n"
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("CMDATA_STORE_URL", "CMDATA_FEED_URL", "CMDATA_ROUTES", "CMDATA_MAX_RETRIES"):
        monkeypatch.delenv(name, raising=False)


def test_read_stops_skips_invalid_rows(tmp_path: Path) -> None:
    path = tmp_path / "stops.txt"
    path.write_text(_STOPS_TXT, encoding="utf-8-sig")

    stops, skipped = read_stops(path)

    assert [stop.stop_id for stop in stops] == ["5867", "5869"]
    assert stops[0].name == "Congress/11th"
    assert skipped == 1


def test_import_then_stats(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "stops.txt"
    path.write_text(_STOPS_TXT, encoding="utf-8-sig")
    store = f"sqlite:///{tmp_path / 'capmetro.db'}"

    assert main(["--store", store, "import-stops", str(path)]) == 0
    assert main(["--store", store, "stats"]) == 0

    out = capsys.readouterr().out
    assert "stops:              2" in out
    assert "latest position:    -" in out


def test_stats_on_memory_store() -> None:
    assert main(["--store", "memory://", "stats"]) == 0


def test_run_without_feed_url_is_a_config_error() -> None:
    assert main(["--store", "memory://", "run"]) == 2


def test_invalid_env_is_a_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CMDATA_MAX_RETRIES", "lots")

    assert main(["--store", "memory://", "stats"]) == 2


def test_missing_stops_file(tmp_path: Path) -> None:
    assert main(["--store", "memory://", "import-stops", str(tmp_path / "missing.txt")]) == 1
