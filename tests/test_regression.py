import hashlib
import json
import subprocess
from pathlib import Path
from unittest import mock

import pytest

from svgbench.regression import (
    RegressionConfig,
    RegressionSettings,
    ResultCache,
    clean_svg,
    ignore_list,
    is_tolerated_error,
    load_config,
    load_last_pos,
    run_test,
    run_tests,
    save_curr_pos,
    valid_ae_map,
)


def _completed(args, stdout=b"", stderr=b"", code=0):
    return subprocess.CompletedProcess(args, code, stdout, stderr)


@pytest.fixture
def cache(tmp_path):
    with ResultCache(tmp_path / "cache.db") as c:
        yield c


def _settings(tmp_path, config=None):
    work = tmp_path / "work"
    work.mkdir()
    inp = tmp_path / "input"
    inp.mkdir()
    orig = work / "orig_pngs"
    orig.mkdir()
    return RegressionSettings(
        work_dir=work,
        svgcleaner=tmp_path / "cleaner",
        input_dir=inp,
        orig_pngs_dir=orig,
        config=config or RegressionConfig(),
    )


def test_valid_ae_map_reads_entries():
    data = {"custom_ae": [{"name": "a.svg", "valid_ae": 12.0}, {"name": "b.svg"}]}
    assert valid_ae_map(data) == {"a.svg": 12}


def test_valid_ae_map_missing_section():
    assert valid_ae_map({"min_valid_ae": 0}) == {}


def test_valid_ae_map_duplicate_raises():
    data = {"custom_ae": [{"name": "a.svg", "valid_ae": 1}, {"name": "a.svg", "valid_ae": 2}]}
    with pytest.raises(ValueError, match="already exist"):
        valid_ae_map(data)


def test_ignore_list_keeps_order():
    data = {"ignore": [{"name": "x.svg"}, {"name": "y/z.svg"}]}
    assert ignore_list(data) == ["x.svg", "y/z.svg"]


def test_ignore_list_duplicate_raises():
    data = {"ignore": [{"name": "x.svg"}, {"name": "x.svg"}]}
    with pytest.raises(ValueError):
        ignore_list(data)


def test_load_config_round_trip(tmp_path):
    data = {"min_valid_ae": 5, "ignore": [{"name": "x.svg"}]}
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    assert load_config(path) == data


def test_last_pos_missing_is_zero(tmp_path):
    assert load_last_pos(tmp_path) == 0


def test_last_pos_round_trip(tmp_path):
    save_curr_pos(tmp_path, 42)
    assert load_last_pos(tmp_path) == 42


@pytest.mark.parametrize(
    "stderr, expected",
    [
        ("", True),
        ("Warning: something", True),
        ("Error: scripting is not supported.", True),
        ("Error: cleaned file is bigger", True),
        ("Error: something bad", False),
    ],
)
def test_is_tolerated_error(stderr, expected):
    assert is_tolerated_error(stderr) is expected


def test_cache_append_and_lookup(cache):
    assert cache.cache_id("a.svg") is None
    cache.append_hash("a.svg", "hash1")
    row_id = cache.cache_id("a.svg")
    assert cache.get_hash(row_id) == "hash1"
    cache.update_hash(row_id, "hash2")
    assert cache.get_hash(row_id) == "hash2"


def test_cache_persists(tmp_path):
    db = tmp_path / "c.db"
    with ResultCache(db) as c:
        c.append_hash("a.svg", "hash1")
    with ResultCache(db) as c:
        assert c.get_hash(c.cache_id("a.svg")) == "hash1"


def test_cache_missing_row_raises(cache):
    with pytest.raises(KeyError):
        cache.get_hash(999)


def test_clean_svg_passes_arguments():
    with mock.patch("svgbench.regression.subprocess.run") as run:
        run.return_value = _completed([])
        assert clean_svg("cleaner", "in.svg", "out.svg") is True
    args = run.call_args.args[0]
    assert args[0] == "cleaner"
    assert args[-2:] == ["in.svg", "out.svg"]
    assert "--copy-on-error" in args


def test_clean_svg_non_empty_stdout_fails():
    with mock.patch("svgbench.regression.subprocess.run") as run:
        run.return_value = _completed([], stdout=b"noise")
        assert clean_svg("cleaner", "in.svg", "out.svg") is False


def test_clean_svg_real_error_fails():
    with mock.patch("svgbench.regression.subprocess.run") as run:
        run.return_value = _completed([], stderr=b"Error: boom")
        assert clean_svg("cleaner", "in.svg", "out.svg") is False


def test_clean_svg_missing_executable():
    with mock.patch("svgbench.regression.subprocess.run", side_effect=FileNotFoundError()):
        assert clean_svg("cleaner", "in.svg", "out.svg") is False


def test_run_test_crash_returns_false(tmp_path, cache):
    settings = _settings(tmp_path)
    svg = settings.input_dir / "a.svg"
    svg.write_text("<svg/>")
    with mock.patch("svgbench.regression.subprocess.run", side_effect=FileNotFoundError()):
        assert run_test(settings, svg, cache) is False


def test_run_test_cache_hit(tmp_path, cache):
    settings = _settings(tmp_path)
    svg = settings.input_dir / "a.svg"
    svg.write_text("<svg/>")
    output = b"<svg/>"
    cache.append_hash("a.svg", hashlib.md5(output).hexdigest())

    def fake_run(args, **kwargs):
        Path(args[-1]).write_bytes(output)
        return _completed(args)

    with mock.patch("svgbench.regression.subprocess.run", side_effect=fake_run):
        assert run_test(settings, svg, cache) is True
    assert not (settings.work_dir / "a.svg").exists()


def test_run_tests_skips_ignored(tmp_path, cache):
    config = RegressionConfig(ignore_list=["a.svg", "sub/b.svg"])
    settings = _settings(tmp_path, config)
    (settings.input_dir / "a.svg").write_text("<svg/>")
    (settings.input_dir / "sub").mkdir()
    (settings.input_dir / "sub" / "b.svg").write_text("<svg/>")

    with mock.patch("svgbench.regression.subprocess.run") as run:
        run_tests(settings, 0, cache)
    assert run.call_count == 0
    assert (settings.orig_pngs_dir / "sub").is_dir()
    assert load_last_pos(settings.work_dir) == 0


def test_run_tests_saves_position_on_failure(tmp_path, cache):
    settings = _settings(tmp_path)
    (settings.input_dir / "a.svg").write_text("<svg/>")
    (settings.input_dir / "b.svg").write_text("<svg/>")

    with mock.patch("svgbench.regression.subprocess.run", side_effect=FileNotFoundError()):
        run_tests(settings, 2, cache)
    assert load_last_pos(settings.work_dir) == 2