"""Regression runner: clean SVG files, render them and compare with the originals."""

from __future__ import annotations

import argparse
import json
import sqlite3
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path

from svgbench.toolkit import (
    compare_images,
    ensure_dir,
    file_md5,
    iter_svg_tree,
    png_path_for,
    render_svg,
)

ERR_VIEW_PATH = Path("../err-view/err_view")
SVGCLEANER_PATH = Path("../../target/release/svgcleaner")
POS_FILE = "pos.txt"

CLEANER_ARGS = (
    "--copy-on-error",
    "--quiet",
    "--remove-gradient-attributes=yes",
    "--join-arcto-flags=yes",
    "--apply-transform-to-paths=yes",
    "--indent=2",  # indentation exercises the saving of text nodes
    "--remove-unreferenced-ids=no",
    "--trim-ids=no",
)

# Messages that the cleaner reports as errors but that do not mean a broken run.
TOLERATED_ERRORS = (
    "Error: scripting is not supported.",
    "Error: animation is not supported.",
    "Error: valid FuncIRI",
    "Error: broken FuncIRI",
    "Error: unsupported CSS at",
    "Error: element crosslink",
    "Error: conditional processing",
    "Error: the 'xlink:href' attribute",
    "Error: unsupported ENTITY",
    "Error: the 'use' element with",
    "Error: the attribute 'offset'",
    "Error: document didn't have any nodes",
    "Error: invalid color at",
    "Error: Unsupported token at",
    "Error: invalid length at",
    "Error: cleaned file is bigger",
    "Error: failed to resolved attribute",
)


@dataclass
class RegressionConfig:
    """Per-file tolerances and the list of files to skip."""

    valid_ae_map: dict[str, int] = field(default_factory=dict)
    min_valid_ae: int = 0
    ignore_list: list[str] = field(default_factory=list)


@dataclass
class RegressionSettings:
    """Everything a regression run needs to know about its environment."""

    work_dir: Path
    svgcleaner: Path
    input_dir: Path
    orig_pngs_dir: Path
    config: RegressionConfig = field(default_factory=RegressionConfig)
    err_view: Path | None = None
    config_path: Path | None = None


class ResultCache:
    """Remembers the MD5 of every cleaned file that was accepted."""

    def __init__(self, path) -> None:
        exists = Path(path).exists()
        self._conn = sqlite3.connect(str(path), isolation_level=None)
        if not exists:
            self._conn.execute(
                "CREATE TABLE Files ("
                " ID INTEGER PRIMARY KEY,"
                " Path TEXT NOT NULL,"
                " Md5Hash TEXT NOT NULL"
                ")"
            )

    def __enter__(self) -> ResultCache:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def cache_id(self, file_path: str) -> int | None:
        row = self._conn.execute(
            "SELECT ID FROM Files WHERE Path=?", (file_path,)
        ).fetchone()
        return None if row is None else row[0]

    def append_hash(self, file_path: str, md5: str) -> None:
        self._conn.execute(
            "INSERT INTO Files (Path, Md5Hash) VALUES (?, ?)", (file_path, md5)
        )

    def get_hash(self, row_id: int) -> str:
        row = self._conn.execute(
            "SELECT Md5Hash FROM Files WHERE ID=?", (row_id,)
        ).fetchone()
        if row is None:
            raise KeyError(row_id)
        return row[0]

    def update_hash(self, row_id: int, md5: str) -> None:
        self._conn.execute("UPDATE Files SET Md5Hash=? WHERE ID=?", (md5, row_id))

    def close(self) -> None:
        self._conn.close()


def load_config(path):
    """Load the JSON input-data config."""
    with open(path, "rb") as f:
        return json.load(f)


def valid_ae_map(data: dict) -> dict[str, int]:
    """Map file names to their custom AE tolerance."""
    result: dict[str, int] = {}
    for item in data.get("custom_ae", []):
        name = item["name"]
        if "valid_ae" not in item:
            continue
        if name in result:
            raise ValueError(f"Error: {name} already exist in the list.")
        result[name] = int(item["valid_ae"])
    return result


def ignore_list(data: dict) -> list[str]:
    """Return the names of files that must be skipped."""
    names: list[str] = []
    for item in data.get("ignore", []):
        name = item["name"]
        if name in names:
            raise ValueError(f"Error: {name} already exist.")
        names.append(name)
    return names


def load_last_pos(work_dir) -> int:
    """Return the index saved by an interrupted run, or 0."""
    try:
        text = (Path(work_dir) / POS_FILE).read_text()
    except OSError:
        return 0
    return int(text.strip())


def save_curr_pos(work_dir, pos: int) -> None:
    (Path(work_dir) / POS_FILE).write_text(str(pos))


def is_tolerated_error(stderr: str) -> bool:
    """True if the cleaner's stderr does not report a real failure."""
    if "Error" not in stderr:
        return True
    return any(message in stderr for message in TOLERATED_ERRORS)


def clean_svg(exe_path, in_path, out_path) -> bool:
    """Run the cleaner on one file and judge its output."""
    command = [str(exe_path), *CLEANER_ARGS, str(in_path), str(out_path)]
    try:
        result = subprocess.run(command, capture_output=True)
    except OSError as exc:
        print(f"Unknown error: {exc!r}")
        return False

    stderr = result.stderr.decode("utf-8")
    if stderr:
        print(stderr.strip())

    if result.stdout:
        print(f"stdout must be empty: {result.stdout.decode('utf-8').strip()}")
        return False

    return is_tolerated_error(stderr)


def _orig_png_path(settings: RegressionSettings, svg_path: Path) -> Path:
    sub_path = Path(svg_path).relative_to(settings.input_dir)
    return Path(settings.orig_pngs_dir) / sub_path


def run_test(settings: RegressionSettings, svg_path, cache: ResultCache) -> bool:
    """Clean, render and compare one file. Returns True when it passes."""
    svg_path = Path(svg_path)
    new_svg_path = Path(settings.work_dir) / svg_path.name
    out_path = str(new_svg_path)
    svg_suffix = str(svg_path.relative_to(settings.input_dir))

    if new_svg_path.exists():
        new_svg_path.unlink()

    if not clean_svg(settings.svgcleaner, svg_path, out_path):
        print("'svgcleaner' crashed.")
        return False

    row_id = cache.cache_id(svg_suffix)
    if row_id is not None and cache.get_hash(row_id) == file_md5(out_path):
        # Unchanged output: no need to render and compare.
        new_svg_path.unlink()
        return True

    new_png_path = png_path_for(out_path, "_new")
    diff_path = png_path_for(out_path, "_diff")

    orig_png_path = _orig_png_path(settings, svg_path).with_suffix(".png")
    if not orig_png_path.exists() and not render_svg(svg_path, orig_png_path):
        print("Rendering of the original image is failed.")
        return False

    if not render_svg(out_path, new_png_path):
        print("Rendering of the cleaned image is failed.")
        return False

    diff = compare_images(settings.work_dir, new_png_path, orig_png_path, diff_path)
    if diff is None:
        print("'compare' failed.")
        return False

    valid_ae = settings.config.valid_ae_map.get(svg_suffix, settings.config.min_valid_ae)

    if diff <= valid_ae:
        is_ok = True
    elif settings.err_view is not None:
        command = [
            str(settings.err_view),
            svg_suffix,
            str(orig_png_path),
            new_png_path,
            diff_path,
            str(diff),
            str(settings.config_path),
        ]
        is_ok = subprocess.run(command).returncode == 0
    else:
        is_ok = False

    if not is_ok:
        print(f"AE: {diff} of {valid_ae}")
        return False

    md5 = file_md5(out_path)
    if row_id is not None:
        cache.update_hash(row_id, md5)
    else:
        cache.append_hash(svg_suffix, md5)

    new_svg_path.unlink()
    Path(new_png_path).unlink()
    Path(diff_path).unlink()
    return True


def _is_regular_file(path: Path) -> bool:
    return path.is_file() and not path.is_symlink()


def run_tests(settings: RegressionSettings, start_pos: int, cache: ResultCache) -> None:
    """Run every SVG test under the input directory, starting at ``start_pos``."""
    total = sum(1 for entry in iter_svg_tree(settings.input_dir) if _is_regular_file(entry))

    idx = 1
    for entry in iter_svg_tree(settings.input_dir):
        if entry.is_dir() and not entry.is_symlink():
            ensure_dir(_orig_png_path(settings, entry))
            continue

        if not _is_regular_file(entry):
            continue

        if idx < start_pos:
            idx += 1
            continue

        sub_path = str(entry.relative_to(settings.input_dir))
        print(f"Test {idx} of {total}: {sub_path}")

        if sub_path in settings.config.ignore_list:
            print("Test skipped.")
            idx += 1
            continue

        if not run_test(settings, entry, cache):
            print("Test failed.")
            save_curr_pos(settings.work_dir, idx)
            break
        print("Test passed.")

        idx += 1
        if idx == total:
            pos_path = Path(settings.work_dir) / POS_FILE
            if pos_path.exists():
                pos_path.unlink()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="files-testing")
    parser.add_argument("--workdir", required=True, metavar="DIR",
                        help="Sets path to the work dir. Will contain all the temporary data")
    parser.add_argument("--input-data", required=True, metavar="DIR",
                        help="Sets path to the SVG files dir")
    parser.add_argument("--cache-db", required=True, metavar="PATH",
                        help="Sets path to the test cache db.")
    parser.add_argument("--input-data-config", metavar="PATH",
                        help="Sets path to the input data config (optional). "
                             "JSON config contains list of ignored files")
    args = parser.parse_args(argv)

    if not ERR_VIEW_PATH.exists():
        print(f'Error: "{ERR_VIEW_PATH}" not found.')
        return 1

    if args.input_data_config is not None:
        data = load_config(args.input_data_config)
        config = RegressionConfig(
            valid_ae_map=valid_ae_map(data),
            min_valid_ae=int(data["min_valid_ae"]),
            ignore_list=ignore_list(data),
        )
        err_view = ERR_VIEW_PATH
        config_path = Path(args.input_data_config)
    else:
        config = RegressionConfig()
        err_view = None
        config_path = None

    if not SVGCLEANER_PATH.exists():
        print(f'Error: "{SVGCLEANER_PATH}" not found.')
        return 1

    work_dir = Path(args.workdir)
    settings = RegressionSettings(
        work_dir=work_dir,
        svgcleaner=SVGCLEANER_PATH,
        input_dir=Path(args.input_data),
        orig_pngs_dir=work_dir / "orig_pngs",
        config=config,
        err_view=err_view,
        config_path=config_path,
    )

    ensure_dir(settings.work_dir)
    ensure_dir(settings.orig_pngs_dir)

    last_pos = load_last_pos(settings.work_dir)
    with ResultCache(args.cache_db) as cache:
        start = time.perf_counter_ns()
        run_tests(settings, last_pos, cache)
        end = time.perf_counter_ns()
    print(f"Elapsed: {int((end - start) / 1_000_000) // 1000}s")
    return 0