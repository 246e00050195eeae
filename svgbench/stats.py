"""Collect cleaning statistics for an SVG cleaner over a directory of files."""

from __future__ import annotations

import argparse
import enum
import math
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path

from svgbench.toolkit import (
    compare_images,
    ensure_dir,
    image_size,
    iter_svg_tree,
    render_svg,
)

_SCOUR_ARGS = (
    "--enable-id-stripping",
    "--enable-comment-stripping",
    "--shorten-ids",
    "--indent=none",
    "--no-line-breaks",
    "--strip-xml-prolog",
    "--remove-descriptive-elements",
    "--set-precision=8",
    "--set-c-precision=8",
    "--create-groups",
    "--remove-titles",
    "--remove-descriptions",
    "--remove-metadata",
    "--disable-embed-rasters",
)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class CleanerKind(enum.Enum):
    SVGCLEANER = "svgcleaner"
    SCOUR = "scour"
    SVGO = "svgo"


@dataclass(frozen=True)
class Cleaner:
    """An external SVG cleaning program."""

    kind: CleanerKind
    path: Path

    def clean(self, in_path, out_path) -> bool:
        """Clean ``in_path`` into ``out_path``; False if the program failed."""
        exe = str(self.path)
        if self.kind is CleanerKind.SVGCLEANER:
            command = [exe, str(in_path), str(out_path), "--copy-on-error", "--quiet"]
        elif self.kind is CleanerKind.SCOUR:
            command = [exe, str(in_path), str(out_path), *_SCOUR_ARGS]
        else:
            command = [exe, "--quiet", "--precision=8", str(in_path), "-o", str(out_path)]

        try:
            result = subprocess.run(command, capture_output=True)
        except OSError as exc:
            print(f"Error: {exc!r}")
            return False

        stderr = _decode(result.stderr)
        if self.kind is CleanerKind.SCOUR and stderr:
            print(stderr)
            return False
        if self.kind is CleanerKind.SVGO and "Error" in stderr:
            print(stderr)
            return False
        return True

    def version(self) -> str | None:
        """Ask the program for its version, or None if it cannot be run."""
        flag = {
            CleanerKind.SVGCLEANER: "-V",
            CleanerKind.SCOUR: "--version",
            CleanerKind.SVGO: "-v",
        }[self.kind]
        try:
            result = subprocess.run([str(self.path), flag], capture_output=True)
        except OSError:
            return None

        if self.kind is CleanerKind.SCOUR:
            return _decode(result.stderr).strip()
        text = _decode(result.stdout).strip()
        if self.kind is CleanerKind.SVGCLEANER:
            text = text.replace("svgcleaner ", "")
        return text

    def title(self) -> str:
        """Program name followed by its version."""
        version = self.version()
        if version is None:
            raise RuntimeError(f"cannot detect the version of {self.path}")
        return f"{self.kind.value} {version}"


@dataclass
class StatsSettings:
    work_dir: Path
    input_dir: Path
    orig_pngs_dir: Path
    broken_imgs_dir: Path
    threshold: int = 0
    skip_errors_check: bool = False


@dataclass
class FileStats:
    is_successful: bool = False
    # The cleaned image is pixel-identical to the original.
    is_fully_successful: bool = False
    orig_file_size: int = 0
    new_file_size: int = 0
    elapsed_time: float = 0.0


@dataclass
class TotalStats:
    title: str = ""
    cleaned_with_errors: list[str] = field(default_factory=list)
    # Files with at least one changed pixel.
    cleaned_with_errors_all: int = 0
    unchanged: int = 0
    total_input_size: int = 0
    total_output_size: int = 0
    files_count: int = 0
    total_time: float = 0.0

    def add(self, name: str, stats: FileStats) -> None:
        """Account for the result of one file."""
        self.total_input_size += stats.orig_file_size
        self.total_output_size += stats.new_file_size
        self.total_time += stats.elapsed_time
        if stats.orig_file_size == stats.new_file_size:
            self.unchanged += 1
        if not stats.is_successful:
            self.cleaned_with_errors.append(name)
        if not stats.is_fully_successful:
            self.cleaned_with_errors_all += 1


def join_images(orig_png, cleaned_png, diff_png, out_png) -> None:
    """Put three images side by side with ImageMagick."""
    subprocess.run(
        ["convert", str(orig_png), str(cleaned_png), str(diff_png), "+append", str(out_png)]
    )


def _orig_png_path(settings: StatsSettings, path: Path) -> Path:
    return Path(settings.orig_pngs_dir) / Path(path).relative_to(settings.input_dir)


def _within_threshold(ae: int, width: int, height: int, threshold: int) -> bool:
    area = width * height
    if area == 0:
        return False
    percent = ae / area * 100.0
    return int(percent) < threshold


def file_stats(settings: StatsSettings, svg_path, cleaner: Cleaner) -> FileStats:
    """Clean one file and measure the result."""
    svg_path = Path(svg_path)
    work_dir = Path(settings.work_dir)
    stats = FileStats()

    new_svg_path = work_dir / svg_path.name

    start = time.perf_counter_ns()
    ok = cleaner.clean(svg_path, new_svg_path)
    end = time.perf_counter_ns()
    if not ok or not new_svg_path.exists():
        return stats

    stats.orig_file_size = svg_path.stat().st_size
    stats.new_file_size = new_svg_path.stat().st_size
    stats.elapsed_time = (end - start) / 1_000_000.0

    if settings.skip_errors_check:
        stats.is_successful = True
        stats.is_fully_successful = True
        new_svg_path.unlink()
        return stats

    orig_png_path = _orig_png_path(settings, svg_path).with_suffix(".png")
    if not orig_png_path.exists() and not render_svg(svg_path, orig_png_path):
        new_svg_path.unlink()
        return stats

    new_png_path = work_dir / f"{svg_path.stem}_new.png"
    if not render_svg(new_svg_path, new_png_path):
        new_svg_path.unlink()
        orig_png_path.unlink(missing_ok=True)
        return stats

    diff_path = work_dir / "diff.png"
    diff = compare_images(work_dir, new_png_path, orig_png_path, diff_path)
    if diff is None:
        is_successful = False
    elif diff == 0:
        is_successful = True
        stats.is_fully_successful = True
    else:
        # An error below the threshold percentage of the image is acceptable.
        width, height = image_size(new_png_path)
        is_successful = _within_threshold(diff, width, height, settings.threshold)

    if not is_successful:
        joined = Path(settings.broken_imgs_dir) / f"{svg_path.stem}.png"
        join_images(orig_png_path, new_png_path, diff_path, joined)

    stats.is_successful = is_successful

    new_svg_path.unlink()
    new_png_path.unlink(missing_ok=True)
    diff_path.unlink(missing_ok=True)
    return stats


def _is_regular_file(path: Path) -> bool:
    return path.is_file() and not path.is_symlink()


def collect_stats(settings: StatsSettings, cleaner: Cleaner) -> TotalStats:
    """Run the cleaner over every SVG file under the input directory."""
    total = sum(1 for entry in iter_svg_tree(settings.input_dir) if _is_regular_file(entry))

    totals = TotalStats(title=cleaner.title(), files_count=total)

    idx = 1
    for entry in iter_svg_tree(settings.input_dir):
        if entry.is_dir() and not entry.is_symlink():
            ensure_dir(_orig_png_path(settings, entry))
            continue
        if not _is_regular_file(entry):
            continue

        name = str(entry.relative_to(settings.input_dir))
        print(f"Processing {idx} of {total}: {name}")
        totals.add(name, file_stats(settings, entry, cleaner))
        idx += 1

    return totals


def _format_float(value: float, digits: int) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return f"{value:.{digits}f}"


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        if numerator == 0:
            return math.nan
        return math.copysign(math.inf, numerator)
    return numerator / denominator


def _debug_list(items: list[str]) -> str:
    quoted = ('"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"' for s in items)
    return "[" + ", ".join(quoted) + "]"


def format_total_stats(stats: TotalStats) -> str:
    """Human-readable summary of a whole run."""
    ratio = 100.0 - _ratio(stats.total_output_size, stats.total_input_size) * 100.0
    average = _ratio(stats.total_time, stats.files_count)
    lines = [
        f"Results for: {stats.title}",
        f"Files count: {stats.files_count}",
        f"Files cleaned with serious errors: {len(stats.cleaned_with_errors)}",
        f"Files cleaned with any errors: {stats.cleaned_with_errors_all}",
        f"Unchanged files: {stats.unchanged}",
        f"Size after/before: {stats.total_output_size}/{stats.total_input_size}",
        f"Cleaning ratio: {_format_float(ratio, 2)}%",
        f"Cleaning time: {_format_float(stats.total_time, 1)}ms total, "
        f"{_format_float(average, 4)}ms avg",
        f"Broken files: {_debug_list(stats.cleaned_with_errors)}",
    ]
    return "\n".join(lines)


def _threshold(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid threshold: {text!r}") from None
    if not 0 <= value <= 255:
        raise argparse.ArgumentTypeError(f"threshold out of range: {text!r}")
    return value


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="stats")
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")
    parser.add_argument("--workdir", required=True, metavar="DIR",
                        help="Sets path to work dir")
    parser.add_argument("--input-data", required=True, metavar="DIR",
                        help="Sets path to SVG files dir")
    parser.add_argument("--type", required=True, metavar="NAME",
                        choices=[kind.value for kind in CleanerKind],
                        help="Sets type of SVG cleaning program.")
    parser.add_argument("--cleaner", required=True, metavar="PATH",
                        help="Sets path to cleaning software")
    parser.add_argument("--threshold", type=_threshold, default=0, metavar="PERCENT",
                        help="Sets AE threshold in percent")
    parser.add_argument("--skip-errors-check", action="store_true",
                        help="Skips raster images compare, which is much faster")
    args = parser.parse_args(argv)

    work_dir = Path(args.workdir)
    settings = StatsSettings(
        work_dir=work_dir,
        input_dir=Path(args.input_data),
        orig_pngs_dir=work_dir / "orig_pngs",
        broken_imgs_dir=work_dir / "broken_imgs",
        threshold=args.threshold,
        skip_errors_check=args.skip_errors_check,
    )

    ensure_dir(settings.work_dir)
    ensure_dir(settings.orig_pngs_dir)
    ensure_dir(settings.broken_imgs_dir)

    cleaner = Cleaner(CleanerKind(args.type), Path(args.cleaner))
    print(format_total_stats(collect_stats(settings, cleaner)))
    return 0