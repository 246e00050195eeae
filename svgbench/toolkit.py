"""Helpers shared by the SVG regression and statistics tools."""

from __future__ import annotations

import hashlib
import os
import re
import subprocess
from collections.abc import Iterator
from pathlib import Path

RENDER_SCRIPT = "../svgrender/screenshot.js"
RENDER_SIZE = "512"

_U32_MAX = 2**32 - 1
_UNSIGNED = re.compile(r"\+?[0-9]+")


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _parse_u32(text: str) -> int:
    if not _UNSIGNED.fullmatch(text):
        raise ValueError(f"not an unsigned integer: {text!r}")
    value = int(text)
    if value > _U32_MAX:
        raise ValueError(f"number too large: {text!r}")
    return value


def parse_ae_output(stderr: str, diff_path: str) -> int | None:
    """Extract the absolute-error pixel count from the output of ``compare``."""
    warning = (
        f"compare: Ignoring invalid time value `{diff_path}' "
        "@ warning/png.c/MagickPNGWarningHandler/1744.\n"
    )
    text = stderr.replace(warning, "")
    try:
        return _parse_u32(text)
    except ValueError:
        return None


def compare_images(work_dir, path1, path2, diff_path) -> int | None:
    """Compare two images with ImageMagick and return the AE metric, or None."""
    command = [
        "compare",
        "-metric", "AE",
        "-fuzz", "10%",
        str(path1), str(path2), str(diff_path),
    ]
    try:
        result = subprocess.run(command, cwd=work_dir, capture_output=True)
    except OSError as exc:
        print(repr(exc))
        return None

    stderr = _decode(result.stderr)
    value = parse_ae_output(stderr, str(diff_path))
    if value is None:
        print(repr(stderr))
    return value


def parse_image_size(file_output: str) -> tuple[int, int]:
    """Read ``width x height`` from the output of the ``file`` utility."""
    fields = file_output.split(",")
    if len(fields) < 2:
        raise ValueError(f"no image size in {file_output!r}")
    dims = fields[1].strip().split(" x ")
    if len(dims) < 2:
        raise ValueError(f"no image size in {file_output!r}")
    return _parse_u32(dims[0]), _parse_u32(dims[1])


def image_size(png_path) -> tuple[int, int]:
    """Return the size of a PNG image, or ``(0, 0)`` if ``file`` cannot be run."""
    try:
        result = subprocess.run(["file", str(png_path)], capture_output=True)
    except OSError as exc:
        print(repr(exc))
        return 0, 0
    return parse_image_size(_decode(result.stdout))


def png_path_for(svg_path, suffix: str) -> str:
    """Replace the four-character extension of ``svg_path`` with ``suffix + '.png'``."""
    text = str(svg_path)
    if len(text) < 4:
        raise ValueError(f"path too short: {text!r}")
    return f"{text[:-4]}{suffix}.png"


def ensure_dir(path) -> None:
    """Create a directory, ignoring the case where it already exists."""
    try:
        os.mkdir(path)
    except FileExistsError:
        pass
    except OSError as exc:
        print(repr(exc))


def render_svg(svg_path, png_path) -> bool:
    """Render an SVG file to PNG with the headless renderer script."""
    command = ["node", RENDER_SCRIPT, str(svg_path), str(png_path), RENDER_SIZE]
    try:
        result = subprocess.run(command, capture_output=True)
    except OSError as exc:
        print(repr(exc))
        return False

    out = _decode(result.stdout).strip()
    err = _decode(result.stderr).strip()
    if out or err or result.returncode != 0:
        print(f"Render err:\n{out}\n{err}")
        return False
    return True


def is_svg_entry(path) -> bool:
    """True for regular files with an ``.svg`` extension and for anything that is not a regular file."""
    path = Path(path)
    if path.is_file() and not path.is_symlink():
        return path.suffix == ".svg"
    return True


def _walk(directory: Path) -> Iterator[Path]:
    for entry in sorted(directory.iterdir()):
        if not is_svg_entry(entry):
            continue
        yield entry
        if entry.is_dir() and not entry.is_symlink():
            yield from _walk(entry)


def iter_svg_tree(input_dir) -> Iterator[Path]:
    """Walk ``input_dir`` depth-first, yielding it, its directories and its SVG files."""
    root = Path(input_dir)
    if not is_svg_entry(root):
        return
    yield root
    if root.is_dir():
        yield from _walk(root)


def file_md5(path) -> str:
    """Return the hex MD5 digest of a file's contents."""
    return hashlib.md5(Path(path).read_bytes()).hexdigest()