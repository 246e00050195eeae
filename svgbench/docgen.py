"""Generate AsciiDoc option documentation with before/after SVG examples."""

from __future__ import annotations

import argparse
import enum
from collections.abc import Iterable
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from svgbench.toolkit import ensure_dir

OUTPUT_NAME = "svgcleaner.adoc"

HEADER = (
    "// This file is autogenerated. Do not edit it!\n\n"
    ":toc:\n"
    ":toc-title:\n\n"
    "= List of cleaning options\n\n"
)

_SVG_ATTRS_XLINK = (
    '<svg xmlns="http://www.w3.org/2000/svg" '
    'xmlns:xlink="http://www.w3.org/1999/xlink" '
    'width="200" height="100"'
)
_SVG_ATTRS = '<svg xmlns="http://www.w3.org/2000/svg" width="200" height="100"'

_TABLE_MARK = "////"


class DocMode(enum.Enum):
    CLI = "cli"
    GUI = "gui"


@dataclass(frozen=True)
class PageContext:
    """Where a page's example images go and which flavour of docs is produced."""

    workdir: Path
    mode: DocMode
    img_before_path: Path
    img_after_path: Path


def basename(path) -> str:
    """File name without its extension."""
    return Path(path).stem


def svg_path_for(directory, name: str) -> Path:
    return Path(directory) / f"{name}.svg"


def write_example_svg(content: str, insert_xmlns_xlink: bool, path) -> int:
    """Write an example as a standalone SVG file and return its size in bytes."""
    attrs = _SVG_ATTRS_XLINK if insert_xmlns_xlink else _SVG_ATTRS
    data = content.replace("<svg", attrs).encode("utf-8")
    Path(path).write_bytes(data)
    return len(data)


def _image_link(path: Path, workdir: Path) -> str:
    return Path(path).relative_to(workdir).as_posix()


def build_table(lines: Iterable[str], context: PageContext) -> str:
    """Consume example lines up to the closing mark and return the table markup."""
    lines = iter(lines)
    before: list[str] = []
    after: list[str] = []
    target = before
    insert_xmlns_xlink = True

    for line in lines:
        if line == "NO_XMLNS_XLINK":
            insert_xmlns_xlink = False
            continue
        if line == "SPLIT":
            target = after
            continue
        if line == _TABLE_MARK:
            break
        target.append(line)

    svg_before = "\n".join(before)
    svg_after = "\n".join(after)

    before_size = write_example_svg(svg_before, insert_xmlns_xlink, context.img_before_path)
    after_size = write_example_svg(svg_after, insert_xmlns_xlink, context.img_after_path)

    link_before = _image_link(context.img_before_path, context.workdir)
    link_after = _image_link(context.img_after_path, context.workdir)

    parts = [
        "|===\n",
        f"|Before ({before_size}B) |After ({after_size}B)\n",
        "\n",
        "a|\n[source,xml]\n----\n",
        svg_before,
        "\n----\n\n",
        "a|\n[source,xml]\n----\n",
        svg_after,
        "\n----\n\n",
    ]
    if context.mode is DocMode.CLI:
        parts.append(f"a|image::{link_before}[]\n")
        parts.append(f"a|image::{link_after}[]\n")
    parts.append("|===")
    return "".join(parts)


def _load_lines(path) -> list[str]:
    with open(path, encoding="utf-8", newline="") as f:
        text = f.read()
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def render_page(page_path, context: PageContext, out: TextIO) -> None:
    """Write one documentation page, expanding its example tables."""
    lines = iter(_load_lines(page_path))

    if context.mode is DocMode.GUI:
        # The GUI shows its own title.
        next(lines, None)
        next(lines, None)

    for line in lines:
        if line == _TABLE_MARK:
            if context.mode is DocMode.CLI:
                out.write(f"CLI argument: `--{basename(page_path)}`\n\n")
            else:
                out.write("{empty} +\n\n")
            out.write(build_table(lines, context))
            out.write("\n")
            next(lines, None)
        else:
            out.write(line + "\n")

    out.write("\n")


def generate(docdir, mode: DocMode = DocMode.CLI, outdir=None) -> None:
    """Build the documentation listed in ``<docdir>/src/order.txt``."""
    if mode is DocMode.GUI and outdir is None:
        raise ValueError("GUI documentation requires an output directory")

    docdir = Path(docdir)
    srcdir = docdir / "src"
    images_dir = docdir / "images"
    before_dir = images_dir / "before"
    after_dir = images_dir / "after"

    if mode is DocMode.CLI:
        for directory in (images_dir, before_dir, after_dir):
            ensure_dir(directory)

    with ExitStack() as stack:
        summary = None
        if mode is DocMode.CLI:
            summary = stack.enter_context(open(docdir / OUTPUT_NAME, "w", encoding="utf-8"))
            summary.write(HEADER)

        for line in _load_lines(srcdir / "order.txt"):
            if line.startswith("-- "):
                if summary is not None:
                    summary.write(f"== {line.replace('-- ', '')}\n\n")
                continue

            page_path = srcdir / line
            print(f'"{page_path}"')

            name = basename(page_path)
            context = PageContext(
                workdir=docdir,
                mode=mode,
                img_before_path=svg_path_for(before_dir, name),
                img_after_path=svg_path_for(after_dir, name),
            )

            if summary is not None:
                render_page(page_path, context, summary)
            else:
                with open(Path(outdir) / line, "w", encoding="utf-8") as out:
                    render_page(page_path, context, out)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="docgen")
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")
    parser.add_argument("--docdir", required=True, metavar="DIR",
                        help="Sets path to documentation directory")
    parser.add_argument("--for-gui", action="store_true",
                        help="Generate documentation for GUI")
    parser.add_argument("--outdir", metavar="DIR", help="Sets path to working directory")
    args = parser.parse_args(argv)

    if args.for_gui and args.outdir is None:
        parser.error("--for-gui requires --outdir")

    mode = DocMode.GUI if args.for_gui else DocMode.CLI
    generate(args.docdir, mode, args.outdir)
    return 0