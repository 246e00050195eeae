# svgbench

Tools for checking and measuring an SVG cleaning program: a regression
runner that compares rendered output against the original, a statistics
collector that compares several cleaners, and a generator for the
documentation of cleaning options.

The package has no third-party dependencies. The command-line tools start
external programs, which must be available:

- `compare` and `convert` (ImageMagick) on `PATH`, to diff and join rendered
  images (`compare` is run with `-metric AE -fuzz 10%`);
- `file` on `PATH`, to read the size of a PNG image;
- `node` on `PATH`, with a `../svgrender/screenshot.js` script relative to the
  current directory, to render SVG files to 512-pixel PNG images.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Commands

### Regression testing

```
svgbench-regression --workdir DIR --input-data DIR --cache-db PATH [--input-data-config PATH]
```

Cleans every `.svg` file under the input directory, renders the original and
the cleaned file, and compares the two images by absolute error (AE). A
file passes when its AE does not exceed the allowed value.

The command expects, relative to the current directory, the cleaner at
`../../target/release/svgcleaner` and an image-review program at
`../err-view/err_view`; it stops with an error if either is missing. When a
config is given and a file's AE is too high, the review program is started
with the file name, the three image paths, the AE and the config path, and
its exit status decides whether the file passes.

Accepted results are stored in an SQLite database (`--cache-db`) by the MD5
sum of the cleaned file, so unchanged output is not rendered again.
Rendered originals are kept in `orig_pngs` inside the work directory. When a
test fails, its position is saved to `pos.txt` in the work directory and the
next run resumes from there.

The optional JSON config holds:

- `min_valid_ae`: the default allowed AE (required when a config is given);
- `custom_ae`: a list of `{"name": ..., "valid_ae": ...}` entries overriding
  the allowed AE for single files;
- `ignore`: a list of `{"name": ...}` entries for files to skip.

A name listed twice in either list is an error.

### Statistics

```
svgbench-stats --workdir DIR --input-data DIR --type {svgcleaner,scour,svgo} --cleaner PATH [--threshold PERCENT] [--skip-errors-check]
```

Runs the chosen cleaner over every `.svg` file and prints the file count, the
number of files cleaned with errors, unchanged files, total sizes after and
before, the cleaning ratio, the cleaning time and the list of broken files.
A file whose images differ counts as broken unless the whole-number percentage
of differing pixels is below the threshold (`0` to `255`, default `0`).
Side-by-side images of broken files are written to `broken_imgs` in the work
directory. `--skip-errors-check` skips rendering and comparison and counts
every cleaned file as successful.

### Documentation

```
svgbench-docgen --docdir DIR [--for-gui --outdir DIR]
```

Reads the pages listed in `src/order.txt` of the documentation directory.
Lines starting with `-- ` are section titles. A page's example block, between
`////` marks, holds the "before" SVG, a `SPLIT` line and the "after" SVG;
a `NO_XMLNS_XLINK` line leaves out the `xmlns:xlink` declaration. Each
example is written as a standalone SVG file to `images/before` and
`images/after`, and becomes a table with both sources and their sizes.

By default a single `svgcleaner.adoc` is written to the documentation
directory, with image links in the tables. With `--for-gui` each page is
written separately into the output directory, without its first two lines
(the title) and without image links; the `images/before` and `images/after`
directories must then exist already.

Both `svgbench-docgen` and `svgbench-stats` accept `--version`.

## Library use

The building blocks are importable as well:

```python
from svgbench.idgen import short_ids
from svgbench.toolkit import png_path_for, file_md5

ids = short_ids()
next(ids)  # 'a'
next(ids)  # 'b'

png_path_for("work/image.svg", "_new")  # 'work/image_new.png'
```

- `svgbench.idgen`: `ShortIdGenerator` produces the shortest valid
  identifiers in order: `a`..`z`, `A`..`Z`, then `aa`, `ab`, ...; an
  identifier never starts with a digit, and at most five characters are used
  (`advance()` raises `OverflowError` beyond that). `short_ids()` yields them.
- `svgbench.toolkit`: `compare_images`, `parse_ae_output`, `image_size`,
  `parse_image_size`, `render_svg`, `png_path_for`, `ensure_dir`,
  `is_svg_entry`, `iter_svg_tree` and `file_md5`.
- `svgbench.regression`: `ResultCache`, `RegressionConfig`,
  `RegressionSettings`, `run_test`, `run_tests` and the config helpers.
- `svgbench.stats`: `Cleaner`, `CleanerKind`, `StatsSettings`, `FileStats`,
  `TotalStats`, `file_stats`, `collect_stats` and `format_total_stats`.
- `svgbench.docgen`: `DocMode`, `PageContext`, `build_table`, `render_page`
  and `generate`.

## What it does not do

The package does not clean SVG files and does not render them itself: it
drives an external cleaner, the `node` renderer script and ImageMagick, and
only judges and reports their results. It includes no image-review program;
the regression runner only starts one at the path given above.