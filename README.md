# pbench

A Python library of helpers for running and analysing Presto benchmarks:
trimming over-long decimals in result files, generating TPC-DS DDL scripts
from table definitions, and writing structured JSON log lines.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

### `pbench.rounding` — round decimal values in output files

`DecimalRounder(precision=12, file_extensions=(".output",), file_format="json", in_place=False, recursive=False)`
looks at the columns of a file's first row; each column holding a decimal with
more fractional digits than `precision` is cut down to that precision in every
row. `file_format` is `"json"` (rows like `[a,b,c]`) or `"csv"`; in CSV mode a
shortened value is written in double quotes. Bad extensions (not starting with
a dot), an unknown format or a negative precision raise `ValueError`.

- `process_file(path)` rewrites one file if its name has an accepted extension
  and returns `True` when a rewritten file was produced. Without `in_place` the
  result goes to `<name>.rewrite<ext>` beside the input; with `in_place` the
  original file is replaced. Files whose first row has no decimal column are
  left alone. A row with a different column count than the first raises
  `ValueError`.
- `process_path(path)` handles a file, or every file in a directory, descending
  into subdirectories only when `recursive` is set.
- `accepts(path)` tells whether a path carries an accepted extension.
- `files_scanned` and `files_written` count the work done.

`split_fields(text)` splits a row on commas and newlines, keeping single- or
double-quoted sections together, trimming whitespace and dropping empty
fields. An unterminated quote raises `ValueError`.

```python
from pbench.rounding import DecimalRounder, split_fields

split_fields('"abc,d",1.22332,true')   # ['"abc,d"', '1.22332', 'true']
DecimalRounder(precision=4, file_format="csv").process_path("results/")
```

### `pbench.genddl` — generate DDL scripts

`run(config_path, base_dir=None)` reads a JSON schema config (`scale_factor`,
`file_format`, `compression_method`, ...) and builds four variants of it:
Iceberg and Hive, each unpartitioned and partitioned (`load_schemas`). For each
variant it loads the table definitions in `base_dir/definition/tpc-ds/*.json`
and renders Jinja2 templates from `base_dir` into numbered scripts:

- `create_table.sql.tmpl` → `<n>-create-<location>.sql` (or `<n>a-...` for
  partitioned Hive, followed by `aws_s3_mv.sh.tmpl`, `call_analyze.sql.tmpl`
  and `aws_s3_cp.sh.tmpl` as steps b, c and d);
- `insert_table.sql.tmpl` → `<n>-insert-<location>.sql` for Iceberg variants.

Scripts are written both to `base_dir/out` (whose files are removed first) and
to `base_dir/generated-examples/<name>`, where `<name>` comes from
`named_output`. `base_dir` defaults to `cmd/genddl` under the working
directory. Templates see the `Schema` fields (`schema_name`, `location_name`,
`tables`, `insert_tables`, `register_tables`, `session_variables`, ...) as
variables, and the schema itself as `schema`. `run` returns the list of
`Schema` objects.

The module also exposes `Schema`, `Table`, `Column`, `RegisterTable`,
`is_register_table`, `is_insert_table`, `clean_output_dir` and
`generate_schema_from_def` for finer control.

### `pbench.log` — structured JSON logging

A `Logger(stream=None, level=Level.TRACE, override_fatal=False)` writes one
JSON object per line (to standard error when no stream is given). Events are
built by chaining and written by `msg()` or `send()`:

```python
import io
from pbench.log import Logger, set_global_logger, info

buf = io.StringIO()
set_global_logger(Logger(buf))
info().field("key", "value").msg("hello %d", 12)
# {"level":"info","key":"value","message":"hello 12"}
```

`Event.err`, `Event.array` and `Event.object` add an error or a rendered
`Marshaller`. Sending a fatal event raises `SystemExit(1)` unless the logger
was made with `override_fatal=True`. Module-level `log()`, `debug()`, `info()`,
`warn()`, `error()` and `fatal()` use the logger set with `set_global_logger`
(see `get_logger`).

### `pbench.marshal` — render values for log records

`Marshaller(obj, nested_level_limit=3, field_or_element_limit=15)` turns
mappings, sequences, dataclasses and plain objects into JSON-ready dicts
(`as_object()`) and lists (`as_array()`). Map keys are sorted and field names
converted with `to_snake_case`; anything past the width limit is replaced by a
`"..."` marker and anything past the depth limit by a `<type Value>`
placeholder.

### `pbench.synced` — a lock-guarded time value

`SyncedTime(value)` holds a `datetime`; `get()` reads it under the lock, and
`with t.synchronized() as st:` lets a thread read and assign `st.value`
atomically.

## What this package does not do

There is no `pbench` command: everything is used as a library from Python.
The package does not compare result directories with `diff`, does not generate
cluster configurations from templates, does not parse or replay query
workload CSV files, and does not talk to a Presto server.