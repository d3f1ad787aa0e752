"""Generate DDL scripts for TPC-DS schema variants from table definitions."""

from __future__ import annotations

import dataclasses
import json
import os
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import jinja2

from pbench import log

FIXED_WORKLOAD = "tpcds"
FIXED_DEFINITION = "tpc-ds"

CREATE_TABLE_TEMPLATE = "create_table.sql.tmpl"
INSERT_TABLE_TEMPLATE = "insert_table.sql.tmpl"
AWS_S3_MV_TEMPLATE = "aws_s3_mv.sh.tmpl"
CALL_ANALYZE_TEMPLATE = "call_analyze.sql.tmpl"
AWS_S3_CP_TEMPLATE = "aws_s3_cp.sh.tmpl"

# (iceberg, partitioned) variants generated from one config, in this order.
_COMBINATIONS = ((True, False), (True, True), (False, False), (False, True))
_INTEGER = re.compile(r"[+-]?\d+", re.ASCII)


def _opt_str(data: Mapping[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {value!r}")
    return value


def _opt_nullable_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {value!r}")
    return value


def _opt_bool(data: Mapping[str, Any], key: str) -> bool | None:
    value = data.get(key)
    if value is not None and not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean, got {value!r}")
    return value


def _opt_int(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value


def _require_mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{what} must be a JSON object")
    return value


def _find_key(data: Mapping[str, Any], name: str) -> Any:
    """Look a key up ignoring case and underscores."""
    wanted = name.replace("_", "").lower()
    for key, value in data.items():
        if isinstance(key, str) and key.replace("_", "").lower() == wanted:
            return value
    return None


@dataclass
class Column:
    """A column of a table definition."""

    name: str = ""
    type: str | None = None
    partition_key: bool | None = None
    bucket_key: bool | None = None
    is_varchar: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Column":
        data = _require_mapping(data, "column")
        return cls(
            name=_opt_str(data, "name"),
            type=_opt_nullable_str(data, "type"),
            partition_key=_opt_bool(data, "partition_key"),
            bucket_key=_opt_bool(data, "bucket_key"),
        )


@dataclass
class Table:
    """A table definition with its columns."""

    name: str = ""
    partitioned: bool = False
    partitioned_min_scale: int = 0
    columns: list[Column] = field(default_factory=list)
    last_column: Column | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Table":
        data = _require_mapping(data, "table")
        raw_columns = data.get("columns")
        if raw_columns is None:
            raw_columns = []
        if not isinstance(raw_columns, list):
            raise ValueError("columns must be a JSON array")
        return cls(
            name=_opt_str(data, "name"),
            partitioned=bool(_opt_bool(data, "partitioned")),
            partitioned_min_scale=_opt_int(data, "partitioned_min_scale"),
            columns=[Column.from_dict(column) for column in raw_columns],
        )

    def init_is_varchar(self) -> None:
        """Mark the columns whose type is VARCHAR(n)."""
        for column in self.columns:
            if column.type is None:
                raise ValueError(f"column {column.name!r} of table {self.name!r} has no type")
            paren = column.type.find("(")
            column.is_varchar = paren >= 0 and column.type[:paren] == "VARCHAR"

    def is_partitioned(self, scale_factor: int) -> bool:
        """Partitioned when the scale factor reaches the minimum, or per the flag."""
        if self.partitioned_min_scale > 0:
            return scale_factor >= self.partitioned_min_scale
        return self.partitioned

    def reorder_columns(self, schema: "Schema") -> None:
        """Move the first partition key column to the end when both are partitioned."""
        if not self.columns or not (schema.partitioned and self.partitioned):
            return
        for index, column in enumerate(self.columns):
            if column.partition_key:
                self.columns.append(self.columns.pop(index))
                return


@dataclass
class RegisterTable:
    """A table registered from an existing location instead of being created."""

    table_name: str = ""
    external_location: str | None = None


@dataclass
class Schema:
    """One schema variant and the tables generated for it."""

    scale_factor: str = ""
    file_format: str = ""
    iceberg: bool = False
    compression_method: str = ""
    partitioned: bool = False
    schema_name: str = ""
    location_name: str = ""
    uncompressed_name: str = ""
    iceberg_location_name: str = ""
    part_iceberg_name: str = ""
    register_tables: list[RegisterTable] = field(default_factory=list)
    tables: dict[str, Table] = field(default_factory=dict)
    insert_tables: dict[str, Table] = field(default_factory=dict)
    session_variables: dict[str, str] = field(default_factory=dict)

    def set_names(self) -> None:
        """Derive the schema and location names from the variant's settings."""
        iceberg = "_iceberg" if self.iceberg else "_hive"
        partitioned = "_partitioned" if self.partitioned else ""
        compression = "_zstd" if self.compression_method == "zstd" else ""
        prefix = f"{FIXED_WORKLOAD}-sf{self.scale_factor}-{self.file_format}"
        self.uncompressed_name = (
            f"{FIXED_WORKLOAD}_sf{self.scale_factor}_{self.file_format}{partitioned}{iceberg}"
        )
        self.schema_name = self.uncompressed_name + compression
        self.location_name = (
            prefix + _to_hyphen(partitioned) + _to_hyphen(iceberg) + _to_hyphen(compression)
        )
        self.iceberg_location_name = prefix + "-iceberg"
        self.part_iceberg_name = prefix + _to_hyphen(partitioned) + "-iceberg"

    def set_session_vars(self) -> None:
        """Set the run time limits and the compression codec session variables."""
        self.session_variables["query_max_execution_time"] = "12h"
        self.session_variables["query_max_run_time"] = "12h"
        codec = {"uncompressed": "NONE", "zstd": "ZSTD"}.get(self.compression_method)
        if codec is not None:
            prefix = "iceberg" if self.iceberg else "hive"
            self.session_variables[f"{prefix}.compression_codec"] = codec

    def int_scale_factor(self) -> int:
        """The scale factor as an integer ("10k" means 10000); 0 when unparsable."""
        text = self.scale_factor
        multiplier = 1
        if text.endswith("k"):
            text = text[:-1]
            multiplier = 1000
        if _INTEGER.fullmatch(text) is None:
            return 0
        return int(text) * multiplier

    def non_part_location_name(self) -> str:
        return self.location_name.replace("-partitioned", "", 1)

    def should_gen_insert(self) -> bool:
        return self.iceberg


def _to_hyphen(text: str) -> str:
    return text.replace("_", "-", 1)


def is_register_table(table: Table, schema: Schema) -> bool:
    """Unpartitioned tables of a partitioned Iceberg schema are registered."""
    if schema.iceberg and schema.partitioned:
        return not table.partitioned
    return False


def is_insert_table(table: Table, schema: Schema) -> bool:
    if schema.partitioned:
        return table.partitioned
    return True


def _decode(data: str | bytes | bytearray) -> Any:
    try:
        return json.loads(data)
    except ValueError as exc:
        raise ValueError(f"invalid JSON config: {exc}") from exc


def named_output(config_data: str | bytes | bytearray) -> str:
    """Name of the version-controlled output directory for a config."""
    config = _require_mapping(_decode(config_data), "config")
    for key, value in config.items():
        if not isinstance(value, str):
            raise ValueError(f"config value of {key} must be a string, got {value!r}")
    scale_factor = config.get("scale_factor", "")
    file_format = config.get("file_format", "")
    compression = config.get("compression_method", "")
    suffix = "" if compression == "uncompressed" else "-" + compression
    return f"{FIXED_WORKLOAD}-sf{scale_factor}-{file_format}{suffix}"


def _table_map(data: Mapping[str, Any], key: str) -> dict[str, Table]:
    raw = data.get(key)
    if raw is None:
        return {}
    raw = _require_mapping(raw, key)
    return {name: Table.from_dict(value) for name, value in raw.items()}


def _register_tables(data: Mapping[str, Any]) -> list[RegisterTable]:
    raw = data.get("register_tables")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError("register_tables must be a JSON array")
    result = []
    for item in raw:
        item = _require_mapping(item, "register table")
        name = _find_key(item, "table_name")
        location = _find_key(item, "external_location")
        if name is not None and not isinstance(name, str):
            raise ValueError(f"table name must be a string, got {name!r}")
        if location is not None and not isinstance(location, str):
            raise ValueError(f"external location must be a string, got {location!r}")
        result.append(RegisterTable(name or "", location))
    return result


def _schema_from_mapping(data: Mapping[str, Any]) -> Schema:
    data = _require_mapping(data, "config")
    session = data.get("session_variables")
    session = {} if session is None else dict(_require_mapping(session, "session_variables"))
    for key, value in session.items():
        if not isinstance(value, str):
            raise ValueError(f"session variable {key} must be a string, got {value!r}")
    return Schema(
        scale_factor=_opt_str(data, "scale_factor"),
        file_format=_opt_str(data, "file_format"),
        iceberg=bool(_opt_bool(data, "iceberg")),
        compression_method=_opt_str(data, "compression_method"),
        partitioned=bool(_opt_bool(data, "partitioned")),
        schema_name=_opt_str(data, "schema_name"),
        location_name=_opt_str(data, "location_name"),
        uncompressed_name=_opt_str(data, "uncompressed_name"),
        iceberg_location_name=_opt_str(data, "iceberg_location_name"),
        part_iceberg_name=_opt_str(data, "part_iceberg_name"),
        register_tables=_register_tables(data),
        tables=_table_map(data, "tables"),
        insert_tables=_table_map(data, "insert_tables"),
        session_variables=session,
    )


def load_schemas(data: str | bytes | bytearray) -> list[Schema]:
    """Build the four Iceberg/Hive and partitioned/unpartitioned variants of a config."""
    base = _schema_from_mapping(_decode(data))
    schemas = []
    for iceberg, partitioned in _COMBINATIONS:
        schema = dataclasses.replace(
            base,
            iceberg=iceberg,
            partitioned=partitioned,
            register_tables=list(base.register_tables),
            tables=dict(base.tables),
            insert_tables=dict(base.insert_tables),
            session_variables=dict(base.session_variables),
        )
        if not schema.schema_name or not schema.location_name:
            schema.set_names()
        schema.set_session_vars()
        schemas.append(schema)
    return schemas


def clean_output_dir(directory: str | os.PathLike[str]) -> None:
    """Delete the files (not subdirectories) of a directory; a missing one is fine."""
    directory = os.fspath(directory)
    try:
        with os.scandir(directory) as scan:
            names = [entry.name for entry in scan if not entry.is_dir()]
    except OSError:
        return
    for name in names:
        path = os.path.join(directory, name)
        try:
            os.remove(path)
        except OSError as exc:
            raise OSError(f"failed to delete file {path}: {exc}") from exc


def _template_context(schema: Schema) -> dict[str, Any]:
    context = {f.name: getattr(schema, f.name) for f in dataclasses.fields(schema)}
    context["tables"] = dict(sorted(schema.tables.items()))
    context["insert_tables"] = dict(sorted(schema.insert_tables.items()))
    context["session_variables"] = dict(sorted(schema.session_variables.items()))
    context["schema"] = schema
    return context


def _render(
    schema: Schema,
    template_name: str,
    file_name: str,
    template_dir: str,
    output_dirs: Sequence[str | os.PathLike[str]],
) -> None:
    with open(os.path.join(template_dir, template_name), encoding="utf-8") as handle:
        source = handle.read()
    env = jinja2.Environment(
        undefined=jinja2.StrictUndefined, keep_trailing_newline=True, autoescape=False
    )
    content = env.from_string(source).render(_template_context(schema))
    for output_dir in output_dirs:
        path = os.path.join(os.fspath(output_dir), file_name)
        with open(path, "w", encoding="utf-8", newline="") as out:
            out.write(content)


def _generate_create_table(
    schema: Schema, template_dir: str, output_dirs: Sequence[str | os.PathLike[str]], step: int
) -> None:
    sub_steps = not schema.iceberg and schema.partitioned
    number = step + 1
    letter = "a" if sub_steps else ""
    location = schema.location_name
    _render(
        schema, CREATE_TABLE_TEMPLATE, f"{number}{letter}-create-{location}.sql",
        template_dir, output_dirs,
    )
    if sub_steps:
        _render(schema, AWS_S3_MV_TEMPLATE, f"{number}b-s3-mv-{location}.sh",
                template_dir, output_dirs)
        _render(schema, CALL_ANALYZE_TEMPLATE, f"{number}c-call-analyze-{location}.sql",
                template_dir, output_dirs)
        _render(schema, AWS_S3_CP_TEMPLATE, f"{number}d-s3-cp-{location}.sh",
                template_dir, output_dirs)


def _load_table(path: str) -> Table:
    with open(path, encoding="utf-8") as handle:
        text = handle.read()
    try:
        return Table.from_dict(json.loads(text))
    except ValueError as exc:
        raise ValueError(f"failed to load table definition {path}: {exc}") from exc


def _walk_error(exc: OSError) -> None:
    """Abort the definition walk, naming the path that could not be read."""
    where = exc.filename if exc.filename is not None else "definition directory"
    raise OSError(f"failed to walk {where}: {exc.strerror or exc}") from exc


def generate_schema_from_def(
    schema: Schema,
    def_dir: str | os.PathLike[str],
    template_dir: str | os.PathLike[str],
    output_dirs: Sequence[str | os.PathLike[str]],
    external_location: str | None,
    step: int,
) -> int:
    """Load the table definitions into schema, write its scripts and return the next step."""
    def_dir = os.fspath(def_dir)
    template_dir = os.fspath(template_dir)
    if not os.path.isdir(def_dir):
        raise FileNotFoundError(f"definition directory {def_dir} does not exist")
    scale_factor = schema.int_scale_factor()
    for dirpath, dirnames, filenames in os.walk(def_dir, onerror=_walk_error):
        dirnames.sort()
        for name in sorted(filenames):
            if not name.endswith(".json"):
                continue
            table = _load_table(os.path.join(dirpath, name))
            table.init_is_varchar()
            if table.is_partitioned(scale_factor):
                table.partitioned = True
            if is_register_table(table, schema):
                schema.register_tables.append(RegisterTable(table.name, external_location))
            else:
                table.reorder_columns(schema)
                if not table.columns:
                    raise ValueError(f"table {table.name!r} in {name} has no columns")
                table.last_column = table.columns[-1]
                schema.tables[table.name] = table
            if is_insert_table(table, schema):
                schema.insert_tables[table.name] = table

    _generate_create_table(schema, template_dir, output_dirs, step)
    step += 1
    if schema.should_gen_insert():
        _render(
            schema, INSERT_TABLE_TEMPLATE,
            f"{step + 1}-insert-{schema.location_name}.sql", template_dir, output_dirs,
        )
        step += 1
    return step


def run(
    config_path: str | os.PathLike[str], base_dir: str | os.PathLike[str] | None = None
) -> list[Schema]:
    """Generate the DDL scripts of every schema variant of a config file.

    base_dir holds the templates, definition/tpc-ds and receives out/ and
    generated-examples/<name>/; it defaults to cmd/genddl under the working directory.
    """
    config_path = os.path.abspath(os.path.expanduser(os.fspath(config_path)))
    with open(config_path, "rb") as handle:
        content = handle.read()
    schemas = load_schemas(content)

    if base_dir is None:
        base_dir = os.path.join(os.getcwd(), "cmd", "genddl")
    base_dir = os.fspath(base_dir)
    def_dir = os.path.join(base_dir, "definition", FIXED_DEFINITION)
    named_dir = os.path.join(base_dir, "generated-examples", named_output(content))
    output_dir = os.path.join(base_dir, "out")

    try:
        clean_output_dir(output_dir)
    except OSError as exc:
        log.warn().err(exc).msg("Error cleaning output dir")
    os.makedirs(output_dir, exist_ok=True)
    os.makedirs(named_dir, exist_ok=True)

    step = 0
    for schema in schemas:
        step = generate_schema_from_def(
            schema, def_dir, base_dir, [output_dir, named_dir],
            schema.non_part_location_name(), step,
        )
    return schemas