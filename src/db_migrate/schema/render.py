"""Render alteration operations as MySQL statement text.

One function per operation kind, plus ``render_step`` which dispatches on
the step type and attaches the safety flag.  Only column drops are flagged
unsafe.  Rendering is pure: it never queries the database and never fails
on steps built by the diff engine.

Usage:
    from db_migrate.schema.render import render_step

    unsafe, sql = render_step(AlterColumn("user", "email", DropColumn()))
    # (True, 'ALTER TABLE `user` DROP COLUMN `email`')
"""

from db_migrate.schema.models import (
    ColumnSchema,
    EntityDefinition,
    RenderedStep,
    SqlKind,
)
from db_migrate.schema.operations import (
    AddColumn,
    AddUniqueConstraint,
    AlterColumn,
    AlterTable,
    ChangeColumn,
    ClearDefault,
    CreateTable,
    DataFix,
    DropColumn,
    DropForeignKey,
    DropUniqueConstraint,
    SetDefault,
    SetForeignKey,
    Step,
    UniqueColumn,
)
from db_migrate.schema.types import render_sql_type


def escape_name(name: str) -> str:
    """Quote an identifier with backticks, doubling embedded backticks."""
    return "`" + name.replace("`", "``") + "`"


def _names(names: tuple[str, ...] | list[str]) -> str:
    return ",".join(escape_name(n) for n in names)


# ------------------------------------------------------------------
# Columns and tables
# ------------------------------------------------------------------


def render_column(column: ColumnSchema) -> str:
    """Render the column part of a CREATE/ALTER statement."""
    parts = [
        escape_name(column.name),
        " ",
        render_sql_type(column.sql_type, column.max_len, include_charset=True),
        " ",
        "NULL" if column.nullable else "NOT NULL",
    ]
    if column.default is not None:
        parts.append(f" DEFAULT {column.default}")
    if column.reference is not None:
        parts.append(f" REFERENCES {escape_name(column.reference.table)}")
    return "".join(parts)


def _id_clause(entity: EntityDefinition) -> str:
    if entity.primary_key is not None:
        return f" PRIMARY KEY ({_names(entity.primary_key)})"

    id_field = entity.id_field
    auto_increment = (
        " AUTO_INCREMENT"
        if id_field.sql_type.kind is SqlKind.INT64 and id_field.default is None
        else ""
    )
    return "".join([
        escape_name(id_field.name),
        " ",
        render_sql_type(id_field.sql_type, id_field.max_len),
        " NOT NULL",
        auto_increment,
        " PRIMARY KEY",
    ])


def render_create_table(step: CreateTable) -> str:
    columns = ",".join(render_column(c) for c in step.columns)
    separator = "," if columns else ""
    return (
        f"CREATE TABLE {escape_name(step.entity.name)}"
        f"({_id_clause(step.entity)}{separator}{columns})"
    )


# ------------------------------------------------------------------
# Column operations
# ------------------------------------------------------------------


def render_add_column(table: str, op: AddColumn) -> str:
    return f"ALTER TABLE {escape_name(table)} ADD COLUMN {render_column(op.column)}"


def render_change_column(table: str, old_name: str, op: ChangeColumn) -> str:
    # CHANGE rewrites the column; the reference is handled by FK steps
    column = op.column.model_copy(update={"reference": None})
    return (
        f"ALTER TABLE {escape_name(table)} CHANGE {escape_name(old_name)} "
        f"{render_column(column)}"
    )


def render_drop_column(table: str, column: str) -> str:
    return f"ALTER TABLE {escape_name(table)} DROP COLUMN {escape_name(column)}"


def render_set_default(table: str, column: str, op: SetDefault) -> str:
    return (
        f"ALTER TABLE {escape_name(table)} ALTER COLUMN {escape_name(column)} "
        f"SET DEFAULT {op.value}"
    )


def render_clear_default(table: str, column: str) -> str:
    return (
        f"ALTER TABLE {escape_name(table)} ALTER COLUMN {escape_name(column)} "
        "DROP DEFAULT"
    )


def render_data_fix(table: str, column: str, op: DataFix) -> str:
    name = escape_name(column)
    return f"UPDATE {escape_name(table)} SET {name}={op.expression} WHERE {name} IS NULL"


def render_add_foreign_key(table: str, op: SetForeignKey) -> str:
    return (
        f"ALTER TABLE {escape_name(table)} ADD CONSTRAINT "
        f"{escape_name(op.constraint_name)} FOREIGN KEY({_names(op.columns)}) "
        f"REFERENCES {escape_name(op.ref_table)}({_names(op.ref_columns)})"
    )


def render_drop_foreign_key(table: str, op: DropForeignKey) -> str:
    return (
        f"ALTER TABLE {escape_name(table)} DROP FOREIGN KEY "
        f"{escape_name(op.constraint_name)}"
    )


# ------------------------------------------------------------------
# Table operations
# ------------------------------------------------------------------


def _unique_member(column: UniqueColumn) -> str:
    # Text and blob columns need an index prefix length
    if column.sql_type.kind in (SqlKind.STRING, SqlKind.BLOB):
        return f"{escape_name(column.name)}({column.max_len})"
    return escape_name(column.name)


def render_add_unique(table: str, op: AddUniqueConstraint) -> str:
    members = ",".join(_unique_member(c) for c in op.columns)
    return (
        f"ALTER TABLE {escape_name(table)} ADD CONSTRAINT "
        f"{escape_name(op.name)} UNIQUE({members})"
    )


def render_drop_unique(table: str, op: DropUniqueConstraint) -> str:
    return f"ALTER TABLE {escape_name(table)} DROP INDEX {escape_name(op.name)}"


# ------------------------------------------------------------------
# Dispatch
# ------------------------------------------------------------------


def render_alter_column(step: AlterColumn) -> str:
    table, subject, op = step.table, step.subject, step.op

    if isinstance(op, AddColumn):
        return render_add_column(table, op)
    if isinstance(op, ChangeColumn):
        return render_change_column(table, subject, op)
    if isinstance(op, DropColumn):
        return render_drop_column(table, subject)
    if isinstance(op, SetDefault):
        return render_set_default(table, subject, op)
    if isinstance(op, ClearDefault):
        return render_clear_default(table, subject)
    if isinstance(op, DataFix):
        return render_data_fix(table, subject, op)
    if isinstance(op, SetForeignKey):
        return render_add_foreign_key(table, op)
    if isinstance(op, DropForeignKey):
        return render_drop_foreign_key(table, op)
    raise TypeError(f"Unknown column operation: {op!r}")


def render_alter_table(step: AlterTable) -> str:
    if isinstance(step.op, AddUniqueConstraint):
        return render_add_unique(step.table, step.op)
    if isinstance(step.op, DropUniqueConstraint):
        return render_drop_unique(step.table, step.op)
    raise TypeError(f"Unknown table operation: {step.op!r}")


def is_unsafe(step: Step) -> bool:
    """Only dropping a column is reported as unsafe."""
    return isinstance(step, AlterColumn) and isinstance(step.op, DropColumn)


def render_step(step: Step) -> RenderedStep:
    """Render one step as ``(unsafe, sql)``."""
    if isinstance(step, CreateTable):
        sql = render_create_table(step)
    elif isinstance(step, AlterColumn):
        sql = render_alter_column(step)
    elif isinstance(step, AlterTable):
        sql = render_alter_table(step)
    else:
        raise TypeError(f"Unknown step: {step!r}")
    return RenderedStep(unsafe=is_unsafe(step), sql=sql)


def render_steps(steps: list[Step]) -> list[RenderedStep]:
    return [render_step(step) for step in steps]
