"""Migration planning: introspect, diff, render.

``migrate`` produces the plan for one entity: either the statements that
build its table from nothing, the alterations that reconcile the live table
with the desired one, or the introspection errors that prevented planning.
Nothing is executed; the only database access is the read-only catalog
queries issued by the introspector.

Usage:
    from db_migrate.schema.planner import migrate_all, mock_migration

    plans = migrate_all(entities, runner, "app")
    for plan in plans:
        print(plan.format_report())

    # Dry run without a database
    for plan in mock_migration(entities):
        print(plan.format_report())
"""

import logging

from db_migrate.adapters.base import EmptyQueryRunner, QueryRunner
from db_migrate.schema.compiler import compile_entity
from db_migrate.schema.diff import TableState, create_table_steps, diff_table
from db_migrate.schema.introspector import SchemaIntrospector
from db_migrate.schema.models import (
    ColumnSchema,
    EntityDefinition,
    MigrationPlan,
    ParseError,
    UniqueSchema,
)
from db_migrate.schema.operations import Step
from db_migrate.schema.render import render_steps

logger = logging.getLogger(__name__)


def _strip_explicit_references(
    columns: list[ColumnSchema], constraint_names: set[str]
) -> list[ColumnSchema]:
    """Drop live references that belong to an explicit foreign key definition.

    Explicit (possibly composite) foreign keys are not diffed column by
    column, so their live single-column view must not trigger a drop.
    """
    stripped = []
    for column in columns:
        if column.reference is not None and column.reference.constraint_name in constraint_names:
            column = column.model_copy(update={"reference": None})
        stripped.append(column)
    return stripped


def plan_steps(
    entity: EntityDefinition,
    all_entities: list[EntityDefinition],
    runner: QueryRunner,
    database: str,
) -> list[Step] | list[ParseError]:
    """Compute the unrendered steps for ``entity``, or its parse errors."""
    compiled = compile_entity(entity)
    id_results, other_results = SchemaIntrospector(runner, database).get_columns(entity)

    if not id_results and not other_results:
        return create_table_steps(entity, compiled, all_entities)

    errors = [r for r in id_results + other_results if isinstance(r, ParseError)]
    if errors:
        return errors

    live_columns = [r for r in other_results if isinstance(r, ColumnSchema)]
    live_uniques = [r for r in other_results if isinstance(r, UniqueSchema)]
    explicit_names = {fk.constraint_name for fk in compiled.foreign_keys}

    column_alters, table_alters = diff_table(
        entity.name,
        TableState(compiled.columns, compiled.uniques),
        TableState(_strip_explicit_references(live_columns, explicit_names), live_uniques),
        all_entities,
    )
    return [*column_alters, *table_alters]


def migrate(
    entity: EntityDefinition,
    all_entities: list[EntityDefinition],
    runner: QueryRunner,
    database: str,
) -> MigrationPlan:
    """Plan the migration of one entity's table.

    Args:
        entity: Desired definition of the table to migrate
        all_entities: Every entity definition, for resolving references
        runner: Query-execution capability for the catalog queries
        database: Schema name the table lives in

    Returns:
        MigrationPlan with rendered steps, or with errors and no steps

    Raises:
        AmbiguousForeignKeyError: If a live column has several reference rows
        DefinitionError: If a definition references an unknown entity or field
    """
    result = plan_steps(entity, all_entities, runner, database)

    if result and isinstance(result[0], ParseError):
        messages = [error.message for error in result]
        logger.warning(f"{entity.name}: {len(messages)} introspection error(s)")
        return MigrationPlan(table=entity.name, errors=messages)

    plan = MigrationPlan(table=entity.name, steps=render_steps(result))
    logger.info(
        f"{entity.name}: {len(plan.steps)} step(s), {len(plan.unsafe_steps)} unsafe"
    )
    return plan


def _topological_sort(dependencies: dict[str, set[str]], tables: list[str]) -> list[str]:
    """Topological sort of tables based on FK dependencies.

    Returns tables in forward order: referenced tables first.  Cycles are
    broken by emitting the table where the cycle was detected.
    """
    relevant = {t: dependencies.get(t, set()) & set(tables) for t in tables}

    sorted_tables: list[str] = []
    visited: set[str] = set()
    visiting: set[str] = set()

    def visit(table: str) -> None:
        if table in visited or table in visiting:
            return
        visiting.add(table)
        for dep in sorted(relevant.get(table, set())):
            visit(dep)
        visiting.discard(table)
        visited.add(table)
        sorted_tables.append(table)

    for table in tables:
        visit(table)

    return sorted_tables


def dependency_order(entities: list[EntityDefinition]) -> list[EntityDefinition]:
    """Order entities so that referenced tables come before referencing ones."""
    dependencies: dict[str, set[str]] = {}
    for entity in entities:
        refs = {f.references for f in entity.fields if f.references is not None}
        refs.update(fk.references for fk in entity.foreign_keys)
        refs.discard(entity.name)
        dependencies[entity.name] = refs

    by_name = {entity.name: entity for entity in entities}
    order = _topological_sort(dependencies, [entity.name for entity in entities])
    return [by_name[name] for name in order]


def migrate_all(
    entities: list[EntityDefinition],
    runner: QueryRunner,
    database: str,
) -> list[MigrationPlan]:
    """Plan every entity, referenced tables first."""
    return [migrate(entity, entities, runner, database) for entity in dependency_order(entities)]


def mock_migration(entities: list[EntityDefinition]) -> list[MigrationPlan]:
    """Dry-run preview: the create-everything plan, without a database.

    The ``EmptyQueryRunner`` reports no columns for any table, so every
    entity takes the create-table path.
    """
    runner = EmptyQueryRunner()
    return [migrate(entity, entities, runner, "") for entity in dependency_order(entities)]
