"""Tests for migration planning end to end over an in-memory catalog."""

import logging

import pytest

from db_migrate.adapters.base import EmptyQueryRunner
from db_migrate.schema.introspector import AmbiguousForeignKeyError
from db_migrate.schema.models import (
    BLOB,
    BOOL,
    DAY,
    DAY_TIME,
    INT32,
    INT64,
    REAL,
    STRING,
    TIME,
    ColumnSchema,
    EntityDefinition,
    FieldDefinition,
    ForeignKeyDefinition,
    MigrationPlan,
    SqlType,
    UniqueDefinition,
)
from db_migrate.schema.operations import (
    AddColumn,
    AddUniqueConstraint,
    ChangeColumn,
    ClearDefault,
    CreateTable,
    DropColumn,
    DropForeignKey,
    DropUniqueConstraint,
    SetDefault,
    SetForeignKey,
)
from db_migrate.schema.planner import (
    dependency_order,
    migrate,
    migrate_all,
    mock_migration,
    plan_steps,
)
from fakes import FakeRunner, LiveTable, catalog_for, column_row, table_catalog

AUTHOR = EntityDefinition(
    name="author",
    fields=[
        FieldDefinition(name="name", sql_type=STRING, max_len=80),
        FieldDefinition(name="bio", sql_type=STRING, nullable=True),
    ],
    uniques=[UniqueDefinition(name="unique_author_name", fields=["name"])],
)
PUBLISHER = EntityDefinition(
    name="publisher",
    fields=[FieldDefinition(name="name", sql_type=STRING, max_len=80)],
)
BOOK = EntityDefinition(
    name="book",
    fields=[
        FieldDefinition(name="title", sql_type=STRING, max_len=200),
        FieldDefinition(name="price", sql_type=SqlType.numeric(10, 2), nullable=True),
        FieldDefinition(name="in_print", sql_type=BOOL, default="1"),
        FieldDefinition(name="pages", sql_type=INT32),
        FieldDefinition(name="rating", sql_type=REAL, nullable=True),
        FieldDefinition(name="cover", sql_type=BLOB, nullable=True),
        FieldDefinition(name="published", sql_type=DAY, nullable=True),
        FieldDefinition(name="updated_at", sql_type=DAY_TIME),
        FieldDefinition(name="reading_time", sql_type=TIME, nullable=True),
        FieldDefinition(name="author_id", sql_type=INT64, references="author"),
    ],
    uniques=[UniqueDefinition(name="unique_title_author", fields=["title", "author_id"])],
)
MEMBERSHIP = EntityDefinition(
    name="membership",
    primary_key=["user_id", "group_id"],
    fields=[
        FieldDefinition(name="user_id", sql_type=INT64),
        FieldDefinition(name="group_id", sql_type=INT64),
    ],
)
GRANT = EntityDefinition(
    name="grant",
    fields=[
        FieldDefinition(name="member_user", sql_type=INT64),
        FieldDefinition(name="member_group", sql_type=INT64),
    ],
    foreign_keys=[
        ForeignKeyDefinition(
            references="membership",
            constraint_name="grant_membership_fkey",
            fields=[("member_user", "user_id"), ("member_group", "group_id")],
        )
    ],
)
ALL = [BOOK, AUTHOR, PUBLISHER, MEMBERSHIP, GRANT]


def _missing_columns(live: LiveTable) -> None:
    live.drop_column("pages")
    live.drop_column("author_id")
    live.uniques["unique_title_author"] = ("title",)


def _shorter_title(live: LiveTable) -> None:
    live.replace_column("title", max_len=100)


def _rating_not_null(live: LiveTable) -> None:
    live.replace_column("rating", nullable=False, default=None)


def _in_print_without_default(live: LiveTable) -> None:
    live.replace_column("in_print", default=None)


def _name_with_default(live: LiveTable) -> None:
    live.replace_column("name", default="'anon'")


def _author_id_to_publisher(live: LiveTable) -> None:
    live.references["author_id"] = ("publisher", "book_author_id_fkey", 1)


def _unique_members_changed(live: LiveTable) -> None:
    live.uniques["unique_author_name"] = ("bio", "name")


def _extra_unique(live: LiveTable) -> None:
    live.uniques["unique_legacy"] = ("bio",)


def _unique_missing(live: LiveTable) -> None:
    del live.uniques["unique_author_name"]


def _extra_referencing_column(live: LiveTable) -> None:
    live.columns.append(ColumnSchema(name="legacy", sql_type=INT32))
    live.references["legacy"] = ("publisher", "author_legacy_fkey", 1)


DRIFTS = [
    pytest.param(BOOK, _missing_columns, {AddColumn, SetForeignKey}, id="add-column"),
    pytest.param(BOOK, _shorter_title, {ChangeColumn}, id="change-type"),
    pytest.param(BOOK, _rating_not_null, {ChangeColumn, SetDefault}, id="change-nullability"),
    pytest.param(BOOK, _in_print_without_default, {SetDefault}, id="set-default"),
    pytest.param(AUTHOR, _name_with_default, {ClearDefault}, id="clear-default"),
    pytest.param(BOOK, _author_id_to_publisher, {DropForeignKey, SetForeignKey}, id="retarget-reference"),
    pytest.param(
        AUTHOR, _unique_members_changed, {DropUniqueConstraint, AddUniqueConstraint}, id="readd-unique"
    ),
    pytest.param(AUTHOR, _extra_unique, {DropUniqueConstraint}, id="drop-unique"),
    pytest.param(AUTHOR, _unique_missing, {AddUniqueConstraint}, id="add-unique"),
    pytest.param(AUTHOR, _extra_referencing_column, {DropForeignKey, DropColumn}, id="drop-column"),
]


# ============================================================================
# Test: Create Path
# ============================================================================


class TestCreatePath:
    """Tables with no live columns are built from nothing."""

    def test_new_table_single_create(self) -> None:
        plan = migrate(BOOK, ALL, FakeRunner(), "app")
        creates = [s for s in plan.steps if s.sql.startswith("CREATE TABLE")]
        assert len(creates) == 1
        assert plan.steps[0].sql.startswith("CREATE TABLE `book`(")

    def test_plain_table_is_exactly_one_create(self) -> None:
        """Id plus two string fields on an empty schema: one CreateTable, nothing else."""
        person = EntityDefinition(
            name="person",
            fields=[
                FieldDefinition(name="first_name", sql_type=STRING, max_len=40),
                FieldDefinition(name="last_name", sql_type=STRING, max_len=40),
            ],
        )
        steps = plan_steps(person, [person], FakeRunner(), "app")
        assert len(steps) == 1
        assert isinstance(steps[0], CreateTable)

        plan = migrate(person, [person], FakeRunner(), "app")
        assert plan.steps == [
            (
                False,
                "CREATE TABLE `person`(`id` BIGINT NOT NULL AUTO_INCREMENT PRIMARY KEY,"
                "`first_name` VARCHAR(40) CHARACTER SET utf8 NOT NULL,"
                "`last_name` VARCHAR(40) CHARACTER SET utf8 NOT NULL)",
            )
        ]

    def test_new_table_constraints_follow(self) -> None:
        plan = migrate(BOOK, ALL, FakeRunner(), "app")
        assert [s.sql for s in plan.steps[1:]] == [
            "ALTER TABLE `book` ADD CONSTRAINT `unique_title_author` "
            "UNIQUE(`title`(200),`author_id`)",
            "ALTER TABLE `book` ADD CONSTRAINT `book_author_id_fkey` "
            "FOREIGN KEY(`author_id`) REFERENCES `author`(`id`)",
        ]

    def test_new_table_is_safe(self) -> None:
        plan = migrate(BOOK, ALL, FakeRunner(), "app")
        assert plan.ok
        assert not plan.has_unsafe

    def test_composite_key_table(self) -> None:
        plan = migrate(GRANT, ALL, FakeRunner(), "app")
        assert plan.steps[-1].sql == (
            "ALTER TABLE `grant` ADD CONSTRAINT `grant_membership_fkey` "
            "FOREIGN KEY(`member_user`,`member_group`) "
            "REFERENCES `membership`(`user_id`,`group_id`)"
        )


# ============================================================================
# Test: Idempotence
# ============================================================================


class TestIdempotence:
    """Planning against the schema a plan produces yields no steps."""

    @pytest.mark.parametrize("entity", ALL, ids=lambda e: e.name)
    def test_applied_plan_is_up_to_date(self, entity: EntityDefinition) -> None:
        plan = migrate(entity, ALL, catalog_for(ALL), "app")
        assert plan.ok
        assert plan.steps == []
        assert plan.format_report() == f"{entity.name}: up to date"

    def test_migrate_all_up_to_date(self) -> None:
        plans = migrate_all(ALL, catalog_for(ALL), "app")
        assert all(plan.ok and not plan.steps for plan in plans)

    @pytest.mark.parametrize("entity,drift,expected_ops", DRIFTS)
    def test_applied_alter_plan_is_up_to_date(self, entity, drift, expected_ops) -> None:
        """Replaying the plan for a drifted table leaves nothing to do."""
        live = LiveTable.created(entity)
        drift(live)

        steps = plan_steps(entity, ALL, FakeRunner(**live.catalog()), "app")
        assert expected_ops <= {type(step.op) for step in steps}

        live.apply(steps)
        plan = migrate(entity, ALL, FakeRunner(**live.catalog()), "app")
        assert plan.ok
        assert plan.steps == []

    def test_every_drift_at_once(self) -> None:
        live = LiveTable.created(BOOK)
        for entity, drift, _ in (p.values for p in DRIFTS):
            if entity is BOOK:
                drift(live)

        live.apply(plan_steps(BOOK, ALL, FakeRunner(**live.catalog()), "app"))

        assert migrate(BOOK, ALL, FakeRunner(**live.catalog()), "app").steps == []


# ============================================================================
# Test: Alter Path
# ============================================================================


def _runner_with(entity: EntityDefinition, **changes) -> FakeRunner:
    catalog = table_catalog(entity)
    catalog.update(changes)
    return FakeRunner(**catalog)


class TestAlterPath:
    """Existing tables get alterations."""

    def test_dropped_column_is_unsafe(self) -> None:
        catalog = table_catalog(AUTHOR)
        extra = column_row("nickname", "varchar", "varchar(20)", max_len=20)
        runner = _runner_with(AUTHOR, column_rows=catalog["column_rows"] + [extra])

        plan = migrate(AUTHOR, ALL, runner, "app")

        assert plan.steps == [(True, "ALTER TABLE `author` DROP COLUMN `nickname`")]
        assert plan.has_unsafe
        assert "!" in plan.format_report()

    def test_unsafe_iff_drop(self) -> None:
        rows = [
            column_row("name", "varchar", "varchar(40)", max_len=40, default="'x'"),
            column_row("legacy", "int", "int(11)"),
        ]
        runner = _runner_with(AUTHOR, column_rows=rows, unique_rows=[])

        plan = migrate(AUTHOR, ALL, runner, "app")

        for step in plan.steps:
            assert step.unsafe == ("DROP COLUMN" in step.sql)
        assert len(plan.unsafe_steps) == 1
        assert len(plan.safe_steps) == len(plan.steps) - 1
        assert plan.steps[-1].sql.startswith("ALTER TABLE `author` ADD CONSTRAINT `unique_author_name`")

    def test_foreign_key_retarget(self) -> None:
        catalog = table_catalog(BOOK)
        references = dict(catalog["references"])
        references["author_id"] = [["publisher", "book_author_id_fkey", 1]]
        runner = _runner_with(BOOK, references=references)

        plan = migrate(BOOK, ALL, runner, "app")

        assert [s.sql for s in plan.steps] == [
            "ALTER TABLE `book` DROP FOREIGN KEY `book_author_id_fkey`",
            "ALTER TABLE `book` ADD CONSTRAINT `book_author_id_fkey` "
            "FOREIGN KEY(`author_id`) REFERENCES `author`(`id`)",
        ]
        assert not any("CHANGE" in s.sql for s in plan.steps)

    def test_explicit_foreign_key_not_dropped(self) -> None:
        """Live references belonging to an explicit key are left alone."""
        plan = migrate(GRANT, ALL, FakeRunner(**table_catalog(GRANT)), "app")
        assert plan.steps == []

    def test_unique_member_order(self) -> None:
        """Declared order differing from the live (sorted) order is not a change."""
        catalog = table_catalog(BOOK)
        assert catalog["unique_rows"] == [
            ["unique_title_author", "author_id"],
            ["unique_title_author", "title"],
        ]
        plan = migrate(BOOK, ALL, FakeRunner(**catalog), "app")
        assert plan.steps == []


# ============================================================================
# Test: Errors
# ============================================================================


class TestErrors:
    """Parse errors abort planning for the table."""

    def test_decimal_missing_scale(self) -> None:
        catalog = table_catalog(BOOK)
        rows = [
            column_row("price", "decimal", "decimal(10,2)", nullable=True, precision=10, scale=None)
            if row[0] == "price" else row
            for row in catalog["column_rows"]
        ]
        plan = migrate(BOOK, ALL, _runner_with(BOOK, column_rows=rows), "app")

        assert not plan.ok
        assert plan.steps == []
        assert len(plan.errors) == 1
        assert "missing DECIMAL precision" in plan.errors[0]

    def test_id_errors_included(self) -> None:
        runner = _runner_with(AUTHOR, id_rows=[["id", "NO"]])
        plan = migrate(AUTHOR, ALL, runner, "app")
        assert len(plan.errors) == 1
        assert "introspection error" in plan.format_report()

    def test_errors_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        runner = _runner_with(AUTHOR, id_rows=[["id"]])
        with caplog.at_level(logging.WARNING, logger="db_migrate.schema.planner"):
            migrate(AUTHOR, ALL, runner, "app")
        assert "author: 1 introspection error(s)" in caplog.text

    def test_ambiguous_reference_propagates(self) -> None:
        catalog = table_catalog(BOOK)
        references = dict(catalog["references"])
        references["author_id"] = [["author", "a", 1], ["publisher", "b", 1]]
        with pytest.raises(AmbiguousForeignKeyError):
            migrate(BOOK, ALL, _runner_with(BOOK, references=references), "app")


# ============================================================================
# Test: Ordering and Preview
# ============================================================================


class TestDependencyOrder:
    """Referenced tables are planned first."""

    def test_referenced_first(self) -> None:
        names = [e.name for e in dependency_order(ALL)]
        assert names.index("author") < names.index("book")
        assert names.index("membership") < names.index("grant")

    def test_cycle_broken(self) -> None:
        a = EntityDefinition(name="a", fields=[FieldDefinition(name="b_id", sql_type=INT64, references="b")])
        b = EntityDefinition(name="b", fields=[FieldDefinition(name="a_id", sql_type=INT64, references="a")])
        assert sorted(e.name for e in dependency_order([a, b])) == ["a", "b"]

    def test_self_reference_ignored(self) -> None:
        node = EntityDefinition(
            name="node", fields=[FieldDefinition(name="parent", sql_type=INT64, nullable=True, references="node")]
        )
        assert dependency_order([node]) == [node]


class TestMockMigration:
    """Dry-run preview without a database."""

    def test_every_entity_created(self) -> None:
        plans = mock_migration(ALL)
        assert len(plans) == len(ALL)
        for plan in plans:
            assert isinstance(plan, MigrationPlan)
            assert plan.steps[0].sql.startswith(f"CREATE TABLE `{plan.table}`(")

    def test_matches_empty_runner(self) -> None:
        assert mock_migration([AUTHOR]) == [migrate(AUTHOR, [AUTHOR], EmptyQueryRunner(), "")]
