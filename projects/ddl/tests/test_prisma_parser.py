"""Tests for parsing Prisma schemas."""

import pytest

from schema.types import CascadeAction, DataType, Schema

from ddl.prisma_parser import parse_prisma, split_arguments
from ddl.tokenizer import significant, tokenize
from ddl.types import ParseError

type Parsed = tuple[Schema, list[str]]

BLOG_PRISMA = """
datasource db {
  provider = "postgresql"
  url      = env("DATABASE_URL")
}

/// Registered people
model User {
  id        Int      @id @default(autoincrement())
  email     String   @unique @db.VarChar(255)
  name      String?  // display name
  role      Role     @default(USER)
  createdAt DateTime @default(now()) @map("created_at")
  posts     Post[]

  @@map("users")
}

enum Role {
  USER
  ADMIN
}

model Post {
  id       Int     @id @default(autoincrement())
  /// Headline shown in lists
  title    String  @db.VarChar(200)
  price    Decimal @db.Decimal(8, 2) @default(0)
  authorId Int     @map("author_id")
  author   User    @relation(fields: [authorId], references: [id], onDelete: Cascade)
  search   Unsupported("tsvector")?

  @@index([authorId], map: "idx_posts_author")
  @@map("posts")
}
"""


@pytest.fixture(name="parsed")
def create_parsed() -> Parsed:
    """Parse the blog schema once per test."""
    result = parse_prisma(BLOG_PRISMA)
    return result.schema, result.warnings


def test_models_become_mapped_tables(parsed: Parsed) -> None:
    """Test that @@map names the tables and doc comments become comments."""
    schema, _ = parsed

    assert [table.name for table in schema.tables] == ["users", "posts"]
    assert schema.tables[0].comment == "Registered people"


def test_user_columns(parsed: Parsed) -> None:
    """Test scalar fields, attributes and relation lists."""
    schema, warnings = parsed
    users = schema.tables[0]

    assert [column.name for column in users.columns] == [
        "id",
        "email",
        "name",
        "role",
        "created_at",
    ]
    identifier, email, name, role, created_at = users.columns
    assert identifier.primary_key
    assert identifier.auto_increment
    assert not identifier.nullable
    assert (email.type, email.length, email.unique) == (DataType.VARCHAR, 255, True)
    assert name.type == DataType.TEXT
    assert name.nullable
    assert (role.type, role.default) == (DataType.VARCHAR, "USER")
    assert (created_at.type, created_at.default) == (DataType.TIMESTAMP, "NOW()")
    assert 'Field "User.role": enum Role imported as VARCHAR(255)' in warnings


def test_post_columns(parsed: Parsed) -> None:
    """Test native types, field comments and unsupported types."""
    schema, _ = parsed
    posts = schema.tables[1]

    title = posts.get_column("title")
    price = posts.get_column("price")
    search = posts.get_column("search")
    assert title is not None
    assert price is not None
    assert search is not None
    assert (title.length, title.comment) == (200, "Headline shown in lists")
    assert (price.precision, price.scale, price.default) == (8, 2, "0")
    assert search.type == DataType.TSVECTOR
    assert posts.get_column("author") is None


def test_relation_becomes_reference(parsed: Parsed) -> None:
    """Test that @relation resolves to mapped table and column names."""
    schema, _ = parsed
    author_id = schema.tables[1].get_column("author_id")
    assert author_id is not None
    assert author_id.references is not None

    assert author_id.references.target == ("users", "id")
    assert author_id.references.on_delete == CascadeAction.CASCADE
    assert author_id.references.on_update == CascadeAction.NO_ACTION


def test_block_index_uses_column_names(parsed: Parsed) -> None:
    """Test that @@index fields are translated to mapped column names."""
    schema, _ = parsed
    index = schema.tables[1].indexes[0]

    assert index.name == "idx_posts_author"
    assert index.columns == ("author_id",)
    assert not index.unique


def test_composite_id_and_unique() -> None:
    """Test @@id and @@unique blocks."""
    text = """
    model Membership {
      userId  Int
      groupId Int
      code    String

      @@id([userId, groupId])
      @@unique([code])
    }
    """

    result = parse_prisma(text)

    table = result.schema.tables[0]
    assert table.name == "Membership"
    assert table.primary_keys == ("userId", "groupId")
    assert not any(column.nullable for column in table.columns[:2])
    assert table.indexes[0].name == "Membership_code_key"
    assert table.indexes[0].unique
    assert any("composite primary key" in warning for warning in result.warnings)


def test_split_arguments_respects_lists() -> None:
    """Test that commas inside [...] lists do not split arguments."""
    tokens = significant(tokenize("fields: [a, b], references: [c, d]"))

    assert len(split_arguments(tokens)) == 2


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("", "Prisma input is empty"),
        ('datasource db {\n  provider = "mysql"\n}\n', "No model blocks found"),
    ],
)
def test_parse_errors(text: str, message: str) -> None:
    """Test inputs without any models."""
    with pytest.raises(ParseError, match=message):
        parse_prisma(text)


def test_validation_errors_are_raised() -> None:
    """Test that a model without fields fails validation."""
    with pytest.raises(ParseError) as exc_info:
        parse_prisma("model Empty {\n  posts Post[]\n}\n\nmodel Post {\n  id Int @id\n}\n")

    assert 'Table "Empty" has no columns' in exc_info.value.errors
