"""Parse Prisma schema files into the schema model."""

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from logging import getLogger
from re import DOTALL, MULTILINE
from re import compile as re_compile

from schema.main import grid_position
from schema.prisma_export import PRISMA_ACTIONS, PRISMA_INDEX_TYPES, PRISMA_TYPES
from schema.types import (
    CascadeAction,
    Column,
    DataType,
    Index,
    IndexMethod,
    Reference,
    Schema,
    Table,
)
from schema.validation import validate_schema

from ddl.tokenizer import (
    Token,
    TokenKind,
    matching_close,
    significant,
    split_tokens,
    tokenize,
    unquote,
)
from ddl.types import ParseError, ParseResult

logger = getLogger(__name__)

BLOCK = re_compile(
    r"^((?:[ \t]*///[^\n]*\n)*)[ \t]*(model|enum)\s+(\w+)\s*\{(.*?)^\s*\}",
    MULTILINE | DOTALL,
)

# A scalar without a native attribute maps to the entry that has none
SCALAR_TYPES = {
    scalar: data_type
    for data_type, (scalar, native) in PRISMA_TYPES.items()
    if native is None
}
NATIVE_TYPES = {
    native: data_type for data_type, (_, native) in PRISMA_TYPES.items() if native
}
ACTIONS = {name: action for action, name in PRISMA_ACTIONS.items()}
INDEX_TYPES = {name: method for method, name in PRISMA_INDEX_TYPES.items()}

DEFAULT_FUNCTIONS = {
    "now": "NOW()",
    "uuid": "gen_random_uuid()",
}

type Attributes = dict[str, list[Token] | None]
type ResolvedType = tuple[DataType, int | None, int | None, int | None]


@dataclass
class FieldDraft:
    """A model field before relations are resolved.

    Relation fields carry the target model and the ``@relation`` arguments
    instead of a column.
    """

    name: str
    column: Column | None = None
    target: str | None = None
    relation: list[Token] = field(default_factory=list)


@dataclass
class ModelDraft:
    """A model block before relations are resolved."""

    name: str
    table: str
    fields: list[FieldDraft] = field(default_factory=list)
    primary_key: list[str] = field(default_factory=list)
    indexes: list[Index] = field(default_factory=list)
    comment: str | None = None

    def column_name(self, field_name: str) -> str:
        """Translate a field name into its mapped column name."""
        return next(
            (
                draft.column.name
                for draft in self.fields
                if draft.name == field_name and draft.column is not None
            ),
            field_name,
        )


def strip_line_comment(tokens: Sequence[Token]) -> list[Token]:
    """Cut a ``//`` comment off a tokenized line."""
    for index, token in enumerate(tokens[:-1]):
        if token.text == "/" and tokens[index + 1].text == "/":
            return list(tokens[:index])
    return list(tokens)


def parse_attributes(tokens: Sequence[Token]) -> Attributes:
    """Collect ``@name(args)`` and ``@@name(args)`` attributes from a line."""
    attributes: Attributes = {}
    index = 0
    while index < len(tokens):
        if tokens[index].text != "@":
            index += 1
            continue
        index += 1
        prefix = "@"
        if index < len(tokens) and tokens[index].text == "@":
            prefix = "@@"
            index += 1
        parts: list[str] = []
        while index < len(tokens) and tokens[index].kind == TokenKind.WORD:
            parts.append(tokens[index].text)
            index += 1
            if index < len(tokens) and tokens[index].text == ".":
                index += 1
            else:
                break
        arguments = None
        if index < len(tokens) and tokens[index].kind == TokenKind.OPEN:
            end = matching_close(tokens, index)
            arguments = list(tokens[index + 1 : end])
            index = end + 1
        attributes[prefix + ".".join(parts)] = arguments
    return attributes


def split_arguments(tokens: Sequence[Token]) -> list[list[Token]]:
    """Split on commas outside both parentheses and ``[...]`` lists."""
    groups: list[list[Token]] = [[]]
    depth = 0
    for token in tokens:
        if token.kind == TokenKind.OPEN or token.text == "[":
            depth += 1
        elif token.kind == TokenKind.CLOSE or token.text == "]":
            depth -= 1
        elif token.kind == TokenKind.COMMA and depth == 0:
            groups.append([])
            continue
        groups[-1].append(token)
    return groups


def keyword_arguments(
    tokens: Sequence[Token],
) -> tuple[list[list[Token]], dict[str, list[Token]]]:
    """Split attribute arguments into positional and ``name: value`` parts."""
    positional: list[list[Token]] = []
    named: dict[str, list[Token]] = {}
    for item in split_arguments(tokens):
        if len(item) > 1 and item[0].kind == TokenKind.WORD and item[1].text == ":":
            named[item[0].text] = item[2:]
        elif item:
            positional.append(item)
    return positional, named


def name_list(tokens: Sequence[Token]) -> list[str]:
    """Read ``[a, b(sort: Desc)]`` into a list of names."""
    inner = [token for token in tokens if token.text not in {"[", "]"}]
    return [
        unquote(item[0].text)
        for item in split_tokens(inner, TokenKind.COMMA)
        if item
    ]


def parse_default(arguments: Sequence[Token]) -> tuple[str | None, bool]:
    """Translate ``@default(...)`` into a column default and auto-increment flag."""
    if not arguments:
        return None, False
    first = arguments[0]
    is_call = len(arguments) > 1 and arguments[1].kind == TokenKind.OPEN
    if first.kind == TokenKind.WORD and is_call:
        if first.text == "autoincrement":
            return None, True
        if first.text == "dbgenerated":
            literal = next(
                (token for token in arguments if token.kind == TokenKind.QUOTED),
                None,
            )
            return (unquote(literal.text) if literal else None), False
        if first.text in DEFAULT_FUNCTIONS:
            return DEFAULT_FUNCTIONS[first.text], False
        logger.debug("Unsupported default function %s()", first.text)
        return None, False
    if first.kind == TokenKind.QUOTED:
        return unquote(first.text).replace('\\"', '"'), False
    if first.text == "-" and len(arguments) > 1:
        return f"-{arguments[1].text}", False
    return first.text, False


def resolve_type(
    scalar: str,
    native: tuple[str, list[int]] | None,
    *,
    is_list: bool,
) -> ResolvedType | None:
    """Map a Prisma scalar and its native attribute onto a logical type."""
    if is_list:
        return DataType.ARRAY, None, None, None
    data_type = SCALAR_TYPES.get(scalar)
    params: list[int] = []
    if native is not None and native[0] in NATIVE_TYPES:
        data_type = NATIVE_TYPES[native[0]]
        params = native[1]
    if data_type is None and scalar == "Decimal":
        data_type = DataType.DECIMAL
    match data_type:
        case None:
            return None
        case DataType.VARCHAR:
            return data_type, params[0] if params else 255, None, None
        case DataType.CHAR:
            return data_type, params[0] if params else 1, None, None
        case DataType.DECIMAL:
            precision = params[0] if params else 10
            scale = params[1] if len(params) > 1 else (2 if not params else 0)
            return data_type, None, precision, scale
        case _:
            return data_type, None, None, None


def native_attribute(attributes: Attributes) -> tuple[str, list[int]] | None:
    """Find the ``@db.Type(args)`` attribute of a field."""
    for name, arguments in attributes.items():
        if name.startswith("@db."):
            params = [
                int(token.text)
                for token in arguments or []
                if token.kind == TokenKind.NUMBER
            ]
            return name.removeprefix("@db."), params
    return None


def cascade_action(tokens: list[Token] | None) -> CascadeAction:
    """Translate a Prisma referential action."""
    if not tokens:
        return CascadeAction.NO_ACTION
    return ACTIONS.get(tokens[0].text, CascadeAction.NO_ACTION)


class PrismaParser:
    """Parse the model and enum blocks of a Prisma schema."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.warnings: list[str] = []
        self.enums: set[str] = set()
        self.model_names: set[str] = set()
        self.models: list[ModelDraft] = []

    def parse(self) -> ParseResult:
        """Parse every block, resolve relations and validate the result."""
        blocks = BLOCK.findall(self.text)
        self.enums = {name for _, kind, name, _ in blocks if kind == "enum"}
        self.model_names = {name for _, kind, name, _ in blocks if kind == "model"}
        if not self.model_names:
            msg = "No model blocks found in Prisma schema"
            raise ParseError(msg)

        self.models = [
            self.parse_model(name, body, doc)
            for doc, kind, name, body in blocks
            if kind == "model"
        ]
        schema = Schema(
            name="Imported Prisma Schema",
            description=f"Imported {len(self.models)} models from Prisma",
            tables=tuple(
                self.build_table(model, position)
                for position, model in enumerate(self.models)
            ),
        )

        result = validate_schema(schema)
        if result.errors:
            msg = "Schema validation failed"
            raise ParseError(msg, errors=result.errors)
        warnings = list(dict.fromkeys([*self.warnings, *result.warnings]))
        for warning in warnings:
            logger.debug("Prisma warning: %s", warning)
        return ParseResult(schema, warnings)

    def parse_model(self, name: str, body: str, doc_block: str = "") -> ModelDraft:
        """Parse the lines of one model block."""
        summary = " ".join(
            line.strip().removeprefix("///").strip() for line in doc_block.splitlines()
        )
        model = ModelDraft(name=name, table=name, comment=summary or None)
        doc: list[str] = []
        for raw in body.splitlines():
            line = raw.strip()
            if line.startswith("///"):
                doc.append(line[3:].strip())
                continue
            tokens = strip_line_comment(significant(tokenize(line)))
            if not tokens:
                continue
            if line.startswith("@@"):
                self.parse_block_attributes(model, parse_attributes(tokens))
            else:
                self.parse_field(model, tokens, " ".join(doc) or None)
            doc = []
        return model

    def parse_block_attributes(self, model: ModelDraft, attributes: Attributes) -> None:
        """Apply ``@@id``, ``@@index``, ``@@unique`` and ``@@map``."""
        for attribute, arguments in attributes.items():
            positional, named = keyword_arguments(arguments or [])
            match attribute:
                case "@@map" if positional:
                    model.table = unquote(positional[0][0].text)
                case "@@id" if positional:
                    model.primary_key = name_list(positional[0])
                case "@@index" | "@@unique" if positional:
                    model.indexes.append(
                        self.block_index(model, attribute, positional[0], named),
                    )
                case _:
                    self.warnings.append(f'Model "{model.name}": ignoring {attribute}')

    @staticmethod
    def block_index(
        model: ModelDraft,
        attribute: str,
        columns: list[Token],
        named: dict[str, list[Token]],
    ) -> Index:
        """Build an index from ``@@index`` or ``@@unique`` arguments."""
        unique = attribute == "@@unique"
        fields = name_list(columns)
        label = named.get("map") or named.get("name")
        suffix = "key" if unique else "idx"
        name = f"{model.table}_{'_'.join(fields)}_{suffix}"
        method = IndexMethod.BTREE
        if kind := named.get("type"):
            method = INDEX_TYPES.get(kind[0].text, IndexMethod.BTREE)
        return Index(
            name=unquote(label[0].text) if label else name,
            columns=tuple(fields),
            method=method,
            unique=unique,
        )

    def parse_field(
        self,
        model: ModelDraft,
        tokens: list[Token],
        comment: str | None,
    ) -> None:
        """Parse one field line into a column or a relation."""
        if len(tokens) < 2 or tokens[0].kind != TokenKind.WORD:  # noqa: PLR2004
            self.warnings.append(f'Model "{model.name}": cannot parse field line')
            return
        field_name = tokens[0].text
        scalar = tokens[1].text
        index = 2
        unsupported = None
        if scalar == "Unsupported" and index < len(tokens):
            end = matching_close(tokens, index)
            unsupported = unquote(tokens[index + 1].text) if end > index + 1 else ""
            index = end + 1
        is_list = optional = False
        while index < len(tokens) and tokens[index].text in {"[", "]", "?"}:
            is_list = is_list or tokens[index].text == "["
            optional = optional or tokens[index].text == "?"
            index += 1
        attributes = parse_attributes(tokens[index:])

        if scalar in self.model_names:
            if (relation := attributes.get("@relation")) is not None:
                model.fields.append(
                    FieldDraft(field_name, target=scalar, relation=relation),
                )
            return

        location = f'Field "{model.name}.{field_name}"'
        resolved: ResolvedType | None
        if unsupported is not None:
            if unsupported.lower() != "tsvector":
                self.warnings.append(f"{location}: Unsupported({unsupported!r}) skipped")
                return
            resolved = (DataType.TSVECTOR, None, None, None)
        elif scalar in self.enums:
            self.warnings.append(f"{location}: enum {scalar} imported as VARCHAR(255)")
            resolved = (DataType.VARCHAR, 255, None, None)
        else:
            resolved = resolve_type(scalar, native_attribute(attributes), is_list=is_list)
            if resolved is None:
                self.warnings.append(f"{location}: unknown type {scalar} skipped")
                return

        data_type, length, precision, scale = resolved
        default, auto_increment = parse_default(attributes.get("@default") or [])
        mapped = attributes.get("@map")
        primary_key = "@id" in attributes
        column = Column(
            name=unquote(mapped[0].text) if mapped else field_name,
            type=data_type,
            length=length,
            precision=precision,
            scale=scale,
            nullable=optional and not primary_key,
            unique="@unique" in attributes,
            primary_key=primary_key,
            auto_increment=auto_increment,
            default=default,
            comment=comment,
        )
        model.fields.append(FieldDraft(field_name, column=column))

    def relation_references(self, model: ModelDraft) -> dict[str, Reference]:
        """Resolve the ``@relation`` fields of a model by owning field name."""
        by_name = {draft.name: draft for draft in self.models}
        references: dict[str, Reference] = {}
        for draft in model.fields:
            if draft.target is None or (target := by_name.get(draft.target)) is None:
                continue
            _, named = keyword_arguments(draft.relation)
            fields = name_list(named.get("fields", []))
            referenced = name_list(named.get("references", []))
            if not fields or not referenced:
                continue
            if len(fields) > 1:
                self.warnings.append(
                    f'Model "{model.name}": composite relation uses only "{fields[0]}"',
                )
            references[fields[0]] = Reference(
                table=target.table,
                column=target.column_name(referenced[0]),
                on_delete=cascade_action(named.get("onDelete")),
                on_update=cascade_action(named.get("onUpdate")),
            )
        return references

    def build_table(self, model: ModelDraft, position: int) -> Table:
        """Resolve relations and composite keys of a model into a table."""
        references = self.relation_references(model)
        composite = {model.column_name(name) for name in model.primary_key}
        columns: list[Column] = []
        for draft in model.fields:
            if (column := draft.column) is None:
                continue
            if draft.name in references:
                column = replace(column, references=references[draft.name])
            if column.name in composite:
                column = replace(
                    column,
                    primary_key=True,
                    nullable=False,
                    auto_increment=column.auto_increment and len(composite) == 1,
                )
            columns.append(column)

        return Table(
            name=model.table,
            columns=tuple(columns),
            indexes=tuple(
                replace(
                    index,
                    columns=tuple(model.column_name(name) for name in index.columns),
                )
                for index in model.indexes
            ),
            position=grid_position(position),
            comment=model.comment,
        )


def parse_prisma(text: str) -> ParseResult:
    """Parse a Prisma schema into a validated schema.

    Raises:
        ParseError: If the text has no models or the result fails validation.

    """
    if not text or not text.strip():
        msg = "Prisma input is empty"
        raise ParseError(msg)
    return PrismaParser(text).parse()
