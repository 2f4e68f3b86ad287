"""
SQL parameter processing with single-pass architecture.

This module provides SQL parameter handling through a single-pass tokenization
and transformation pipeline:

    SQL + Args → Tokenize → Analyze Context → Normalize Args → Build Output
                  (once)      (one pass)        (unified)      (single pass)

Main entry points:
- `prepare_query(sql, args, dialect)` - Full processing including type conversion
- `process_sql_params(sql, args, dialect)` - Core processing without conversion

Helpers:
- `standardize_placeholders()` - Convert %s/%(name)s to the dialect's style
- `split_statements()` - Split a batch into statements outside of literals
- `like_pattern()` - Build a bound LIKE value from a literal fragment
- `has_placeholders()` - Check if SQL has placeholders
- `quote_identifier()` / `validate_identifier()` - Table, column and routine names
"""
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

from coursedb.exceptions import ValidationError

from libb import isiterable, issequence

# =============================================================================
# Data Structures
# =============================================================================


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    DOLLAR_QUOTED = auto()      # $$ ... $$ bodies (PostgreSQL)
    POSITIONAL_PH = auto()      # %s or ?
    NAMED_PH = auto()           # %(name)s
    IN_KEYWORD = auto()
    OPEN_PAREN = auto()
    CLOSE_PAREN = auto()
    STATEMENT_END = auto()      # ;


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    start: int
    end: int


@dataclass(slots=True)
class PlaceholderInfo:
    """Information about a placeholder and its context."""
    token: Token
    index: int                      # Position in args (-1 for named)
    name: str | None = None         # For %(name)s
    context: str = 'value'          # 'value' or 'in_clause'
    in_parentheses: bool = False    # Already in parens: IN (%s)


_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<dollar>\$(?P<tag>\w*)\$.*?\$(?P=tag)\$)
    |(?P<named>%\((?P<pname>[^)]+)\)s)
    |(?P<percent_s>%s)
    |(?P<qmark>\?)
    |(?P<in_kw>\bIN\b)
    |(?P<open_paren>\()
    |(?P<close_paren>\))
    |(?P<semicolon>;)
""", re.IGNORECASE | re.VERBOSE | re.DOTALL)

_PARAM_NAME = re.compile(r'%\(([^)]+)\)s')

_UNESCAPED_PERCENT = re.compile(r'(?<!%)%(?![%s(])')

_HAS_PLACEHOLDER = re.compile(r'%s|\?|%\([^)]+\)s')

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$')

_GROUP_TYPES = {
    'string': TokenType.STRING_LITERAL,
    'dollar': TokenType.DOLLAR_QUOTED,
    'named': TokenType.NAMED_PH,
    'percent_s': TokenType.POSITIONAL_PH,
    'qmark': TokenType.POSITIONAL_PH,
    'in_kw': TokenType.IN_KEYWORD,
    'open_paren': TokenType.OPEN_PAREN,
    'close_paren': TokenType.CLOSE_PAREN,
    'semicolon': TokenType.STATEMENT_END,
}

# =============================================================================
# Core Functions
# =============================================================================


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into tokens in a single pass.

    Parameters
        sql: SQL query string

    Returns
        List of tokens preserving all SQL text
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()

        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start], last_end, start))

        ttype = next(_GROUP_TYPES[g] for g in _GROUP_TYPES if match.group(g) is not None)
        tokens.append(Token(ttype, match.group(0), start, end))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:], last_end, len(sql)))

    return tokens


def analyze_placeholders(tokens: list[Token]) -> list[PlaceholderInfo]:
    """Analyze placeholder context in single forward pass.

    A placeholder directly following `IN` (optionally inside an opening
    parenthesis) is an IN-clause placeholder and is expanded later.

    Parameters
        tokens: List of tokens from tokenize_sql()

    Returns
        List of PlaceholderInfo for each placeholder found
    """
    placeholders = []
    positional_index = 0
    after_in = False
    in_paren_after_in = False

    for i, token in enumerate(tokens):
        if token.type == TokenType.IN_KEYWORD:
            after_in = True
            j = i + 1
            while j < len(tokens) and tokens[j].type == TokenType.SQL_TEXT and not tokens[j].text.strip():
                j += 1
            in_paren_after_in = j < len(tokens) and tokens[j].type == TokenType.OPEN_PAREN

        elif token.type in {TokenType.POSITIONAL_PH, TokenType.NAMED_PH}:
            name = None
            index = -1
            if token.type == TokenType.NAMED_PH:
                name = _PARAM_NAME.search(token.text).group(1)
            else:
                index = positional_index
                positional_index += 1
            placeholders.append(PlaceholderInfo(
                token=token,
                index=index,
                name=name,
                context='in_clause' if after_in else 'value',
                in_parentheses=in_paren_after_in,
            ))
            after_in = False
            in_paren_after_in = False

        elif token.type == TokenType.SQL_TEXT:
            if token.text.strip():
                after_in = False
                in_paren_after_in = False

        elif token.type in {TokenType.CLOSE_PAREN, TokenType.STATEMENT_END}:
            after_in = False
            in_paren_after_in = False

    return placeholders


def normalize_args(args: tuple | list | dict | Any,
                   placeholders: list[PlaceholderInfo]) -> tuple | dict:
    """Normalize all input formats to canonical form.

    Handles:
    - Named dict: {'ids': [1, 2, 3]}
    - Single dict wrapped in args: ({'ids': [1, 2, 3]},)
    - Nested tuple: [(a, b, c)] when it matches the placeholder count
    - Direct list for a lone IN clause: [1, 2, 3]
    """
    if isinstance(args, dict):
        return args

    if isinstance(args, (list, tuple)) and len(args) == 1 and isinstance(args[0], dict):
        return args[0]

    in_clause_count = sum(1 for p in placeholders if p.context == 'in_clause')
    total_placeholders = len(placeholders)

    if (isinstance(args, (list, tuple)) and len(args) == 1
            and issequence(args[0]) and not isinstance(args[0], str)):
        inner = args[0]
        if len(inner) == total_placeholders and in_clause_count == 0:
            return tuple(inner)

    if (in_clause_count == 1 and total_placeholders == 1
            and isiterable(args) and not isinstance(args, str) and len(args) != 1):
        if all(not isiterable(a) or isinstance(a, str) for a in args):
            return (tuple(args),)

    return tuple(args)


def build_sql(tokens: list[Token], placeholders: list[PlaceholderInfo],
              args: tuple | dict, dialect: str) -> tuple[str, tuple | dict]:
    """Build final SQL and args in single forward pass.

    Parameters
        tokens: Tokenized SQL
        placeholders: Placeholder info list
        args: Normalized arguments
        dialect: Database dialect ('postgresql' or 'sqlite')

    Returns
        Tuple of (processed_sql, processed_args)
    """
    result_parts = []
    is_dict_args = isinstance(args, dict)
    result_args = {} if is_dict_args else []
    placeholder_idx = 0

    for token in tokens:
        if token.type == TokenType.STRING_LITERAL and dialect == 'postgresql':
            result_parts.append(_escape_percent_in_literal(token.text))

        elif token.type == TokenType.POSITIONAL_PH:
            ph = placeholders[placeholder_idx]
            placeholder_idx += 1
            if is_dict_args:
                raise ValidationError('Positional placeholder used with named parameters')
            sql_part, new_args = _process_positional_placeholder(ph, args)
            result_parts.append(sql_part)
            result_args.extend(new_args)

        elif token.type == TokenType.NAMED_PH:
            ph = placeholders[placeholder_idx]
            placeholder_idx += 1
            if not is_dict_args:
                raise ValidationError(f'Named placeholder {token.text} requires a dict of parameters')
            sql_part, arg_updates = _process_named_placeholder(ph, args)
            result_parts.append(sql_part)
            result_args.update(arg_updates)

        else:
            result_parts.append(token.text)

    final_sql = ''.join(result_parts)
    final_args = result_args if is_dict_args else tuple(result_args)

    return final_sql, final_args


def _process_positional_placeholder(ph: PlaceholderInfo, args: tuple) -> tuple[str, list]:
    """Process a positional placeholder."""
    if ph.index >= len(args):
        raise ValidationError(f'Missing value for placeholder #{ph.index + 1}')

    value = args[ph.index]

    if ph.context == 'in_clause':
        return _expand_in_clause(value, ph.in_parentheses, f'#{ph.index + 1}')

    return '%s', [value]


def _expand_in_clause(value: Any, already_in_parens: bool, label: str) -> tuple[str, list]:
    """Expand IN clause value to multiple placeholders."""
    if not issequence(value) or isinstance(value, str):
        value = [value]

    if len(value) == 1 and issequence(value[0]) and not isinstance(value[0], str):
        value = value[0]

    if not value:
        raise ValidationError(f'IN-clause parameter {label} is an empty sequence')

    placeholders = ', '.join(['%s'] * len(value))
    if already_in_parens:
        return placeholders, list(value)
    return f'({placeholders})', list(value)


def _process_named_placeholder(ph: PlaceholderInfo, args: dict) -> tuple[str, dict]:
    """Process a named placeholder."""
    name = ph.name

    if name not in args:
        raise ValidationError(f'Missing value for parameter {name!r}')

    value = args[name]

    if ph.context == 'in_clause':
        return _expand_named_in_clause(name, value, ph.in_parentheses)

    return ph.token.text, {name: value}


def _expand_named_in_clause(name: str, value: Any, already_in_parens: bool) -> tuple[str, dict]:
    """Expand named IN clause to multiple named placeholders."""
    if not issequence(value) or isinstance(value, str):
        value = [value]

    if len(value) == 1 and issequence(value[0]) and not isinstance(value[0], str):
        value = list(value[0])

    if not value:
        raise ValidationError(f'IN-clause parameter {name!r} is an empty sequence')

    new_args = {f'{name}_{i}': v for i, v in enumerate(value)}
    result = ', '.join(f'%({key})s' for key in new_args)
    if already_in_parens:
        return result, new_args
    return f'({result})', new_args


def _escape_percent_in_literal(literal: str) -> str:
    """Escape unescaped percent signs in string literal."""
    quote = literal[0]
    content = literal[1:-1]
    escaped = _UNESCAPED_PERCENT.sub('%%', content)
    return f'{quote}{escaped}{quote}'


# =============================================================================
# Main Entry Points
# =============================================================================

def process_sql_params(sql: str, args: tuple | list | dict | Any,
                       dialect: str = 'postgresql') -> tuple[str, tuple | dict]:
    """Process SQL and parameters in a single pass.

    The returned SQL uses the pyformat style (`%s`, `%(name)s`); the cursor
    converts it to the dialect's native style right before execution.

    Parameters
        sql: SQL query string with placeholders
        args: Query parameters (tuple, list or dict)
        dialect: Database dialect ('postgresql' or 'sqlite')

    Returns
        Tuple of (processed_sql, processed_args)
    """
    if not sql or not args or not has_placeholders(sql):
        return sql, ()

    tokens = tokenize_sql(sql)
    placeholders = analyze_placeholders(tokens)

    if not placeholders:
        return sql, ()

    normalized_args = normalize_args(args, placeholders)
    return build_sql(tokens, placeholders, normalized_args, dialect)


def prepare_query(sql: str, args: tuple | list | dict | Any,
                  dialect: str) -> tuple[str, tuple | dict]:
    """Process SQL and parameters for a dialect, converting parameter values.

    Parameters
        sql: SQL query string
        args: Query parameters
        dialect: Database dialect name

    Returns
        Tuple of (processed_sql, processed_args)
    """
    sql, args = process_sql_params(sql, args, dialect)

    from coursedb.types import TypeConverter
    return sql, TypeConverter.convert_params(args)


def has_placeholders(sql: str | None) -> bool:
    """Check if SQL has any parameter placeholders.
    """
    if not sql:
        return False

    if '%' not in sql and '?' not in sql:
        return False

    return bool(_HAS_PLACEHOLDER.search(sql))


def standardize_placeholders(sql: str, dialect: str = 'postgresql') -> str:
    """Convert pyformat placeholders to the dialect's native style.

    SQLite uses `?` and `:name`; PostgreSQL (psycopg) keeps `%s` and `%(name)s`.
    Placeholders inside string literals are left alone.
    """
    if not sql or dialect != 'sqlite' or '%' not in sql:
        return sql

    result = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.POSITIONAL_PH and token.text == '%s':
            result.append('?')
        elif token.type == TokenType.NAMED_PH:
            result.append(':' + _PARAM_NAME.search(token.text).group(1))
        else:
            result.append(token.text)
    return ''.join(result)


def split_statements(sql: str) -> list[str]:
    """Split a batch into its statements, ignoring `;` inside literals.

    >>> split_statements("select 1; select 'a;b';")
    ['select 1', "select 'a;b'"]
    """
    statements = []
    current: list[str] = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.STATEMENT_END:
            statements.append(''.join(current))
            current = []
        else:
            current.append(token.text)
    statements.append(''.join(current))
    return [stmt.strip() for stmt in statements if stmt.strip()]


def placeholder_names(sql: str) -> list[str]:
    """Return the named placeholders used in a statement, in order.
    """
    return [_PARAM_NAME.search(t.text).group(1)
            for t in tokenize_sql(sql) if t.type == TokenType.NAMED_PH]


def count_positional(sql: str) -> int:
    """Count positional placeholders outside of literals.
    """
    return sum(1 for t in tokenize_sql(sql) if t.type == TokenType.POSITIONAL_PH)


LIKE_ESCAPE = '\\'


def like_pattern(fragment: str, mode: str = 'contains') -> str:
    """Build a LIKE parameter value that matches `fragment` literally.

    Wildcards in the fragment are escaped with `LIKE_ESCAPE`, so the SQL must
    read `... LIKE %(pattern)s ESCAPE '\\'`.

    >>> like_pattern('50%_off')
    '%50\\\\%\\\\_off%'
    >>> like_pattern('dotnet', 'prefix')
    'dotnet%'
    """
    escaped = (fragment.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
               .replace('%', LIKE_ESCAPE + '%')
               .replace('_', LIKE_ESCAPE + '_'))
    if mode == 'contains':
        return f'%{escaped}%'
    if mode == 'prefix':
        return f'{escaped}%'
    if mode == 'suffix':
        return f'%{escaped}'
    raise ValidationError(f'Unknown LIKE mode: {mode}')


def quote_identifier(identifier: str, dialect: str = 'postgresql') -> str:
    """Safely quote database identifiers.

    Raises
        ValueError: If dialect is unsupported
    """
    if dialect in {'postgresql', 'sqlite'}:
        return '"' + identifier.replace('"', '""') + '"'

    raise ValueError(f'Unknown dialect: {dialect}')


def validate_identifier(identifier: str) -> str:
    """Check that a routine or view name can be placed in SQL text as-is.

    Accepts a plain identifier or `schema.name`.
    """
    if not isinstance(identifier, str) or not _IDENTIFIER.match(identifier):
        raise ValidationError(f'Invalid SQL identifier: {identifier!r}')
    return identifier


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
