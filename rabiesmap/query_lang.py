"""
Table search expressions
========================

The searchable table accepts small boolean expressions, e.g.

    where country contains "ia" and deaths > 10
    where group >= High or bucket == "500+"
    where region in (AFR, SEAR) and hdi < 0.5

Grammar:

    expr       := term (OR term)*
    term       := factor (AND factor)*
    factor     := NOT factor | "(" expr ")" | comparison
    comparison := FIELD OP value | FIELD CONTAINS value | FIELD IN "(" value ("," value)* ")"
    value      := NUMBER | STRING | WORD

`group` and `bucket` compare by their ordinal position, so `group >= High`
means High or Very High. Rows in "Data unavailable" only match `==`, `!=`
and `in`.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
import re

from .models import DeathBucket, HdiGroup, JoinedRecord


class ParseError(ValueError):
    pass


_TOKENS: List[Tuple[str, str]] = [
    ("LPAREN", r"\("),
    ("RPAREN", r"\)"),
    ("COMMA", r","),
    ("OP", r"==|!=|>=|<=|>|<"),
    ("NUMBER", r"-?\d+(?:\.\d+)?(?![\w+-])"),
    ("STRING", r"\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'"),
    ("WORD", r"[A-Za-z_][\w.+-]*|\d[\w.+-]*"),
]
_SCANNER = re.compile("|".join(f"(?P<{k}>{p})" for k, p in _TOKENS))
_KEYWORDS = {"and": "AND", "or": "OR", "not": "NOT", "contains": "CONTAINS", "in": "IN"}
_UNESCAPE = re.compile(r"\\(.)")


@dataclass(frozen=True)
class Token:
    kind: str
    value: str


def tokenize(s: str) -> List[Token]:
    out: List[Token] = []
    pos = 0
    while pos < len(s):
        if s[pos].isspace():
            pos += 1
            continue
        m = _SCANNER.match(s, pos)
        if not m:
            raise ParseError(f"Unexpected character near: {s[pos:pos+20]!r}")
        kind, text = m.lastgroup, m.group()
        if kind == "WORD" and text.lower() in _KEYWORDS:
            kind = _KEYWORDS[text.lower()]
        out.append(Token(kind, text))
        pos = m.end()
    return out


# AST
@dataclass(frozen=True)
class Node: ...


@dataclass(frozen=True)
class And(Node):
    left: Node
    right: Node


@dataclass(frozen=True)
class Or(Node):
    left: Node
    right: Node


@dataclass(frozen=True)
class Not(Node):
    operand: Node


@dataclass(frozen=True)
class Cmp(Node):
    field: str
    op: str
    value: Any


class _Parser:
    def __init__(self, toks: List[Token]) -> None:
        self.toks = toks
        self.i = 0

    def peek(self) -> Optional[Token]:
        return self.toks[self.i] if self.i < len(self.toks) else None

    def accept(self, *kinds: str) -> Optional[Token]:
        t = self.peek()
        if t is not None and t.kind in kinds:
            self.i += 1
            return t
        return None

    def expect(self, kind: str) -> Token:
        t = self.accept(kind)
        if t is None:
            got = self.peek()
            raise ParseError(f"Expected {kind}, got {got.value if got else 'end of input'}")
        return t

    def expr(self) -> Node:
        node = self.term()
        while self.accept("OR"):
            node = Or(node, self.term())
        return node

    def term(self) -> Node:
        node = self.factor()
        while self.accept("AND"):
            node = And(node, self.factor())
        return node

    def factor(self) -> Node:
        if self.accept("NOT"):
            return Not(self.factor())
        if self.accept("LPAREN"):
            node = self.expr()
            self.expect("RPAREN")
            return node
        return self.comparison()

    def comparison(self) -> Node:
        field = self.expect("WORD").value.lower()
        if field not in FIELDS:
            raise ParseError(f"Unknown field {field!r}. Fields: {', '.join(sorted(FIELDS))}")
        if self.accept("CONTAINS"):
            return Cmp(field, "contains", self.value())
        if self.accept("IN"):
            self.expect("LPAREN")
            vals = [self.value()]
            while self.accept("COMMA"):
                vals.append(self.value())
            self.expect("RPAREN")
            return Cmp(field, "in", tuple(vals))
        op = self.expect("OP").value
        return Cmp(field, op, self.value())

    def value(self) -> Any:
        t = self.accept("NUMBER", "STRING", "WORD")
        if t is None:
            raise ParseError("Expected a value after operator")
        if t.kind == "NUMBER":
            return float(t.value) if "." in t.value else int(t.value)
        if t.kind == "STRING":
            return _UNESCAPE.sub(r"\1", t.value[1:-1])
        return t.value


def parse(expr: str) -> Node:
    p = _Parser(tokenize(expr))
    if p.peek() is None:
        raise ParseError("Empty expression")
    node = p.expr()
    if p.peek() is not None:
        raise ParseError(f"Unexpected token: {p.peek().value}")
    return node


# field name -> (getter, coercion of literal values)
FIELDS: Dict[str, Tuple[Callable[[JoinedRecord], Any], Callable[[Any], Any]]] = {
    "country": (lambda r: r.country_name, str),
    "code": (lambda r: r.country_code, lambda v: str(v).upper()),
    "year": (lambda r: r.year, int),
    "group": (lambda r: r.hdi_group, HdiGroup.parse),
    "hdi": (lambda r: r.hdi_value, float),
    "rank": (lambda r: r.hdi_rank, int),
    "deaths": (lambda r: r.reported_deaths, float),
    "bucket": (lambda r: r.death_bucket, DeathBucket.parse),
    "region": (lambda r: r.region_code, lambda v: str(v).upper()),
}

_ORDERING = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    ">=": lambda a, b: a >= b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    "<": lambda a, b: a < b,
}


def _coerce(field: str, value: Any) -> Any:
    try:
        out = FIELDS[field][1](value)
    except ValueError as e:
        raise ParseError(f"Bad value for {field}: {value!r}") from e
    if out is None:
        raise ParseError(f"Empty value for {field}")
    return out


def _label(v: Any) -> str:
    if v is None:
        return ""
    return v.value if isinstance(v, (HdiGroup, DeathBucket)) else str(v)


def _sort_key(v: Any) -> Any:
    return v.rank if isinstance(v, (HdiGroup, DeathBucket)) else v


def compile_predicate(node: Node) -> Callable[[JoinedRecord], bool]:
    """Turn an AST into a predicate over JoinedRecord. Missing values never match."""
    if isinstance(node, And):
        l, r = compile_predicate(node.left), compile_predicate(node.right)
        return lambda rec: l(rec) and r(rec)
    if isinstance(node, Or):
        l, r = compile_predicate(node.left), compile_predicate(node.right)
        return lambda rec: l(rec) or r(rec)
    if isinstance(node, Not):
        inner = compile_predicate(node.operand)
        return lambda rec: not inner(rec)
    if not isinstance(node, Cmp):
        raise ValueError("Unknown AST node")

    get = FIELDS[node.field][0]
    if node.op == "contains":
        needle = str(node.value).lower()
        return lambda rec: needle in _label(get(rec)).lower()
    if node.op == "in":
        wanted = {_coerce(node.field, v) for v in node.value}
        return lambda rec: get(rec) in wanted

    target = _sort_key(_coerce(node.field, node.value))
    test = _ORDERING[node.op]
    # "Data unavailable" sorts last but has no magnitude
    ordinal = node.op not in ("==", "!=")

    def pred(rec: JoinedRecord) -> bool:
        v = get(rec)
        if v is None or v == "":
            return False
        if ordinal and v is DeathBucket.UNAVAILABLE:
            return False
        return test(_sort_key(v), target)
    return pred


def compile_query(expr: str) -> Callable[[JoinedRecord], bool]:
    return compile_predicate(parse(expr))
