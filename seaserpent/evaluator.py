"""
Match a search expression against one file's tags and attributes.
"""

from .parser import (
    AttributeExpr,
    BinaryOp,
    BinaryOperator,
    Empty,
    SearchExpression,
    TagExpr,
    UnaryOp,
    UnaryOperator,
)
from .types import FileRecord


def matches(record: FileRecord, expr: SearchExpression) -> bool:
    """Return True if ``record`` satisfies ``expr``."""
    if isinstance(expr, Empty):
        return True
    if isinstance(expr, TagExpr):
        return record.has_tag(expr.name)
    if isinstance(expr, AttributeExpr):
        return record.has_attribute(expr.key, expr.value)
    if isinstance(expr, BinaryOp):
        if expr.op is BinaryOperator.AND:
            return matches(record, expr.left) and matches(record, expr.right)
        if expr.op is BinaryOperator.OR:
            return matches(record, expr.left) or matches(record, expr.right)
    if isinstance(expr, UnaryOp) and expr.op is UnaryOperator.NOT:
        return not matches(record, expr.expr)
    raise TypeError(f"Not a search expression: {expr!r}")


def filter_records(records: list[FileRecord], expr: SearchExpression) -> list[FileRecord]:
    return [record for record in records if matches(record, expr)]
