"""Expression Parser - Free-text boolean rules

Small DSL accepted as an alternative to structured conditions:

    monto > 1000 AND (tipo == "compra" OR contains(descripcion, "urgente"))

AND and OR share one precedence level and are applied strictly left to
right as written: ``a OR b AND c`` means ``(a OR b) AND c``. Stored rules
depend on this order.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional, Union

from ..domain.models import FieldCondition, ConditionValue
from ..domain.enums import ConditionOperator, RuleLogic
from .condition_evaluator import evaluate_condition, to_text
from ..utils.logger import get_logger

logger = get_logger(__name__)


_TOKEN_PATTERN = re.compile(
    r"""
    (?P<lparen>\()
    | (?P<rparen>\))
    | (?P<comma>,)
    | (?P<and>&&|\bAND\b)
    | (?P<or>\|\||\bOR\b)
    | (?P<op>==|!=|>=|<=|>|<)
    | (?P<contains>\bcontains\s*\()
    | (?P<string>"[^"]*"|'[^']*')
    | (?P<number>-?\d+(?:\.\d+)?)
    | (?P<bool>\b(?:true|false)\b)
    | (?P<ident>[A-Za-z_]\w*)
    """,
    re.VERBOSE | re.IGNORECASE,
)
_WHITESPACE = re.compile(r"\s+")

# >= and <= are recognised by the tokenizer but are not part of the operator set
OPERATOR_SYMBOLS: Dict[str, ConditionOperator] = {
    "==": ConditionOperator.EQUALS,
    "!=": ConditionOperator.NOT_EQUALS,
    ">": ConditionOperator.GREATER_THAN,
    "<": ConditionOperator.LESS_THAN,
}

_LITERAL_KINDS = ("string", "number", "bool", "ident")


class ExpressionSyntaxError(ValueError):
    """Raised internally when an expression cannot be tokenized or parsed"""


class Token(NamedTuple):
    kind: str
    text: str
    position: int


@dataclass(frozen=True)
class ConditionNode:
    condition: FieldCondition


@dataclass(frozen=True)
class BinaryNode:
    op: str  # "and" | "or"
    left: "ExprNode"
    right: "ExprNode"


ExprNode = Union[ConditionNode, BinaryNode]


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing; exactly one of node/error is set"""
    node: Optional[ExprNode] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def tokenize(expression: str) -> List[Token]:
    """Split an expression into tokens; unknown characters are an error"""
    tokens: List[Token] = []
    pos = 0
    length = len(expression)

    while pos < length:
        ws = _WHITESPACE.match(expression, pos)
        if ws:
            pos = ws.end()
            continue

        match = _TOKEN_PATTERN.match(expression, pos)
        if not match:
            raise ExpressionSyntaxError(
                f"Unexpected character {expression[pos]!r} at position {pos}"
            )
        tokens.append(Token(match.lastgroup, match.group(), pos))
        pos = match.end()

    return tokens


def parse_literal(token: Token) -> ConditionValue:
    """Convert a literal token to its value"""
    if token.kind == "string":
        return token.text[1:-1]
    if token.kind == "bool":
        return token.text.lower() == "true"
    if token.kind == "number":
        if "." in token.text:
            return float(token.text)
        return int(token.text)
    # Bare identifiers on the right-hand side are plain strings
    return token.text


class _Parser:
    """Recursive-descent parser over a token list with a single shared cursor"""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def parse(self) -> ExprNode:
        node = self._parse_expr()
        if self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            raise ExpressionSyntaxError(
                f"Unexpected token {token.text!r} at position {token.position}"
            )
        return node

    def _peek(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def _next(self) -> Token:
        token = self._peek()
        if token is None:
            raise ExpressionSyntaxError("Unexpected end of expression")
        self.pos += 1
        return token

    def _expect(self, *kinds: str) -> Token:
        token = self._next()
        if token.kind not in kinds:
            raise ExpressionSyntaxError(
                f"Expected {' or '.join(kinds)} but found {token.text!r} at position {token.position}"
            )
        return token

    def _parse_expr(self) -> ExprNode:
        left = self._parse_comparison()

        while True:
            token = self._peek()
            if token is None or token.kind not in ("and", "or"):
                break
            self.pos += 1
            right = self._parse_comparison()
            left = BinaryNode(op=token.kind, left=left, right=right)

        return left

    def _parse_comparison(self) -> ExprNode:
        token = self._next()

        if token.kind == "lparen":
            node = self._parse_expr()
            self._expect("rparen")
            return node

        if token.kind == "contains":
            field = self._expect("ident")
            self._expect("comma")
            value = parse_literal(self._expect(*_LITERAL_KINDS))
            self._expect("rparen")
            return ConditionNode(FieldCondition(
                field_key=field.text,
                operator=ConditionOperator.CONTAINS.value,
                value=value,
            ))

        if token.kind != "ident":
            raise ExpressionSyntaxError(
                f"Expected a field name but found {token.text!r} at position {token.position}"
            )

        op_token = self._expect("op")
        operator = OPERATOR_SYMBOLS.get(op_token.text)
        if operator is None:
            raise ExpressionSyntaxError(
                f"Unsupported operator {op_token.text!r} at position {op_token.position}"
            )
        value = parse_literal(self._expect(*_LITERAL_KINDS))

        return ConditionNode(FieldCondition(
            field_key=token.text,
            operator=operator.value,
            value=value,
        ))


def parse_expression(expression: str) -> ParseResult:
    """
    Parse an expression into an evaluable tree

    Never raises: syntax problems are reported through ParseResult.error.
    """
    try:
        tokens = tokenize(expression)
        if not tokens:
            return ParseResult(error="Empty expression")
        return ParseResult(node=_Parser(tokens).parse())
    except ExpressionSyntaxError as e:
        return ParseResult(error=str(e))
    except RecursionError:
        return ParseResult(error="Expression is nested too deeply")


def evaluate_node(node: ExprNode, context: Dict[str, Any]) -> bool:
    """
    Evaluate a parsed expression tree

    Chains of AND/OR are left-deep, so the left spine is walked in a loop
    and only parenthesized groups recurse.
    """
    spine = []
    while isinstance(node, BinaryNode):
        spine.append(node)
        node = node.left

    result = evaluate_condition(node.condition, context)
    for binary in reversed(spine):
        if binary.op == "and":
            result = result and evaluate_node(binary.right, context)
        else:
            result = result or evaluate_node(binary.right, context)
    return result


def evaluate_expression(expression: str, context: Dict[str, Any]) -> bool:
    """
    Evaluate a free-text expression against a value context

    Blank expressions are true. Expressions that fail to parse are also
    true (a broken rule must not hide a field or block submission) and
    log a warning.
    """
    if not expression or not expression.strip():
        return True

    result = parse_expression(expression)
    if not result.ok:
        logger.warning(f"Failed to parse expression {expression!r}: {result.error}")
        return True

    try:
        return evaluate_node(result.node, context)
    except RecursionError:
        logger.warning(f"Expression {expression!r} is nested too deeply to evaluate")
        return True


def _literal_text(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    return to_text(value)


def conditions_to_expression(conditions: List[FieldCondition], logic: Union[RuleLogic, str]) -> str:
    """
    Serialize structured conditions to the equivalent expression

    Used to pre-fill the expression editor and as a readable summary.
    """
    symbols = {operator.value: symbol for symbol, operator in OPERATOR_SYMBOLS.items()}
    parts = []

    for condition in conditions:
        value = _literal_text(condition.value)
        if condition.operator == ConditionOperator.CONTAINS:
            parts.append(f"contains({condition.field_key}, {value})")
        else:
            symbol = symbols.get(condition.operator, "==")
            parts.append(f"{condition.field_key} {symbol} {value}")

    connector = " OR " if logic == RuleLogic.OR else " AND "
    return connector.join(parts)
