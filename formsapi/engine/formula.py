"""Evaluation of calculated fields.

Expressions are run by simpleeval, which only exposes the names placed in the
scope and a small set of math functions. `^` is accepted as exponentiation,
so `peso / (altura/100)^2` reads the way form authors write it, and
`if imc > 30 then 'Obesidade' else 'Normal'` is accepted next to Python's
own conditional expression.
"""
import logging
import math
import re
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from simpleeval import SimpleEval

from formsapi.engine.errors import (
    FormulaEvaluationError,
    MissingDependencyError,
    ValidationError,
)
from formsapi.models.form import FieldDefinition

logger = logging.getLogger(__name__)

FUNCTIONS = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sqrt": math.sqrt,
    "floor": math.floor,
    "ceil": math.ceil,
}

_TOKEN = re.compile(r"'[^']*'|\"[^\"]*\"|[()]|\b(?:if|then|else)\b")
_LEADING_IF = re.compile(r"if\b")


def round_half_up(value: float, precision: int) -> float:
    exact = Decimal(repr(value))
    with localcontext() as ctx:
        # room for every integer digit plus the requested decimals
        ctx.prec = max(ctx.prec, exact.adjusted() + precision + 2)
        return float(exact.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP))


def _keywords(text: str) -> Iterator[Tuple[str, int, int]]:
    """Yield `if`/`then`/`else` outside quotes and parentheses."""
    depth = 0
    for match in _TOKEN.finditer(text):
        token = match.group()
        if token == "(":
            depth += 1
        elif token == ")":
            depth -= 1
        elif depth == 0 and token in ("if", "then", "else"):
            yield token, match.start(), match.end()


def translate_conditional(expression: str) -> str:
    """Rewrite `if C then A else B` into `(A) if (C) else (B)`.

    Chains written as `else if` are rewritten recursively. Anything that does
    not start with `if` is returned unchanged.
    """
    text = expression.strip()
    if not _LEADING_IF.match(text):
        return expression

    nested = 0
    then_at = else_at = None
    for token, start, end in _keywords(text):
        if start == 0:
            continue
        if token == "if":
            nested += 1
        elif token == "then" and nested == 0 and then_at is None:
            then_at = (start, end)
        elif token == "else":
            if nested:
                nested -= 1
            elif then_at is not None:
                else_at = (start, end)
                break
    if then_at is None or else_at is None:
        return expression

    condition = translate_conditional(text[2:then_at[0]])
    when_true = translate_conditional(text[then_at[1]:else_at[0]])
    when_false = translate_conditional(text[else_at[1]:])
    return f"({when_true.strip()}) if ({condition.strip()}) else ({when_false.strip()})"


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class FormulaEvaluator:
    def evaluate(self, expression: str, scope: Mapping[str, Any]) -> Any:
        """Evaluate `expression` with exactly the names in `scope`.

        Errors from the expression engine propagate as-is; `calculate` is the
        caller-facing entry point that wraps them.
        """
        evaluator = SimpleEval(names=dict(scope), functions=FUNCTIONS)
        return evaluator.eval(translate_conditional(expression).replace("^", "**"))

    def calculate(self, field: FieldDefinition, values: Mapping[str, Any]) -> Any:
        if not field.formula or field.dependencies is None:
            raise ValidationError(
                field.id, "Calculated fields must define both formula and dependencies"
            )

        missing = [dep for dep in field.dependencies if values.get(dep) is None]
        if missing:
            raise MissingDependencyError(field.id, missing)

        scope: Dict[str, Any] = {dep: values[dep] for dep in field.dependencies}
        try:
            result = self.evaluate(field.formula, scope)
            if isinstance(result, float) and not math.isfinite(result):
                raise ArithmeticError("non-finite result")
            return self._apply_precision(result, field.precision)
        except Exception as e:
            logger.debug(f"Formula of {field.id} failed: {type(e).__name__}: {e}")
            raise FormulaEvaluationError(field.id, field.formula) from None

    @staticmethod
    def _apply_precision(result: Any, precision: Optional[int]) -> Any:
        if precision is None or not _is_numeric(result) or isinstance(result, int):
            return result
        return round_half_up(result, precision)
