from __future__ import annotations
import json
import math
import logging
from dataclasses import dataclass, field
from string import Template
from typing import Any, Dict, Union

from zendriver import cdp

from ..errors import EvaluationError
from ..session.handle import Session, SessionState

logger = logging.getLogger(__name__)

_SCALARS = (str, int, float, bool, type(None))


@dataclass(frozen=True)
class ScriptRequest:
    """A script template plus arguments substituted as JSON literals.

    Placeholders use ``string.Template`` syntax (``$name``); write ``$$`` for a
    literal dollar sign.
    """

    template: str
    args: Dict[str, Any] = field(default_factory=dict)

    def render(self) -> str:
        literals = {}
        for name, value in self.args.items():
            if not isinstance(value, _SCALARS):
                raise EvaluationError(
                    self.template,
                    f"argument {name!r} has unsupported type {type(value).__name__}",
                )
            if isinstance(value, float) and not math.isfinite(value):
                raise EvaluationError(self.template, f"argument {name!r} is not finite")
            literals[name] = json.dumps(value)
        try:
            return Template(self.template).substitute(literals)
        except KeyError as exc:
            raise EvaluationError(self.template, f"missing argument {exc.args[0]!r}") from exc
        except ValueError as exc:
            raise EvaluationError(self.template, f"malformed template: {exc}") from exc


Script = Union[str, ScriptRequest]


def _expression_of(script: Script) -> str:
    return script.render() if isinstance(script, ScriptRequest) else script


async def _evaluate(session: Session, expression: str, stage: SessionState) -> str:
    async with session.exclusive("evaluate", stage) as transport:
        remote_object, exception_details = await session.send(
            transport,
            cdp.runtime.evaluate(expression=expression, return_by_value=True),
            action="Runtime.evaluate",
            error=EvaluationError,
            expression=expression,
        )
    if exception_details is not None:
        detail = exception_details.text
        if exception_details.exception is not None:
            detail = exception_details.exception.description or detail
        raise EvaluationError(expression, f"script threw: {detail}")
    value = remote_object.value
    if not isinstance(value, str):
        raise EvaluationError(
            expression,
            f"expected a string result, got {remote_object.type_} {value!r}",
        )
    return value


async def evaluate(session: Session, script: Script) -> str:
    """Evaluate a script in the page and return its string result.

    Structured results must be serialized by the script itself
    (``JSON.stringify``); see ``evaluate_json``.
    """
    return await _evaluate(session, _expression_of(script), SessionState.CALIBRATED)


def decode_json(expression: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise EvaluationError(expression, f"result is not valid JSON: {exc}") from exc


async def evaluate_json(session: Session, script: Script) -> Any:
    """Evaluate a script returning a JSON string and decode it."""
    expression = _expression_of(script)
    raw = await _evaluate(session, expression, SessionState.CALIBRATED)
    return decode_json(expression, raw)
