"""Code cell evaluation.

The engine does not run code itself. Callers hand it a ``CodeEvaluator``;
``PythonCodeEvaluator`` is the bundled implementation.
"""

import logging
from typing import Any, Dict, List, Protocol

from cellgraph.exceptions import CodeSyntaxError, EvaluationError

logger = logging.getLogger(__name__)

# Keys checked, in order, for the value a cell produced
OUTPUT_KEYS = ("result", "output", "value")


class CodeEvaluator(Protocol):
    """Capability that runs Code cell content.

    Example usage:
        ```python
        engine = ExecutionEngine(ExecutionMode.RUN, code_evaluator=PythonCodeEvaluator())
        ```
    """

    def evaluate(self, content: str, inputs: List[Any]) -> Any:
        """Run ``content`` with the ordered upstream outputs.

        Raises:
            EvaluationError: If the code fails.
        """
        ...

    def validate(self, content: str) -> None:
        """Check ``content`` without running it.

        Raises:
            CodeSyntaxError: If the content does not compile.
        """
        ...


class PythonCodeEvaluator:
    """Runs Code cells as Python source.

    The cell sees ``inputs`` (list), ``input_0`` .. ``input_n`` and
    ``set_output(value, key="result")``. The value stored under ``result``
    (or ``output``, or ``value``) becomes the cell output; ints are widened
    to float.
    """

    def __init__(self, filename: str = "<cell>") -> None:
        self.filename = filename

    def evaluate(self, content: str, inputs: List[Any]) -> Any:
        code = self._compile(content)

        output: Dict[str, Any] = {}

        def set_output(value: Any, key: str = "result") -> None:
            output[key] = value

        namespace: Dict[str, Any] = {
            "inputs": list(inputs),
            "set_output": set_output,
        }
        for i, value in enumerate(inputs):
            namespace[f"input_{i}"] = value

        try:
            exec(code, namespace)
        except Exception as e:
            raise EvaluationError(f"Python execution error: {e}") from e

        for key in OUTPUT_KEYS:
            if key in output:
                return _normalize(output[key])
        return None

    def validate(self, content: str) -> None:
        self._compile(content)

    def _compile(self, content: str):
        try:
            return compile(content, self.filename, "exec")
        except SyntaxError as e:
            raise CodeSyntaxError(f"Python syntax error: {e}") from e


def _normalize(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return value
