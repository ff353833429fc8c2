"""Run-scope resolution and resource labeling.

Every environment that does not declare its own run id shares
`DEFAULT_RUN_ID`, so an entire test session can be removed by label if the
process dies mid-run.
"""

from __future__ import annotations

import os
import re
import uuid
from typing import Final, Mapping

from .models import RunDeclaration, RunScope

RUN_ID_LABEL: Final[str] = "run.id"

DEFAULT_RUN_ID: Final[str] = str(uuid.uuid4())

_ENVIRONMENT_VARIABLE_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([^}]+)\}")


def run_scope_expand_environment_variables(
    template: str,
    environment: Mapping[str, str] | None = None,
) -> str:
    """Replace `${VAR}` references with process environment values.

    Args:
        template: Text that may contain `${VAR}` references.
        environment: Optional variable source; defaults to `os.environ`.

    Returns:
        str: Expanded text; unset variables expand to empty text.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    variables = os.environ if environment is None else environment
    return _ENVIRONMENT_VARIABLE_PATTERN.sub(lambda match: variables.get(match.group(1), ""), template)


def run_scope_resolve(
    declaration: RunDeclaration | None,
    default_run_id: str = DEFAULT_RUN_ID,
    environment: Mapping[str, str] | None = None,
) -> RunScope:
    """Resolve the single run scope of one environment.

    Args:
        declaration: Optional run override declared by the environment.
        default_run_id: Id used when nothing (or only blank text) is declared.
        environment: Optional variable source for `${VAR}` expansion.

    Returns:
        RunScope: Immutable run scope.

    Raises:
        ValueError: Raised when the default run id is blank.
    """

    if not default_run_id.strip():
        raise ValueError("default_run_id must not be blank")

    if declaration is None:
        return RunScope(id=default_run_id, teardown_on_complete=True)

    resolved_id = ""
    if declaration.id is not None:
        resolved_id = run_scope_expand_environment_variables(declaration.id, environment=environment).strip()

    return RunScope(
        id=resolved_id or default_run_id,
        teardown_on_complete=declaration.teardown_on_complete,
    )


def run_scope_labels(run_scope: RunScope) -> dict[str, str]:
    """Build the label map attached to every resource created for a run.

    Args:
        run_scope: Resolved run scope.

    Returns:
        dict[str, str]: Label map containing `run.id`.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {RUN_ID_LABEL: run_scope.id}
