"""Cell record and the Python-function analyzer that produces it.

A ``Cell`` is the only thing the scheduler knows about user code: an id,
opaque source text (compared on hot reload), a compiled body, and the
names it reads and writes.  How the body was produced is not the
scheduler's concern.

The bundled analyzer turns plain functions into cells::

    from reflow import Behaviors, cell

    @cell
    def a():
        return Behaviors.timer(50)

    @cell
    def b(a):
        return a + 5

Parameter names are the inputs.  Parameters with a default are *forced*:
the cell may run while they are still undefined (they sample ``None``).
The names tracked by ``Behaviors.collect`` and the or-family factories
are forced as well, and a body returning ``Events.x(...)`` or
``Behaviors.x(...)`` takes that flavor.
"""

from __future__ import annotations

import ast
import functools
import hashlib
import inspect
import textwrap
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from reflow._errors import ConfigError, ReactiveError
from reflow._types import CellBody, CellId, Flavor, VarName

# Prefix marking a deferred reference: read the value, add no ordering edge.
DEFERRED_PREFIX = "$"

_FACTORY_OWNERS: dict[str, Flavor] = {"Events": "event", "Behaviors": "behavior"}

# Factories whose named arguments may be undefined while the cell runs
_OR_FACTORIES = frozenset({"or_", "some", "or_index"})


def base_var_name(name: VarName) -> VarName:
    """Strip the deferred-reference prefix from an input name."""
    return name[1:] if name.startswith(DEFERRED_PREFIX) else name


def is_deferred(name: VarName) -> bool:
    return name.startswith(DEFERRED_PREFIX)


@dataclass(frozen=True, slots=True)
class Cell:
    """A named unit of computation.

    Attributes:
        id: Stable identity, the primary output name.
        code: Source text; two definitions with equal ``code`` are the same.
        body: Callable taking input values positionally and returning a
            mapping of output name to value or Stream.
        outputs: Declared output names (the first one is ``id``).
        inputs: Ordered free-variable names.  ``$name`` is a deferred read.
        forced: Inputs allowed to be undefined without blocking readiness.
        flavor: Flavor for plain values.  When None the cell is an event
            if any of its (non-deferred) inputs is, a behavior otherwise.
        gather: Regular expression; when set, ``inputs`` is replaced at
            program setup by the ids of all cells matching it.

    """

    id: CellId
    code: str
    body: CellBody = field(compare=False)
    outputs: tuple[VarName, ...] = ()
    inputs: tuple[VarName, ...] = ()
    forced: frozenset[VarName] = frozenset()
    flavor: Flavor | None = None
    gather: str | None = None

    def __post_init__(self) -> None:
        if not self.outputs:
            object.__setattr__(self, "outputs", (self.id,))
        elif self.outputs[0] != self.id:
            msg = f"Cell {self.id!r}: primary output must be the cell id, got {self.outputs[0]!r}"
            raise ConfigError(msg)
        unknown = self.forced - set(self.inputs)
        if unknown:
            msg = f"Cell {self.id!r}: forced names {sorted(unknown)} are not inputs"
            raise ConfigError(msg)

    @property
    def input_vars(self) -> tuple[VarName, ...]:
        """Input names with the deferred prefix removed."""
        return tuple(base_var_name(name) for name in self.inputs)

    def run(self, values: list[Any]) -> Mapping[VarName, Any]:
        """Invoke the body with sampled input values.

        Exceptions raised by the body propagate unchanged.

        """
        produced = self.body(*values)
        if not isinstance(produced, Mapping):
            msg = (
                f"Cell {self.id!r} body returned {type(produced).__name__}, "
                "expected a mapping of output names"
            )
            raise ReactiveError(msg)
        return produced

    def with_inputs(self, inputs: Iterable[VarName]) -> Cell:
        """Return a copy reading *inputs*, all of them forced."""
        names = tuple(inputs)
        return replace(self, inputs=names, forced=frozenset(names))


def cell(
    func: Callable[..., Any] | None = None,
    *,
    name: CellId | None = None,
    outputs: Iterable[VarName] | None = None,
    deferred: Iterable[str] = (),
    forced: Iterable[str] = (),
    flavor: Flavor | None = None,
    gather: str | None = None,
) -> Any:
    """Decorator turning a function into a ``Cell``.

    Usable bare (``@cell``) or with options (``@cell(flavor="event")``).
    See ``cell_from_function`` for the options.

    """

    def wrap(f: Callable[..., Any]) -> Cell:
        return cell_from_function(
            f,
            name=name,
            outputs=outputs,
            deferred=deferred,
            forced=forced,
            flavor=flavor,
            gather=gather,
        )

    if func is None:
        return wrap
    return wrap(func)


def cell_from_function(
    func: Callable[..., Any],
    *,
    name: CellId | None = None,
    outputs: Iterable[VarName] | None = None,
    deferred: Iterable[str] = (),
    forced: Iterable[str] = (),
    flavor: Flavor | None = None,
    gather: str | None = None,
) -> Cell:
    """Analyze *func* into a ``Cell``.

    Args:
        func: Function whose positional parameters name its inputs.
        name: Cell id (defaults to ``func.__name__``).
        outputs: Output names for multi-output cells.  The function then
            returns a mapping or a tuple in output order.
        deferred: Parameter names read as deferred references.
        forced: Parameter names allowed to be undefined, on top of those
            with a default and those tracked by ``Behaviors.collect`` or
            an or-family factory.
        flavor: Flavor of plain return values.  Defaults to the owner of
            the factory every ``return`` calls (``Events`` or
            ``Behaviors``), if there is one.
        gather: Input pattern for gather cells.  The function is then
            called without arguments.

    Raises:
        ConfigError: For keyword-only or variadic parameters, or unknown
            deferred or forced names.

    """
    cell_id = name or func.__name__
    deferred_names = set(deferred)
    source = _source_text(func)
    tracked, returned = _scan(source)
    forced_names = set(forced)
    parameters = list(inspect.signature(func).parameters.values())
    unknown = forced_names - {p.name for p in parameters}
    if unknown:
        msg = f"Cell {cell_id!r}: forced names {sorted(unknown)} are not parameters"
        raise ConfigError(msg)

    inputs: list[VarName] = []
    forced_vars: set[VarName] = set()
    for param in parameters:
        if param.kind not in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            msg = f"Cell {cell_id!r}: parameter {param.name!r} must be positional"
            raise ConfigError(msg)
        var = f"{DEFERRED_PREFIX}{param.name}" if param.name in deferred_names else param.name
        inputs.append(var)
        if (
            param.default is not param.empty
            or param.name in forced_names
            or param.name in tracked
            or _ALL in tracked
        ):
            forced_vars.add(var)
        deferred_names.discard(param.name)

    if deferred_names:
        msg = f"Cell {cell_id!r}: deferred names {sorted(deferred_names)} are not parameters"
        raise ConfigError(msg)

    output_names = tuple(outputs) if outputs is not None else (cell_id,)
    if gather is not None:
        inputs, forced_vars = [], set()

    return Cell(
        id=cell_id,
        code=source if source is not None else _fingerprint(func),
        body=_wrap_body(func, output_names, takes_inputs=gather is None),
        outputs=output_names,
        inputs=tuple(inputs),
        forced=frozenset(forced_vars),
        flavor=flavor if flavor is not None else returned,
        gather=gather,
    )


def _wrap_body(
    func: Callable[..., Any], outputs: tuple[VarName, ...], *, takes_inputs: bool
) -> CellBody:
    """Adapt a plain function to the mapping-returning body contract."""

    @functools.wraps(func)
    def body(*values: Any) -> Mapping[VarName, Any]:
        result = func(*values) if takes_inputs else func()
        if len(outputs) == 1:
            return {outputs[0]: result}
        if result is None:
            return {}
        if isinstance(result, Mapping):
            return result
        return dict(zip(outputs, result, strict=True))

    return body


# ---------------------------------------------------------------------------
# Source analysis
# ---------------------------------------------------------------------------

# Marker for an or-family call without names: every input is tracked.
_ALL = "*"


def _source_text(func: Callable[..., Any]) -> str | None:
    try:
        return inspect.getsource(func)
    except (OSError, TypeError):
        return None


def _fingerprint(func: Callable[..., Any]) -> str:
    """Bytecode fingerprint used as ``code`` when no source is available."""
    code = func.__code__
    digest = hashlib.sha256(code.co_code + repr(code.co_consts).encode()).hexdigest()
    return f"<{func.__qualname__}:{digest[:16]}>"


def _scan(source: str | None) -> tuple[frozenset[str], Flavor | None]:
    """Return the names tracked by forcing factories and the returned flavor.

    Only the outermost function is inspected for ``return`` statements;
    factory calls are collected anywhere in its body.
    """
    if source is None:
        return frozenset(), None
    try:
        tree = ast.parse(textwrap.dedent(source))
    except SyntaxError:
        return frozenset(), None
    func = next(
        (n for n in tree.body if isinstance(n, (ast.FunctionDef, ast.AsyncFunctionDef))), None
    )
    if func is None:
        return frozenset(), None

    tracked: set[str] = set()
    for node in ast.walk(func):
        if not isinstance(node, ast.Call):
            continue
        owner, factory = _factory_of(node)
        if owner is None:
            continue
        if owner == "Behaviors" and factory == "collect" and len(node.args) > 1:
            tracked.update(_string_args(node.args[1:2]))
        elif factory in _OR_FACTORIES or (owner == "Behaviors" and factory == "or_"):
            tracked.update(_string_args(node.args) if node.args else [_ALL])

    owners = {_factory_of(r.value)[0] for r in _returns(func) if r.value is not None}
    flavor = _FACTORY_OWNERS.get(owners.pop()) if len(owners) == 1 else None
    return frozenset(tracked), flavor


def _factory_of(node: ast.expr) -> tuple[str | None, str]:
    """Return ``(owner, factory)`` for ``Events.x(...)``/``Behaviors.x(...)`` calls."""
    if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
        return None, ""
    target = node.func.value
    owner = target.id if isinstance(target, ast.Name) else getattr(target, "attr", None)
    if owner not in _FACTORY_OWNERS:
        return None, ""
    return owner, node.func.attr


def _string_args(args: list[ast.expr]) -> list[str]:
    return [a.value for a in args if isinstance(a, ast.Constant) and isinstance(a.value, str)]


def _returns(func: ast.FunctionDef | ast.AsyncFunctionDef) -> list[ast.Return]:
    """``return`` statements of *func* itself, not of nested scopes."""
    found: list[ast.Return] = []
    stack: list[ast.AST] = list(func.body)
    while stack:
        node = stack.pop()
        if isinstance(node, ast.Return):
            found.append(node)
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)):
            continue
        stack.extend(ast.iter_child_nodes(node))
    return found
