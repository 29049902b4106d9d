"""Script engines: compile script source once, execute it many times.

``ScriptExecutorFactory.new_instance(language)`` returns the factory
registered for a scripting language.  ``factory.new_script_executor(source)``
compiles the source into a ``ScriptExecutor``; ``executor.execute(arguments)``
runs it with each argument bound as a global name and returns its value.

The built-in ``python`` engine treats the script source as the body of a
function, so a script may ``return`` a value at top level, and a trailing
bare expression is the script's value::

    rows = directory.search(objectClass, query)
    [dict(r, __UID__=r["id"], __NAME__=r["login"]) for r in rows]

Scripts are trusted configuration: they run with full builtins and
imports, and are not sandboxed.

Additional languages can be plugged in with ``register_language()``.
"""

import ast
import builtins
from typing import Any, Dict, Mapping, Set, Type

from .errors import ConfigurationError

# Compiled template the script body is grafted into
_FUNCTION_NAME = "__script__"
_TEMPLATE = f"def {_FUNCTION_NAME}():\n    pass\n"


class ScriptExecutor:
    """A compiled, reusable script.  Immutable once created."""

    language = ""

    def execute(self, arguments: Mapping[str, Any]) -> Any:
        """Run the script with ``arguments`` in scope and return its value."""
        raise NotImplementedError


class ScriptExecutorFactory:
    """Compiles source text for one scripting language."""

    language = ""

    _registry: Dict[str, Type["ScriptExecutorFactory"]] = {}

    def new_script_executor(self, source: str, name: str = "<script>") -> ScriptExecutor:
        """Compile ``source`` into an executor; raise ``ConfigurationError`` on failure."""
        raise NotImplementedError

    @classmethod
    def new_instance(cls, language: str) -> "ScriptExecutorFactory":
        """Return a factory for ``language`` (case-insensitive)."""
        factory_cls = cls._registry.get((language or "").strip().lower())
        if factory_cls is None:
            supported = ", ".join(sorted(cls._registry)) or "none"
            raise ConfigurationError(
                f"Unsupported scripting language '{language}' (supported: {supported})"
            )
        return factory_cls()

    @classmethod
    def supported_languages(cls):
        return sorted(cls._registry)


def register_language(name: str, factory_cls: Type[ScriptExecutorFactory]) -> None:
    """Register ``factory_cls`` under ``name`` (case-insensitive)."""
    ScriptExecutorFactory._registry[name.strip().lower()] = factory_cls


def is_supported_language(name: str) -> bool:
    return (name or "").strip().lower() in ScriptExecutorFactory._registry


# ---------------------------------------------------------------------------
# Python engine
# ---------------------------------------------------------------------------

class PythonScriptExecutor(ScriptExecutor):
    """Executes a compiled Python script body in a fresh namespace per call."""

    language = "python"

    def __init__(self, code, name: str):
        self._code = code
        self.name = name

    def execute(self, arguments: Mapping[str, Any]) -> Any:
        namespace: Dict[str, Any] = {"__builtins__": builtins, "__name__": self.name}
        namespace.update(arguments)
        exec(self._code, namespace)
        return namespace[_FUNCTION_NAME]()

    def __repr__(self):
        return f"PythonScriptExecutor({self.name!r})"


class PythonScriptExecutorFactory(ScriptExecutorFactory):
    """Compiles Python source as the body of a function."""

    language = "python"

    def new_script_executor(self, source: str, name: str = "<script>") -> ScriptExecutor:
        try:
            module = ast.parse(source, filename=name)
        except SyntaxError as exc:
            raise ConfigurationError(f"Cannot compile script {name}: {exc}") from exc

        body = list(module.body)
        if not body:
            body = [ast.Pass()]
        # A trailing bare expression is the script's value
        last = body[-1]
        if isinstance(last, ast.Expr):
            body[-1] = ast.copy_location(ast.Return(value=last.value), last)

        # Names the script binds at top level live in its namespace, so a script
        # may rebind an argument (e.g. `attributes = dict(attributes)`)
        collector = _BoundNames()
        for stmt in body:
            collector.visit(stmt)
        if collector.names:
            body.insert(0, ast.Global(names=sorted(collector.names)))

        template = ast.parse(_TEMPLATE, filename=name)
        template.body[0].body = body
        ast.fix_missing_locations(template)
        try:
            code = compile(template, name, "exec")
        except SyntaxError as exc:
            raise ConfigurationError(f"Cannot compile script {name}: {exc}") from exc
        return PythonScriptExecutor(code, name)


class _BoundNames(ast.NodeVisitor):
    """Collects the names a script body binds in its own scope.

    Nested functions, classes, lambdas and comprehensions have scopes of
    their own; only their names (and decorators/defaults) are visited.
    """

    def __init__(self):
        self.names: Set[str] = set()

    def visit_Name(self, node: ast.Name) -> None:
        if isinstance(node.ctx, (ast.Store, ast.Del)):
            self.names.add(node.id)

    def visit_FunctionDef(self, node) -> None:
        self.names.add(node.name)
        for expr in node.decorator_list + node.args.defaults + node.args.kw_defaults:
            if expr is not None:
                self.visit(expr)

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self.names.add(node.name)
        for expr in node.decorator_list + node.bases:
            self.visit(expr)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        # Annotated names cannot be declared global; they stay local
        if node.value is not None:
            self.visit(node.value)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        for expr in node.args.defaults + node.args.kw_defaults:
            if expr is not None:
                self.visit(expr)

    def _visit_comprehension(self, node) -> None:
        # Only the first iterable is evaluated in the enclosing scope
        self.visit(node.generators[0].iter)

    visit_ListComp = visit_SetComp = visit_DictComp = visit_GeneratorExp = _visit_comprehension

    def visit_Import(self, node) -> None:
        for alias in node.names:
            self.names.add((alias.asname or alias.name).split(".")[0])

    visit_ImportFrom = visit_Import

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.name:
            self.names.add(node.name)
        self.generic_visit(node)


register_language("python", PythonScriptExecutorFactory)
register_language("py", PythonScriptExecutorFactory)
