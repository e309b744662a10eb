"""Function callbacks and the registry that resolves them by name."""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from importlib.metadata import entry_points
from typing import Any, Callable

from minimax_chat.errors import FunctionNotFoundError
from minimax_chat.types import Function, FunctionTool

_logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "minimax_chat.functions"

# Looks up a callback the registry does not hold yet, or returns None.
Resolver = Callable[[str], "FunctionCallback | None"]


@dataclass
class FunctionParameter:
    """Definition of a function parameter."""

    name: str
    type: str  # string, integer, number, boolean, array, object
    description: str
    required: bool = True
    default: Any = None
    enum: list[str] | None = None


def parameters_to_schema(parameters: list[FunctionParameter]) -> dict[str, Any]:
    """Render parameters as a JSON-schema ``object``."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    for p in parameters:
        prop: dict[str, Any] = {
            "type": p.type,
            "description": p.description,
        }
        if p.enum:
            prop["enum"] = p.enum
        if p.default is not None:
            prop["default"] = p.default
        properties[p.name] = prop
        if p.required:
            required.append(p.name)

    return {
        "type": "object",
        "properties": properties,
        "required": required,
    }


def _to_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


@dataclass
class FunctionCallback:
    """A named client-side function the model may ask to run.

    ``handler`` takes the raw JSON argument string produced by the model
    and returns the text sent back as the tool message.
    """

    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=dict)
    handler: Callable[[str], Any] | None = None

    def call(self, arguments: str) -> str:
        if self.handler is None:
            raise NotImplementedError(f"Function '{self.name}' has no handler")
        result = self.handler(arguments)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise TypeError(f"Function '{self.name}' is async; use acall()")
        return _to_text(result)

    async def acall(self, arguments: str) -> str:
        """Like ``call()`` but also accepts handlers returning awaitables."""
        if self.handler is None:
            raise NotImplementedError(f"Function '{self.name}' has no handler")
        result = self.handler(arguments)
        if inspect.isawaitable(result):
            result = await result
        return _to_text(result)

    def to_function_tool(self) -> FunctionTool:
        return FunctionTool(
            function=Function(
                name=self.name,
                description=self.description,
                parameters=self.input_schema,
            )
        )

    @classmethod
    def wrap(
        cls,
        fn: Callable[..., Any],
        *,
        name: str | None = None,
        description: str | None = None,
        parameters: list[FunctionParameter] | None = None,
        schema: dict[str, Any] | None = None,
        response_converter: Callable[[Any], str] | None = None,
    ) -> FunctionCallback:
        """Wrap a keyword-argument function.

        The JSON arguments are decoded and passed as keyword arguments.
        Results go through *response_converter* (JSON by default for
        anything that is not already a string).
        """
        fn_name = name or fn.__name__
        if schema is None:
            schema = parameters_to_schema(parameters or [])
        convert = response_converter or _to_text

        def handler(arguments: str) -> Any:
            kwargs = json.loads(arguments) if arguments and arguments.strip() else {}
            if not isinstance(kwargs, dict):
                raise ValueError(
                    f"Arguments for '{fn_name}' must be a JSON object, got {type(kwargs).__name__}"
                )
            result = fn(**kwargs)
            if inspect.isawaitable(result):
                async def _converted() -> str:
                    return convert(await result)
                return _converted()
            return convert(result)

        return cls(
            name=fn_name,
            description=description or inspect.getdoc(fn) or "",
            input_schema=schema,
            handler=handler,
        )


class FunctionCallbackRegistry:
    """Name -> callback mapping with an optional fallback resolver.

    ``scoped()`` returns an overlay whose own callbacks shadow the parent's,
    so per-call callbacks never leak into the shared registry.
    """

    def __init__(
        self,
        callbacks: Iterable[FunctionCallback] | None = None,
        resolver: Resolver | None = None,
        parent: FunctionCallbackRegistry | None = None,
    ) -> None:
        self._callbacks: dict[str, FunctionCallback] = {}
        self._resolver = resolver
        self._parent = parent
        for cb in callbacks or ():
            self.register(cb)

    def register(self, callback: FunctionCallback) -> None:
        """Register *callback*, replacing any callback with the same name."""
        self._callbacks[callback.name] = callback

    def register_if_absent(self, callback: FunctionCallback) -> bool:
        """Register *callback* unless the name is taken.  Returns True if added."""
        if callback.name in self:
            return False
        self._callbacks[callback.name] = callback
        return True

    def scoped(self, callbacks: Iterable[FunctionCallback] | None = None) -> FunctionCallbackRegistry:
        """Return an overlay registry holding *callbacks* on top of this one."""
        return FunctionCallbackRegistry(callbacks, parent=self)

    def _lookup(self, name: str) -> FunctionCallback | None:
        cb = self._callbacks.get(name)
        if cb is not None:
            return cb
        if self._parent is not None:
            return self._parent._lookup(name)
        return None

    def get(self, name: str) -> FunctionCallback:
        """Look up *name*, consulting the resolver once on a miss.

        Raises ``FunctionNotFoundError`` if nothing provides it.
        """
        cb = self._lookup(name)
        if cb is not None:
            return cb
        cb = self._resolve(name)
        if cb is None:
            raise FunctionNotFoundError(name)
        return cb

    def _resolve(self, name: str) -> FunctionCallback | None:
        if self._resolver is not None:
            cb = self._resolver(name)
            if cb is not None:
                _logger.debug("Resolved function callback %r via resolver", name)
                self._callbacks[name] = cb
                return cb
        if self._parent is not None:
            return self._parent._resolve(name)
        return None

    def resolve(self, names: Iterable[str]) -> list[FunctionCallback]:
        """Resolve every name in order; the first missing one raises."""
        return [self.get(n) for n in names]

    def tool_definitions(self, names: Iterable[str]) -> list[FunctionTool]:
        """Vendor tool definitions for *names*, one per distinct name."""
        unique = list(dict.fromkeys(names))
        return [cb.to_function_tool() for cb in self.resolve(unique)]

    def names(self) -> list[str]:
        inherited = self._parent.names() if self._parent is not None else []
        return list(dict.fromkeys([*self._callbacks, *inherited]))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._lookup(name) is not None

    def __len__(self) -> int:
        return len(self.names())

    def discover(self, group: str = ENTRY_POINT_GROUP) -> None:
        """Load callbacks from the ``minimax_chat.functions`` entry points.

        Each entry point may be a ``FunctionCallback`` or a zero-argument
        callable returning one.
        """
        for ep in entry_points(group=group):
            try:
                obj = ep.load()
                if isinstance(obj, FunctionCallback):
                    cb = obj
                elif callable(obj):
                    cb = obj()
                else:
                    _logger.warning(
                        "Entry point %s did not return a FunctionCallback: %s",
                        ep.name, type(obj),
                    )
                    continue
                if not isinstance(cb, FunctionCallback):
                    _logger.warning(
                        "Entry point %s did not return a FunctionCallback: %s",
                        ep.name, type(cb),
                    )
                    continue
                self.register(cb)
                _logger.info("Discovered function callback: %s", cb.name)
            except Exception:
                _logger.exception("Failed to load function plugin: %s", ep.name)
