from __future__ import annotations

import inspect
import logging
import threading
import typing
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Protocol,
    TypeVar,
    cast,
    get_type_hints,
    overload,
    runtime_checkable,
)


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType
    from typing import Self

    T = TypeVar("T")

    Token = type[T] | str


class Lifetime(Enum):
    SINGLETON = "singleton"
    SCOPED = "scoped"
    TRANSIENT = "transient"


@runtime_checkable
class Disposable(Protocol):
    def close(self) -> None: ...


@dataclass
class Registration:
    factory: Callable[..., object] | None
    impl: type | None
    lifetime: Lifetime
    cached_instance: object | None = None  # cached singleton
    built: bool = False  # cached_instance holds the singleton, even when it is None
    external: bool = False  # pre-built instance, never disposed by the container


class ResolutionError(RuntimeError):
    pass


class ScopeDisposedError(RuntimeError):
    pass


class Container:
    """Minimal DI container.

    - register types, factories or pre-built instances
    - resolve with constructor injection
    - lifetimes: singleton / scoped / transient
    - child scopes that own and dispose what they create.

    The root container owns the singletons it builds and disposes them on
    `close()`. Transients resolved at root are never tracked.
    """

    _tracks_transients = False

    def __init__(self) -> None:
        self._registrations: dict[Any, Registration] = {}
        self._lock = threading.RLock()
        self._exit_stack = ExitStack()
        self._tracked: set[int] = set()  # ids of instances whose close() is on the exit stack
        self._closed = False
        self._local = threading.local()

    @overload
    def register(
        self,
        token: type[T],
        impl: type[T],
        *,
        factory: None = ...,
        lifetime: Lifetime = Lifetime.SINGLETON,
    ) -> None: ...

    @overload
    def register(
        self,
        token: type[T],
        impl: None = ...,
        *,
        factory: Callable[..., Any],
        lifetime: Lifetime = Lifetime.SINGLETON,
    ) -> None: ...

    @overload
    def register(
        self,
        token: str,
        impl: type | None = ...,
        *,
        factory: Callable[..., Any] | None = ...,
        lifetime: Lifetime = Lifetime.SINGLETON,
    ) -> None: ...

    def register(
        self,
        token: Token[T],
        impl: type | None = None,
        *,
        factory: Callable[..., Any] | None = None,
        lifetime: Lifetime = Lifetime.SINGLETON,
    ) -> None:
        """Register a concrete type or a factory for a token.

        Factories are called with the resolving container or scope. A generator
        function may be used as factory: the yielded value is the instance and
        the code after `yield` runs when the owning scope is closed.

        Example:
          container.register(IFoo, FooImpl, lifetime=Lifetime.SCOPED)
          container.register("db", factory=open_db, lifetime=Lifetime.SINGLETON)

        """
        if impl is not None and factory is not None:
            msg = "Provide either `impl` or `factory`, not both."
            raise ValueError(msg)

        if impl is None and factory is None:
            msg = "Either `impl` or `factory` must be provided."
            raise ValueError(msg)

        if factory is not None and not callable(factory):
            msg = "`factory` must be callable."
            raise ValueError(msg)

        if impl is not None and inspect.isclass(token):
            self._validate_impl(cls=token, impl=impl)

        with self._lock:
            self._registrations[token] = Registration(factory=factory, impl=impl, lifetime=lifetime)
        logger.debug("Registered %s as %s", _token_name(token), lifetime.value)

    def register_instance(
        self,
        token: Token[T],
        instance: object,
        *,
        replace: bool = False,
    ) -> None:
        """Register a pre-built instance (always singleton, never disposed here)."""
        if inspect.isclass(token) and not _is_protocol(token) and not isinstance(instance, token):
            msg = f"Instance of {type(instance).__name__} is not an instance of {token.__name__}"
            raise TypeError(msg)

        with self._lock:
            if not replace and token in self._registrations:
                msg = f"Token {token!r} is already registered. Pass replace=True to overwrite."
                raise KeyError(msg)
            self._registrations[token] = Registration(
                factory=None,
                impl=None,
                lifetime=Lifetime.SINGLETON,
                cached_instance=instance,
                built=True,
                external=True,
            )

    def has_registration(self, token: Token[T]) -> bool:
        return self._lookup(token) is not None

    @overload
    def resolve(self, token: type[T]) -> T: ...

    @overload
    def resolve(self, token: str) -> object: ...

    def resolve(self, token: Token[T]) -> object:
        """Resolve the token to an instance.

        - If a registration exists in this container or its parents: apply its lifetime.
        - If no registration and token is a concrete class: auto-wire it as transient.
        - Otherwise raise `KeyError`.
        """
        self._ensure_open()

        resolving = self._resolving()
        if token in resolving:
            msg = f"Circular dependency detected for {_token_name(token)}"
            raise ResolutionError(msg)

        resolving.add(token)
        try:
            return self._resolve_internal(token)
        finally:
            resolving.discard(token)

    @overload
    def get_service(self, token: type[T]) -> T | None: ...

    @overload
    def get_service(self, token: str) -> object | None: ...

    def get_service(self, token: Token[T]) -> object | None:
        """Resolve a registered token, or return None when nothing is registered for it."""
        self._ensure_open()
        if self._lookup(token) is None:
            return None
        return self.resolve(token)

    def create_scope(self) -> Scope:
        """Create a child scope that owns the scoped and transient instances it resolves."""
        self._ensure_open()
        scope = Scope(self, _from_parent=True)
        logger.debug("Created scope %#x", id(scope))
        return scope

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Dispose every instance owned by this container, latest first.

        Calling it again is a no-op. Cleanup errors propagate after the
        remaining cleanups have run.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        logger.debug("Closing %s %#x", type(self).__name__, id(self))
        self._exit_stack.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def _resolve_internal(self, token: Token[T]) -> object:
        found = self._lookup(token)

        if found is None:
            if inspect.isclass(token) and not _is_protocol(token):
                # If no registration found and token is a class type, try auto-wiring
                return self._build(token, None, track=self._tracks_transients)
            msg = f"No registration found for token: {token!r}"
            raise KeyError(msg)

        owner, reg = found
        if reg.lifetime is Lifetime.SINGLETON:
            return owner._singleton(token, reg)  # noqa: SLF001
        if reg.lifetime is Lifetime.SCOPED:
            return self._scoped(token, reg)
        return self._build(token, reg, track=self._tracks_transients)

    def _singleton(self, token: Token[T], reg: Registration) -> object:
        with self._lock:
            if not reg.built:
                self._ensure_open()
                # Built by the registering container so dependencies never capture a scope.
                reg.cached_instance = self._build(token, reg, track=not reg.external)
                reg.built = True
            return reg.cached_instance

    def _scoped(self, token: Token[T], reg: Registration) -> object:
        msg = f"Scoped service {_token_name(token)} cannot be resolved outside of a scope"
        raise ResolutionError(msg)

    def _build(self, token: Token[T], reg: Registration | None, *, track: bool) -> object:
        factory = reg.factory if reg else None

        if factory is not None and inspect.isgeneratorfunction(factory):
            if not track:
                msg = (
                    f"Generator factory for {_token_name(token)} needs a scope to run its cleanup; "
                    "resolve it through a scope or register it as singleton"
                )
                raise ResolutionError(msg)
            with self._lock:
                return self._exit_stack.enter_context(contextmanager(factory)(self))

        if factory is not None:
            instance = factory(self)
        else:
            cls = reg.impl if reg and reg.impl else token
            instance = Constructor(self).construct(cast("type", cls))

        if track and is_disposable(instance):
            with self._lock:
                # A factory may hand out the same object more than once; close it once.
                if id(instance) not in self._tracked:
                    self._tracked.add(id(instance))
                    self._exit_stack.callback(instance.close)
        return instance

    def _lookup(self, token: Token[T]) -> tuple[Container, Registration] | None:
        with self._lock:
            reg = self._registrations.get(token)
        if reg is None:
            return None
        return self, reg

    def _resolving(self) -> set[Any]:
        resolving = getattr(self._local, "resolving", None)
        if resolving is None:
            resolving = self._local.resolving = set()
        return resolving

    def _ensure_open(self) -> None:
        if self._closed:
            msg = f"Cannot resolve from a closed {type(self).__name__.lower()}"
            raise ScopeDisposedError(msg)

    def resolve_param(
        self,
        cls: type,
        p: inspect.Parameter,
        hints: dict[str, Any],
    ) -> Any:
        """Resolving param.

        Resolution precedence:
        1. type-based registration (or auto-wiring of a non-builtin class)
        2. name-based registration
        3. default
        4. error.
        """
        name = p.name

        # 1) type-based
        ann = hints.get(name, inspect.Parameter.empty)
        if ann is not inspect.Parameter.empty and (
            self.has_registration(ann) or (inspect.isclass(ann) and getattr(ann, "__module__", "") != "builtins")
        ):
            return self.resolve(ann)

        # 2) name-based
        if self.has_registration(name):
            return self.resolve(name)

        # 3) default
        if p.default is not inspect.Parameter.empty:
            return p.default

        # 4) error
        ann_repr = getattr(ann, "__name__", repr(ann)) if ann is not inspect.Parameter.empty else "no-annotation"
        msg = (
            f"Cannot satisfy constructor parameter '{name}' for {cls.__name__}. "
            f"No registration/default found (annotation: {ann_repr})."
        )
        raise ResolutionError(msg)

    def _validate_impl(self, cls: type, impl: type) -> None:
        """Validate that 'impl' implements 'cls'.

        Normal classes and ABCs require issubclass(impl, cls). Protocols are
        structural, so only an actual class is required.
        """
        if not inspect.isclass(impl):
            msg = f"Implementation {impl!r} must be a class"
            raise TypeError(msg)

        if not _is_protocol(cls) and not issubclass(impl, cls):
            msg = f"Implementation {impl.__name__} must be a subclass of {cls.__name__}"
            raise TypeError(msg)


class Scope(Container):
    """A child container bounded to one unit of work, e.g. one job execution.

    Looks up registrations in itself first, then in its parents. Scoped
    instances are cached here; scoped and transient instances built here are
    disposed when the scope closes. Singletons stay with the container that
    registered them.
    """

    _tracks_transients = True

    def __init__(self, parent: Container, *, _from_parent: bool = False) -> None:
        if not _from_parent:
            msg = "Scope instances must be created via Container.create_scope()"
            raise RuntimeError(msg)
        super().__init__()
        self._parent = parent
        self._scoped_instances: dict[Any, object] = {}

    @property
    def parent(self) -> Container:
        return self._parent

    def close(self) -> None:
        try:
            super().close()
        finally:
            self._scoped_instances.clear()

    def _scoped(self, token: Token[T], reg: Registration) -> object:
        with self._lock:
            if token not in self._scoped_instances:
                self._scoped_instances[token] = self._build(token, reg, track=True)
            return self._scoped_instances[token]

    def _lookup(self, token: Token[T]) -> tuple[Container, Registration] | None:
        found = super()._lookup(token)
        if found is None:
            # Fallback to parent
            return self._parent._lookup(token)  # noqa: SLF001
        return found


class Constructor:
    def __init__(self, resolver: Container) -> None:
        self._resolver = resolver

    def construct(self, cls: type[T]) -> T:
        try:
            sig = inspect.signature(cls)
        except ValueError:
            # Some builtins expose no signature; they must be default-constructible.
            return cls()

        hints = _get_init_type_hints(cls)
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for p in sig.parameters.values():
            # Variadic parameters are never injected
            if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
                continue

            value = self._resolver.resolve_param(cls, p, hints)
            if p.kind is p.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[p.name] = value

        return cls(*args, **kwargs)


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def _is_protocol(tp: object) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def _is_protocol(tp: object) -> bool:
        """Detect whether 'tp' is a typing.Protocol subclass (safe)."""
        return inspect.isclass(tp) and getattr(tp, "_is_protocol", False) and tp is not Protocol


def is_disposable(instance: object) -> bool:
    # Classes expose close() as an unbound function
    return isinstance(instance, Disposable) and not inspect.isclass(instance)


def _token_name(token: object) -> str:
    return getattr(token, "__name__", repr(token))


def _get_init_type_hints(cls: type) -> dict[str, Any]:
    try:
        init = inspect.getattr_static(cls, "__init__")
        hints = get_type_hints(init)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)
        hints = {}

    return hints
