import unittest
from typing import Protocol, runtime_checkable

import pytest

from jobscope import Container, Lifetime


class TestRegisterArguments(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_register_with_impl_and_factory_raises_value_error(self):
        class A: ...

        with pytest.raises(ValueError, match="not both"):
            self.cont.register(A, A, factory=lambda _: A())

    def test_register_without_impl_nor_factory_raises_value_error(self):
        class A: ...

        with pytest.raises(ValueError, match="must be provided"):
            self.cont.register(A)

    def test_register_non_callable_factory_raises_value_error(self):
        with pytest.raises(ValueError, match="callable"):
            self.cont.register("a", factory=42, lifetime=Lifetime.TRANSIENT)


class TestRegisterImplTokenConstraints(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_register_impl_requires_impl_to_be_subclass_of_concrete_token(self):
        class Base: ...

        class NotDerived: ...

        with pytest.raises(TypeError):
            self.cont.register(Base, impl=NotDerived)  # Not a subclass of Base

    def test_register_impl_must_be_a_class(self):
        class Base: ...

        with pytest.raises(TypeError):
            self.cont.register(Base, impl=Base())

    def test_register_any_impl_with_empty_protocol_succeeds(self):
        class EmptyProto(Protocol): ...

        class AnyClass: ...

        self.cont.register(EmptyProto, impl=AnyClass)

        resolved = self.cont.resolve(EmptyProto)
        assert isinstance(resolved, AnyClass)

    def test_register_impl_for_runtime_checkable_protocol_succeeds(self):
        @runtime_checkable
        class Notifier(Protocol):
            def notify(self) -> None: ...

        class EmailNotifier:
            def notify(self) -> None:
                pass

        self.cont.register(Notifier, impl=EmailNotifier, lifetime=Lifetime.TRANSIENT)

        resolved = self.cont.resolve(Notifier)
        assert isinstance(resolved, Notifier)


class TestRegisterInstanceReplacement(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_register_instance_twice_without_replace_raises_key_error(self):
        class A: ...

        a1, a2 = A(), A()

        self.cont.register_instance("a_instance", instance=a1)
        with pytest.raises(KeyError):
            self.cont.register_instance("a_instance", instance=a2)

    def test_register_instance_by_string_twice_with_replace_option_substitutes_instance(self):
        class A: ...

        a1, a2 = A(), A()

        self.cont.register_instance("a_instance", instance=a1)
        self.cont.register_instance("a_instance", instance=a2, replace=True)

        obj = self.cont.resolve("a_instance")
        assert obj is a2

    def test_register_instance_of_wrong_type_raises_type_error(self):
        class A: ...

        class B: ...

        with pytest.raises(TypeError):
            self.cont.register_instance(A, B())
