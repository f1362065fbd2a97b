"""Tests for registration and resolution through the Container facade."""

import asyncio
from typing import Any

import pytest

from dicrate.container import Container, TaggedServices
from dicrate.exceptions import DICrateBindingResolutionError
from dicrate.introspection import ParameterInfo, SignatureIntrospector
from dicrate.lock_mode import LockMode


class ServiceA:
    pass


class ServiceB:
    def __init__(self, service_a: ServiceA) -> None:
        self.service_a = service_a


class Logger:
    pass


class Mailer:
    def __init__(self, logger: Logger) -> None:
        self.logger = logger


class StringTypedMailer:
    def __init__(self, logger: "AppLogger") -> None:  # noqa: F821
        self.logger = logger


class ReportA:
    pass


class ReportB:
    pass


def test_resolves_unregistered_class(container: Container) -> None:
    instance = container.resolve(ServiceA)
    assert isinstance(instance, ServiceA)


def test_resolves_constructor_dependencies(container: Container) -> None:
    instance = container.resolve(ServiceB)
    assert isinstance(instance, ServiceB)
    assert isinstance(instance.service_a, ServiceA)


def test_transient_binding_builds_every_time(container: Container) -> None:
    calls: list[int] = []

    def build(_container: Container, _overrides: Any) -> ServiceA:
        calls.append(1)
        return ServiceA()

    container.bind(ServiceA, build)

    first = container.resolve(ServiceA)
    second = container.resolve(ServiceA)

    assert first is not second
    assert len(calls) == 2
    assert not container.is_resolved(ServiceA)


def test_singleton_binding_is_cached(container: Container) -> None:
    container.singleton(ServiceA)

    first = container.resolve(ServiceA)
    second = container.resolve(ServiceA)

    assert first is second
    assert container.is_resolved(ServiceA)


def test_singleton_extender_runs_once(container: Container) -> None:
    calls: list[ServiceA] = []

    def extender(instance: ServiceA, _container: Container) -> ServiceA:
        calls.append(instance)
        return instance

    container.singleton(ServiceA)
    container.extend(ServiceA, extender)

    first = container.resolve(ServiceA)
    second = container.resolve(ServiceA)

    assert first is second
    assert calls == [first]


def test_singleton_caches_none(container: Container) -> None:
    calls: list[int] = []

    def build(_container: Container, _overrides: Any) -> None:
        calls.append(1)

    container.singleton("nothing", build)

    assert container.resolve("nothing") is None
    assert container.resolve("nothing") is None
    assert len(calls) == 1


def test_singleton_takes_precedence_over_transient_binding(container: Container) -> None:
    shared = ServiceA()
    container.bind(ServiceA, lambda _c, _o: ServiceA())
    container.singleton(ServiceA, lambda _c, _o: shared)

    assert container.resolve(ServiceA) is shared


def test_binding_to_concrete_class(container: Container) -> None:
    class Base:
        pass

    class Impl(Base):
        pass

    container.bind(Base, Impl)

    assert isinstance(container.resolve(Base), Impl)


def test_instance_short_circuits_other_bindings(container: Container) -> None:
    value = ServiceA()
    container.bind(ServiceA, lambda _c, _o: pytest.fail("binding must not be used"))
    container.singleton(ServiceA, lambda _c, _o: pytest.fail("singleton must not be used"))
    container.instance(ServiceA, value)

    assert container.resolve(ServiceA) is value


class RecordingIntrospector(SignatureIntrospector):
    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, Any]] = []

    def is_instantiable(self, concrete: type[Any]) -> bool:
        self.calls.append(("is_instantiable", concrete))
        return super().is_instantiable(concrete)

    def constructor_parameters(self, concrete: type[Any]) -> tuple[ParameterInfo, ...] | None:
        self.calls.append(("constructor_parameters", concrete))
        return super().constructor_parameters(concrete)

    def callable_parameters(self, func: Any) -> tuple[ParameterInfo, ...]:
        self.calls.append(("callable_parameters", func))
        return super().callable_parameters(func)


def test_instance_resolution_never_introspects() -> None:
    introspector = RecordingIntrospector()
    container = Container(introspector=introspector)
    value = ServiceB(ServiceA())

    container.instance(ServiceB, value)

    assert container.resolve(ServiceB) is value
    assert introspector.calls == []


def test_auto_wiring_goes_through_custom_introspector() -> None:
    introspector = RecordingIntrospector()
    container = Container(introspector=introspector)

    container.resolve(ServiceB)

    assert ("constructor_parameters", ServiceB) in introspector.calls
    assert ("constructor_parameters", ServiceA) in introspector.calls


def test_instance_returns_registered_value(container: Container) -> None:
    value = ServiceA()
    assert container.instance(ServiceA, value) is value


def test_cached_instance_skips_callbacks(container: Container) -> None:
    events: list[str] = []
    container.instance("config", {"debug": True})
    container.on_resolving("config", lambda _c: events.append("resolving"))
    container.on_after_resolving("config", lambda _v, _c: events.append("after"))

    assert container.resolve("config") == {"debug": True}
    assert events == []


def test_alias_resolves_like_canonical_identifier(container: Container) -> None:
    container.singleton(ServiceA)
    container.alias(ServiceA, "service_a")

    assert container.resolve("service_a") is container.resolve(ServiceA)


def test_alias_follows_a_single_hop(container: Container) -> None:
    container.instance("target", 1)
    container.alias("target", "first")
    container.alias("first", "second")

    assert container.resolve("first") == 1
    with pytest.raises(DICrateBindingResolutionError):
        container.resolve("second")


def test_factory_receives_container_and_overrides(container: Container) -> None:
    seen: dict[str, Any] = {}

    def build(received: Container, overrides: Any) -> str:
        seen["container"] = received
        return overrides["dsn"]

    container.bind("connection", build)

    assert container.resolve("connection", {"dsn": "sqlite://"}) == "sqlite://"
    assert seen["container"] is container


def test_overrides_apply_to_constructor_parameters(container: Container) -> None:
    explicit = ServiceA()

    instance = container.resolve(ServiceB, {"service_a": explicit})

    assert instance.service_a is explicit


def test_bound_logger_is_injected_by_type(container: Container) -> None:
    sentinel = object()
    container.bind(Logger, lambda _c, _o: sentinel)

    mailer = container.resolve(Mailer)

    assert mailer.logger is sentinel


def test_unresolved_forward_reference_is_a_string_identifier(container: Container) -> None:
    sentinel = object()
    container.bind("AppLogger", lambda _c, _o: sentinel)

    mailer = container.resolve(StringTypedMailer)

    assert mailer.logger is sentinel


def test_resolves_dotted_path_string(container: Container) -> None:
    import logging

    formatter = container.resolve("logging.Formatter")

    assert isinstance(formatter, logging.Formatter)


def test_extenders_apply_in_registration_order(container: Container) -> None:
    container.bind("greeting", lambda _c, _o: "hello")
    container.extend("greeting", lambda value, _c: f"{value} world")
    container.extend("greeting", lambda value, _c: value.upper())

    assert container.resolve("greeting") == "HELLO WORLD"


def test_extend_applies_immediately_to_cached_instance(container: Container) -> None:
    container.instance("settings", {"debug": False})
    container.alias("settings", "config")

    container.extend("config", lambda value, _c: {**value, "debug": True})

    assert container.registry.instances["settings"] == {"debug": True}
    assert container.registry.extenders == {}


def test_callbacks_fire_around_build(container: Container) -> None:
    events: list[Any] = []

    container.bind("greeting", lambda _c, _o: events.append("build") or "hi")
    container.extend("greeting", lambda value, _c: f"{value}!")
    container.on_resolving("greeting", lambda c: events.append(("resolving", c)))
    container.on_after_resolving("greeting", lambda value, _c: events.append(("after", value)))

    assert container.resolve("greeting") == "hi!"
    assert events == [("resolving", container), "build", ("after", "hi!")]


def test_tagged_resolves_lazily_in_order(container: Container) -> None:
    resolved: list[Any] = []
    container.on_after_resolving(ReportA, lambda value, _c: resolved.append(value))
    container.on_after_resolving(ReportB, lambda value, _c: resolved.append(value))
    container.tag([ReportA, ReportB], "reports")

    services = container.tagged("reports")
    assert isinstance(services, TaggedServices)
    assert len(services) == 2
    assert resolved == []

    iterator = iter(services)
    first = next(iterator)
    assert isinstance(first, ReportA)
    assert resolved == [first]

    second = next(iterator)
    assert isinstance(second, ReportB)


def test_tagged_is_restartable(container: Container) -> None:
    container.singleton(ReportB)
    container.tag(ReportA, ["reports", "daily"])
    container.tag(ReportB, "reports")

    first_pass = list(container.tagged("reports"))
    second_pass = list(container.tagged("reports"))

    assert first_pass[0] is not second_pass[0]
    assert first_pass[1] is second_pass[1]
    assert [type(item) for item in container.tagged("daily")] == [ReportA]


def test_tagged_unknown_tag_is_empty(container: Container) -> None:
    assert list(container.tagged("missing")) == []
    assert len(container.tagged("missing")) == 0


def test_has_checks_registration_tables(container: Container) -> None:
    assert not container.has(ServiceA)

    container.bind(ServiceA)
    assert container.has(ServiceA)

    container.singleton("cache")
    container.instance("config", {})
    assert container.has("cache")
    assert container.has("config")


def test_forget_removes_only_cached_instance(container: Container) -> None:
    container.singleton(ServiceA)
    first = container.resolve(ServiceA)

    container.forget(ServiceA)

    assert not container.is_resolved(ServiceA)
    assert container.has(ServiceA)
    assert container.resolve(ServiceA) is not first


def test_flush_clears_everything(container: Container) -> None:
    calls: list[int] = []
    container.singleton(ServiceA)
    container.extend(ServiceA, lambda value, _c: calls.append(1) or value)
    first = container.resolve(ServiceA)

    container.flush()

    assert not container.is_resolved(ServiceA)
    assert not container.has(ServiceA)
    assert container.registry.extenders == {}

    container.singleton(ServiceA)
    container.extend(ServiceA, lambda value, _c: calls.append(2) or value)
    second = container.resolve(ServiceA)

    assert second is not first
    assert second is container.resolve(ServiceA)
    assert calls == [1, 2]


def test_build_bypasses_bindings(container: Container) -> None:
    container.bind(ServiceA, lambda _c, _o: pytest.fail("binding must not be used"))

    assert isinstance(container.build(ServiceA), ServiceA)


def test_factory_returning_awaitable_is_passed_through(container: Container) -> None:
    async def connect() -> str:
        await asyncio.sleep(0)
        return "connected"

    container.bind("connection", lambda _c, _o: connect())

    assert asyncio.run(container.resolve("connection")) == "connected"


def test_unlocked_container_resolves_singletons(container_unlocked: Container) -> None:
    container_unlocked.singleton(ServiceA)

    assert container_unlocked.resolve(ServiceA) is container_unlocked.resolve(ServiceA)


class TestMappingAccess:
    def test_setitem_wraps_plain_values(self, container: Container) -> None:
        container["greeting"] = "hello"

        assert container["greeting"] == "hello"
        assert not container.is_resolved("greeting")

    def test_setitem_keeps_factories(self, container: Container) -> None:
        container["service"] = lambda _c, _o: ServiceA()

        assert container["service"] is not container["service"]

    def test_setitem_does_not_instantiate_classes(self, container: Container) -> None:
        container["service_class"] = ServiceA

        assert container["service_class"] is ServiceA

    def test_contains_uses_has(self, container: Container) -> None:
        container["greeting"] = "hello"

        assert "greeting" in container
        assert "missing" not in container

    def test_delitem_removes_all_entries(self, container: Container) -> None:
        container.bind("service", ServiceA)
        container.singleton("service", ServiceA)
        container.instance("service", ServiceA())

        del container["service"]

        assert "service" not in container
        assert not container.is_resolved("service")


class TestGlobalInstance:
    @pytest.fixture(autouse=True)
    def _restore_global(self) -> Any:
        previous = Container._instance
        yield
        Container.set_instance(previous)

    def test_get_instance_creates_once(self) -> None:
        Container.set_instance(None)

        first = Container.get_instance()

        assert isinstance(first, Container)
        assert Container.get_instance() is first

    def test_set_instance_replaces_global(self) -> None:
        replacement = Container(lock_mode=LockMode.NONE)

        assert Container.set_instance(replacement) is replacement
        assert Container.get_instance() is replacement

    def test_set_instance_none_resets(self) -> None:
        original = Container.get_instance()

        Container.set_instance(None)

        assert Container.get_instance() is not original
