from types import SimpleNamespace

import pytest

from modularity import (
    AfterServiceResolved,
    BeforeServiceResolved,
    Container,
    ContainerConfigurator,
    Dispatcher,
    NotFoundError,
    ReadOnlyContainer,
    ServiceEvent,
    ServiceListeners,
    ServiceNotResolved,
)


class CountingFactory:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, container: Container) -> SimpleNamespace:
        self.calls += 1
        return SimpleNamespace(number=self.calls)


def build(configurator: ContainerConfigurator) -> ReadOnlyContainer:
    return configurator.create_read_only_container()


def record_events(dispatcher: Dispatcher) -> list[ServiceEvent]:
    events: list[ServiceEvent] = []
    listeners = ServiceListeners()
    listeners.add(ServiceEvent, events.append)
    dispatcher.attach_provider(listeners)
    return events


class TestMissingServices:
    """Ids that were never registered."""

    def test_get_raises_not_found(self) -> None:
        container = build(ContainerConfigurator())
        with pytest.raises(NotFoundError, match="Service with ID missing not found."):
            container.get("missing")

    def test_not_found_is_a_key_error(self) -> None:
        container = build(ContainerConfigurator())
        with pytest.raises(KeyError):
            container["missing"]

    def test_has_is_false(self) -> None:
        container = build(ContainerConfigurator())
        assert not container.has("missing")
        assert "missing" not in container

    def test_not_found_carries_service_id(self) -> None:
        container = build(ContainerConfigurator())
        with pytest.raises(NotFoundError) as exception_info:
            container.get("missing")
        assert exception_info.value.service_id == "missing"


class TestSingletons:
    """Services are built once and cached."""

    def test_same_instance_and_single_invocation(self) -> None:
        factory = CountingFactory()
        configurator = ContainerConfigurator()
        configurator.add_service("counter", factory)
        container = build(configurator)

        first = container.get("counter")
        second = container.get("counter")

        assert first is second
        assert factory.calls == 1

    def test_factory_receives_container(self) -> None:
        configurator = ContainerConfigurator()
        configurator.add_service("name", lambda container: "World")
        configurator.add_service(
            "greeting", lambda container: f"Hello, {container.get('name')}!"
        )
        container = build(configurator)
        assert container.get("greeting") == "Hello, World!"

    def test_has_after_resolution(self) -> None:
        configurator = ContainerConfigurator()
        configurator.add_service("value", lambda container: 42)
        container = build(configurator)

        assert container.has("value")
        container.get("value")
        assert "value" not in container.services
        assert container.has("value")

    def test_has_does_not_resolve(self) -> None:
        factory = CountingFactory()
        configurator = ContainerConfigurator()
        configurator.add_service("counter", factory)
        events = record_events(configurator.dispatcher)
        container = build(configurator)

        assert container.has("counter")
        assert factory.calls == 0
        assert events == []

    def test_subscription(self) -> None:
        configurator = ContainerConfigurator()
        configurator.add_service("value", lambda container: 42)
        container = build(configurator)
        assert "value" in container
        assert container["value"] == 42


class TestFactories:
    """Factory services are rebuilt on every lookup."""

    def test_factory_invoked_each_time(self) -> None:
        factory = CountingFactory()
        configurator = ContainerConfigurator()
        configurator.add_factory("counter", factory)
        container = build(configurator)

        values = [container.get("counter") for _ in range(3)]

        assert factory.calls == 3
        assert [value.number for value in values] == [1, 2, 3]
        assert values[0] is not values[1]

    def test_add_service_over_factory_clears_factory_mark(self) -> None:
        factory = CountingFactory()
        configurator = ContainerConfigurator()
        configurator.add_factory("counter", factory)
        configurator.add_service("counter", factory)
        container = build(configurator)

        assert not configurator.is_factory("counter")
        assert container.get("counter") is container.get("counter")
        assert factory.calls == 1


class TestExtensions:
    """Extensions post-process resolved values in registration order."""

    def test_chain_applies_in_order(self) -> None:
        configurator = ContainerConfigurator()
        configurator.add_service("value", lambda container: "a")
        configurator.add_extension("value", lambda value, container: value + "b")
        configurator.add_extension("value", lambda value, container: value + "c")
        container = build(configurator)
        assert container.get("value") == "abc"

    def test_extender_receives_container(self) -> None:
        configurator = ContainerConfigurator()
        configurator.add_service("suffix", lambda container: "!")
        configurator.add_service("value", lambda container: "Hello")
        configurator.add_extension(
            "value", lambda value, container: value + container.get("suffix")
        )
        container = build(configurator)
        assert container.get("value") == "Hello!"

    def test_applied_once_for_singletons(self) -> None:
        calls: list[str] = []
        configurator = ContainerConfigurator()
        configurator.add_service("value", lambda container: 1)

        def extend(value: int, container: Container) -> int:
            calls.append("extend")
            return value + 1

        configurator.add_extension("value", extend)
        container = build(configurator)

        assert container.get("value") == 2
        assert container.get("value") == 2
        assert calls == ["extend"]

    def test_applied_on_every_factory_call(self) -> None:
        calls: list[str] = []
        configurator = ContainerConfigurator()
        configurator.add_factory("value", lambda container: 1)

        def extend(value: int, container: Container) -> int:
            calls.append("extend")
            return value + 1

        configurator.add_extension("value", extend)
        container = build(configurator)

        container.get("value")
        container.get("value")
        assert calls == ["extend", "extend"]

    def test_extension_without_service_is_not_resolvable(self) -> None:
        configurator = ContainerConfigurator()
        configurator.add_extension("ghost", lambda value, container: value)
        container = build(configurator)

        assert configurator.has_extension("ghost")
        assert not container.has("ghost")
        with pytest.raises(NotFoundError):
            container.get("ghost")


class TestDelegatedContainers:
    """Containers consulted after the local registry."""

    def test_fallback_to_delegated_container(self) -> None:
        external = ContainerConfigurator()
        external.add_service("remote", lambda container: "remote value")

        configurator = ContainerConfigurator()
        configurator.add_container(build(external))
        container = build(configurator)

        assert container.has("remote")
        assert container.get("remote") == "remote value"

    def test_local_registry_wins(self) -> None:
        external = ContainerConfigurator()
        external.add_service("shared", lambda container: "external")

        configurator = ContainerConfigurator(containers=[build(external)])
        configurator.add_service("shared", lambda container: "local")
        container = build(configurator)

        assert container.get("shared") == "local"

    def test_delegated_containers_in_registration_order(self) -> None:
        first = ContainerConfigurator()
        first.add_service("shared", lambda container: "first")
        second = ContainerConfigurator()
        second.add_service("shared", lambda container: "second")

        configurator = ContainerConfigurator()
        configurator.add_container(build(first))
        configurator.add_container(build(second))

        assert build(configurator).get("shared") == "first"

    def test_local_extensions_apply_and_value_is_not_cached(self) -> None:
        external = ContainerConfigurator()
        external.add_factory("remote", lambda container: [])

        configurator = ContainerConfigurator(containers=[build(external)])
        configurator.add_extension(
            "remote", lambda value, container: [*value, "extended"]
        )
        container = build(configurator)

        first = container.get("remote")
        second = container.get("remote")

        assert first == ["extended"]
        assert second == ["extended"]
        assert first is not second
        assert "remote" not in container.services

    def test_has_service_checks_delegated_containers(self) -> None:
        external = ContainerConfigurator()
        external.add_service("remote", lambda container: 1)
        configurator = ContainerConfigurator(containers=[build(external)])
        assert configurator.has_service("remote")
        assert not configurator.has_service("missing")


class TestResolutionEvents:
    """Events emitted while resolving."""

    def test_singleton_events(self) -> None:
        configurator = ContainerConfigurator()
        configurator.add_service("value", lambda container: 42)
        events = record_events(configurator.dispatcher)
        container = build(configurator)

        container.get("value")
        container.get("value")

        assert [type(event) for event in events] == [
            BeforeServiceResolved,
            AfterServiceResolved,
        ]
        before, after = events
        assert isinstance(before, BeforeServiceResolved)
        assert isinstance(after, AfterServiceResolved)
        assert before.service_id == "value"
        assert not before.is_factory
        assert not before.is_external_container
        assert before.container is container
        assert after.service == 42

    def test_factory_events_on_every_call(self) -> None:
        configurator = ContainerConfigurator()
        configurator.add_factory("value", lambda container: object())
        events = record_events(configurator.dispatcher)
        container = build(configurator)

        container.get("value")
        container.get("value")

        assert len(events) == 4
        assert all(
            event.is_factory
            for event in events
            if isinstance(event, BeforeServiceResolved | AfterServiceResolved)
        )

    def test_external_flag(self) -> None:
        external = ContainerConfigurator()
        external.add_service("remote", lambda container: "remote value")
        configurator = ContainerConfigurator(containers=[build(external)])
        events = record_events(configurator.dispatcher)

        build(configurator).get("remote")

        assert [event.is_external_container for event in events] == [True, True]

    def test_after_event_carries_extended_value(self) -> None:
        configurator = ContainerConfigurator()
        configurator.add_service("value", lambda container: 1)
        configurator.add_extension("value", lambda value, container: value * 10)
        events = record_events(configurator.dispatcher)

        build(configurator).get("value")

        after = events[-1]
        assert isinstance(after, AfterServiceResolved)
        assert after.service == 10


class TestNotResolvedRecovery:
    """Listeners may recover a failed lookup."""

    def test_listener_recovers_and_value_is_cached(self) -> None:
        configurator = ContainerConfigurator()
        recoveries: list[str] = []

        def recover(event: ServiceEvent) -> None:
            assert isinstance(event, ServiceNotResolved)
            assert isinstance(event.error, NotFoundError)
            recoveries.append(event.service_id)
            event.recover_with_service(SimpleNamespace(id=event.service_id))

        listeners = ServiceListeners()
        listeners.add(ServiceNotResolved, recover)
        configurator.dispatcher.attach_provider(listeners)
        container = build(configurator)

        first = container.get("fallback")
        second = container.get("fallback")

        assert first is second
        assert first.id == "fallback"
        assert recoveries == ["fallback"]
        assert container.has("fallback")

    def test_none_is_not_a_recovery(self) -> None:
        configurator = ContainerConfigurator()
        listeners = ServiceListeners()
        listeners.add(
            ServiceNotResolved,
            lambda event: event.recover_with_service(None),  # type: ignore[attr-defined]
        )
        configurator.dispatcher.attach_provider(listeners)

        with pytest.raises(NotFoundError):
            build(configurator).get("missing")


class TestConfigurator:
    """Staging area behaviour."""

    def test_container_is_built_once(self) -> None:
        configurator = ContainerConfigurator()
        assert configurator.create_read_only_container() is (
            configurator.create_read_only_container()
        )

    def test_late_additions_are_visible(self) -> None:
        configurator = ContainerConfigurator()
        container = build(configurator)
        configurator.add_service("late", lambda container: "late")
        assert container.get("late") == "late"

    @pytest.mark.parametrize("service_id", ["", None])
    def test_rejects_empty_ids(self, service_id: str) -> None:
        configurator = ContainerConfigurator()
        with pytest.raises(ValueError, match="non-empty string"):
            configurator.add_service(service_id, lambda container: None)
