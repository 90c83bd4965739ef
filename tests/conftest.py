"""Fixtures wiring an Io facade to the in-memory broker."""

from unittest.mock import Mock

import pytest

from cisl_io import Io, IoDependencies, RabbitMQConnection

from fake_pika import FakeBlockingConnection, FakeBroker


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def fatal():
    return Mock(name="on_fatal")


@pytest.fixture
def make_io(broker, fatal):
    """Build facades sharing one broker; each gets its own connection thread."""
    created = []

    def _make(connect_delay=0.0, **rabbit):
        def make_connection(options):
            return RabbitMQConnection(
                options.connection_parameters(),
                connection_factory=lambda _params: FakeBlockingConnection(broker, connect_delay),
                on_fatal=fatal,
            )

        io = Io(
            {"rabbit": rabbit or True},
            dependencies=IoDependencies(
                make_connection=make_connection,
                make_management_client=lambda _options: Mock(name="management"),
            ),
        )
        created.append(io)
        return io

    yield _make
    for io in created:
        io.close()


@pytest.fixture
def io(make_io):
    return make_io()
