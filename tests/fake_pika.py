"""In-memory stand-in for a RabbitMQ broker and pika's blocking connection.

Routing covers the default exchange (queue name as routing key) and topic
exchanges with ``*``/``#`` wildcards. Deliveries are queued on the consuming
connection and dispatched from ``process_data_events`` on its I/O thread.
"""

import collections
import itertools
import queue
import threading
import time
from types import SimpleNamespace

import pika


def topic_matches(pattern, routing_key):
    return _match(pattern.split("."), routing_key.split("."))


def _match(pattern, words):
    if not pattern:
        return not words
    head, rest = pattern[0], pattern[1:]
    if head == "#":
        return any(_match(rest, words[i:]) for i in range(len(words) + 1))
    if not words:
        return False
    if head == "*" or head == words[0]:
        return _match(rest, words[1:])
    return False


class FakeQueue:
    def __init__(self, name, exclusive, auto_delete):
        self.name = name
        self.exclusive = exclusive
        self.auto_delete = auto_delete
        self.messages = collections.deque()
        self.consumers = []
        self._next = 0

    def next_consumer(self):
        consumer = self.consumers[self._next % len(self.consumers)]
        self._next += 1
        return consumer


class FakeBroker:
    def __init__(self):
        self.lock = threading.RLock()
        self.exchanges = {"": "direct", "amq.topic": "topic", "amq.rabbitmq.event": "topic"}
        self.queues = {}
        self.bindings = []
        self.acks = []
        self.published = []
        self._ids = itertools.count(1)

    def new_id(self):
        return next(self._ids)

    def declare_queue(self, name, exclusive, auto_delete):
        with self.lock:
            if not name:
                name = f"amq.gen-{self.new_id()}"
            created = name not in self.queues
            if created:
                self.queues[name] = FakeQueue(name, exclusive, auto_delete)
        if created:
            self.route(
                "amq.rabbitmq.event",
                "queue.created",
                b"",
                pika.BasicProperties(headers={"name": name}),
            )
        return name

    def delete_queue(self, name):
        with self.lock:
            self.queues.pop(name, None)
            self.bindings = [b for b in self.bindings if b[2] != name]
        self.route(
            "amq.rabbitmq.event",
            "queue.deleted",
            b"",
            pika.BasicProperties(headers={"name": name}),
        )

    def route(self, exchange, routing_key, body, properties):
        with self.lock:
            self.published.append((exchange, routing_key, body, properties))
            if exchange == "":
                targets = [routing_key] if routing_key in self.queues else []
            else:
                targets = []
                for bound_exchange, pattern, queue_name in self.bindings:
                    if bound_exchange == exchange and topic_matches(pattern, routing_key):
                        if queue_name not in targets:
                            targets.append(queue_name)
            for name in targets:
                fake_queue = self.queues[name]
                fake_queue.messages.append((exchange, routing_key, body, properties))
                self.dispatch(fake_queue)

    def dispatch(self, fake_queue):
        with self.lock:
            while fake_queue.messages and fake_queue.consumers:
                consumer = fake_queue.next_consumer()
                exchange, routing_key, body, properties = fake_queue.messages.popleft()
                method = SimpleNamespace(
                    delivery_tag=self.new_id(),
                    redelivered=False,
                    exchange=exchange,
                    routing_key=routing_key,
                    consumer_tag=consumer.tag,
                )
                consumer.channel.connection.deliveries.put((consumer, method, properties, body))

    def consumer_count(self):
        with self.lock:
            return sum(len(q.consumers) for q in self.queues.values())


class FakeConsumer:
    def __init__(self, tag, queue_name, channel, callback, auto_ack):
        self.tag = tag
        self.queue_name = queue_name
        self.channel = channel
        self.callback = callback
        self.auto_ack = auto_ack
        self.active = True


class FakeChannel:
    def __init__(self, connection):
        self.connection = connection
        self.broker = connection.broker
        self.is_closed = False
        self.prefetch_count = None
        self.consumers = {}

    def exchange_declare(self, exchange, exchange_type="direct", passive=False, **kwargs):
        with self.broker.lock:
            if exchange not in self.broker.exchanges:
                if passive:
                    raise pika.exceptions.ChannelClosedByBroker(404, f"NOT_FOUND - no exchange '{exchange}'")
                self.broker.exchanges[exchange] = exchange_type

    def queue_declare(self, queue="", passive=False, durable=False, exclusive=False, auto_delete=False, arguments=None):
        name = self.broker.declare_queue(queue, exclusive, auto_delete)
        return SimpleNamespace(method=SimpleNamespace(queue=name))

    def queue_bind(self, queue, exchange, routing_key=None, arguments=None):
        with self.broker.lock:
            if exchange not in self.broker.exchanges:
                raise pika.exceptions.ChannelClosedByBroker(404, f"NOT_FOUND - no exchange '{exchange}'")
            self.broker.bindings.append((exchange, routing_key or queue, queue))

    def basic_qos(self, prefetch_size=0, prefetch_count=0, global_qos=False):
        self.prefetch_count = prefetch_count

    def basic_publish(self, exchange, routing_key, body, properties=None, mandatory=False):
        self.broker.route(exchange, routing_key, bytes(body), properties or pika.BasicProperties())

    def basic_consume(self, queue, on_message_callback, auto_ack=False, exclusive=False, consumer_tag=None, arguments=None):
        with self.broker.lock:
            fake_queue = self.broker.queues.get(queue)
            if fake_queue is None:
                raise pika.exceptions.ChannelClosedByBroker(404, f"NOT_FOUND - no queue '{queue}'")
            tag = consumer_tag or f"ctag-{self.broker.new_id()}"
            consumer = FakeConsumer(tag, queue, self, on_message_callback, auto_ack)
            self.consumers[tag] = consumer
            fake_queue.consumers.append(consumer)
            self.broker.dispatch(fake_queue)
        return tag

    def basic_cancel(self, consumer_tag):
        delete = None
        with self.broker.lock:
            consumer = self.consumers.pop(consumer_tag, None)
            if consumer is None:
                return []
            consumer.active = False
            fake_queue = self.broker.queues.get(consumer.queue_name)
            if fake_queue is not None:
                fake_queue.consumers.remove(consumer)
                if fake_queue.auto_delete and not fake_queue.consumers:
                    delete = fake_queue.name
        if delete is not None:
            self.broker.delete_queue(delete)
        return []

    def basic_ack(self, delivery_tag=0, multiple=False):
        self.broker.acks.append(delivery_tag)

    def close(self):
        self.is_closed = True


class FakeBlockingConnection:
    def __init__(self, broker, connect_delay=0.0):
        if connect_delay:
            time.sleep(connect_delay)
        self.broker = broker
        self.is_closed = False
        self.callbacks = queue.Queue()
        self.deliveries = queue.Queue()
        self.timers = {}
        self.channels = []
        self._timer_ids = itertools.count(1)

    def channel(self):
        channel = FakeChannel(self)
        self.channels.append(channel)
        return channel

    def add_callback_threadsafe(self, callback):
        self.callbacks.put(callback)

    def call_later(self, delay, callback):
        handle = next(self._timer_ids)
        self.timers[handle] = (time.monotonic() + delay, callback)
        return handle

    def remove_timeout(self, handle):
        self.timers.pop(handle, None)

    def process_data_events(self, time_limit=0):
        busy = False
        while True:
            try:
                callback = self.callbacks.get_nowait()
            except queue.Empty:
                break
            busy = True
            callback()

        now = time.monotonic()
        for handle, (deadline, callback) in sorted(self.timers.items(), key=lambda item: item[1][0]):
            if deadline <= now and self.timers.pop(handle, None) is not None:
                busy = True
                callback()

        while True:
            try:
                consumer, method, properties, body = self.deliveries.get_nowait()
            except queue.Empty:
                break
            if consumer.active:
                busy = True
                consumer.callback(consumer.channel, method, properties, body)

        if not busy:
            time.sleep(min(time_limit or 0, 0.002))

    def close(self):
        self.is_closed = True
        for channel in self.channels:
            for tag in list(channel.consumers):
                channel.basic_cancel(tag)
