import heapq
import itertools

import pytest

from apps.accounts.models import User
from apps.notifications.queue import reset_notification_producer
from apps.tenants.models import Company


class FakeScheduler:
    """Agendador com relógio manual para testar sincronização e cronômetro."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []
        self._queue = []
        self._seq = itertools.count()
        self._cancelled = set()

    def call_later(self, delay, callback):
        handle = next(self._seq)
        heapq.heappush(self._queue, (self.now + delay, handle, callback))
        return handle

    def cancel(self, handle):
        self._cancelled.add(handle)

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.advance(seconds)

    @property
    def pending(self):
        return [entry for entry in self._queue if entry[1] not in self._cancelled]

    @property
    def next_delay(self):
        pending = sorted(self.pending)
        return pending[0][0] - self.now if pending else None

    def advance(self, seconds):
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            when, handle, callback = heapq.heappop(self._queue)
            if handle in self._cancelled:
                continue
            self.now = when
            callback()
        self.now = target


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture(autouse=True)
def _reset_queue_producer():
    reset_notification_producer()
    yield
    reset_notification_producer()


@pytest.fixture
def company(db):
    return Company.objects.create(
        name="Igreja Central",
        slug="igreja-central",
        contact_email="contato@igrejacentral.org.br",
    )


@pytest.fixture
def company2(db):
    return Company.objects.create(
        name="Igreja Esperança",
        slug="igreja-esperanca",
        contact_email="contato@esperanca.org.br",
    )


@pytest.fixture
def user(db, company):
    return User.objects.create_user(
        email="joao.silva@example.com",
        password="password123",
        company=company,
        first_name="João",
        last_name="Silva",
        phone="11999998888",
        tithe_day=10,
    )
