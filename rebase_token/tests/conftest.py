import pytest

from rebase_token.config import LedgerSettings, build_services


OWNER = "owner"

RATE = 5 * 10**10


class ManualClock:
    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def services(clock):
    return build_services(LedgerSettings(owner=OWNER, initial_rate=RATE), clock)


@pytest.fixture
def ledger(services):
    return services[0]


@pytest.fixture
def vault(services):
    return services[1]


@pytest.fixture
def pool(services):
    return services[2]
