import pytest

from sessionvault.core.clock import ManualClock
from sessionvault.crypto.envelope import RecoveryKeyPair
from sessionvault.crypto.signer import HostSigner
from sessionvault.discovery.client import LocalDiscoveryClient
from sessionvault.discovery.service import DiscoveryService
from sessionvault.ledger.ledger import InMemoryProofLedger
from sessionvault.publish.publisher import CheckpointPublisher
from sessionvault.recovery.engine import RecoveryEngine
from sessionvault.storage.file_store import FileContentStore


@pytest.fixture(scope="session")
def signer():
    return HostSigner.generate()


@pytest.fixture(scope="session")
def recovery_keys():
    return RecoveryKeyPair.generate()


@pytest.fixture
def store(tmp_path):
    return FileContentStore(str(tmp_path / "store"))


@pytest.fixture
def clock():
    return ManualClock(current=1_700_000_000_000)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def publisher(store, signer, clock, sleeps):
    return CheckpointPublisher(store, signer, clock=clock, sleep=sleeps.append)


@pytest.fixture
def ledger():
    return InMemoryProofLedger()


@pytest.fixture
def engine(publisher, store, ledger):
    discovery = LocalDiscoveryClient(DiscoveryService(publisher.index_store))
    return RecoveryEngine(discovery, store, ledger, max_workers=4)
