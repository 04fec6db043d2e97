from pymongo.errors import NetworkTimeout, OperationFailure, ServerSelectionTimeoutError

from backend.errors import is_store_timeout
from backend.guard import describe_store, guard
from database import ConnectionSupervisor


def _failing(uri):
    def connector(uri, **options):
        raise ServerSelectionTimeoutError("timed out")

    return ConnectionSupervisor(uri, "school_test", connector=connector, sleep=lambda s: None)


def test_guard_passes_when_connected(supervisor):
    outcome = guard(supervisor)
    assert outcome.ok is True
    assert outcome.diagnostic is None


def test_guard_reports_unconfigured_store():
    outcome = guard(_failing(""))
    assert outcome.ok is False
    assert outcome.diagnostic == {
        "uriConfigured": False,
        "uriType": "Not Set",
        "connectionState": "disconnected",
    }


def test_guard_reports_unreachable_cloud_store():
    outcome = guard(_failing("mongodb+srv://user:pw@cluster0.abcd.mongodb.net/school"))
    assert outcome.ok is False
    assert outcome.diagnostic["uriConfigured"] is True
    assert outcome.diagnostic["uriType"] == "MongoDB Atlas (Cloud)"


def test_describe_store_reflects_state(supervisor):
    assert describe_store(supervisor)["connectionState"] == "disconnected"
    supervisor.connect(1)
    assert describe_store(supervisor) == {
        "uriConfigured": True,
        "uriType": "Local",
        "connectionState": "connected",
    }


def test_store_timeout_detection():
    assert is_store_timeout(ServerSelectionTimeoutError("no servers"))
    assert is_store_timeout(NetworkTimeout("socket"))
    assert is_store_timeout(OperationFailure("operation exceeded time limit: timeout"))
    assert not is_store_timeout(OperationFailure("bad query"))
