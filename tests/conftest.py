import copy
import os
import sys

import pytest

# Ensure repository root is on sys.path before importing project modules.
repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if repo_root not in sys.path:
    sys.path.insert(0, repo_root)

from pallet_interactor.metadata_source import default_metadata_cache  # noqa: E402
from pallet_interactor.metrics import default_metrics  # noqa: E402
from pallet_interactor.sessions import default_store  # noqa: E402

SAMPLE_DOCUMENT = {
    "query": {
        "balances": {
            "account": {"type": {"map": {"key": "AccountId", "value": "AccountData"}}},
            "totalIssuance": {"type": {"plain": "Balance"}},
        },
        "staking": {
            "erasStakers": {
                "type": {"doubleMap": {"key1": "EraIndex", "key2": "AccountId", "value": "Exposure"}}
            },
        },
        "system": {
            "events": {"type": {"isPlain": True, "asPlain": "Vec<EventRecord>"}},
            "account": {"type": {"isMap": True, "asMap": {"key": "AccountId", "value": "AccountInfo"}}},
        },
        "empty": {},
    },
    "tx": {
        "balances": {
            "transfer": {
                "args": [
                    {"name": "dest", "type": "AccountId"},
                    {"name": "value", "type": "Option<Balance>"},
                ]
            },
            "setBalance": {
                "args": [
                    {"name": "who", "type": "AccountId"},
                    {"name": "new_free", "type": "Compact<Balance>"},
                    {"name": "new_reserved", "type": "Compact<Balance>"},
                ]
            },
        },
        "system": {"remark": {"args": []}, "noop": {}},
        "timestamp": {"set": {"args": [{"name": "now", "type": "Compact<Moment>"}]}},
        "sudo": {},
    },
    "rpc": {
        "chain": {
            "getBlock": {"params": [{"name": "hash", "type": "BlockHash", "isOptional": True}]},
            "getHeader": {"params": [{"name": "hash", "type": "BlockHash"}]},
        },
        "system": {"health": {"params": []}},
        "author": {"submitExtrinsic": {}},
    },
    "jsonrpc": {
        "author": {"submitExtrinsic": {"params": [{"name": "extrinsic", "type": "Extrinsic"}]}},
    },
    "consts": {
        "balances": {"existentialDeposit": {"type": "Balance", "value": "500"}},
        "system": {"blockHashCount": {"type": "BlockNumber", "value": 2400}},
        "nothing": {},
    },
}

ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
BOB = "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty"


class StubGateway:
    """In-memory stand-in for the gateway client."""

    def __init__(self, document=None, accounts=None, *, status="InBlock", error=None):
        self.document = copy.deepcopy(SAMPLE_DOCUMENT) if document is None else document
        self.accounts = accounts if accounts is not None else [
            {"name": "alice", "address": ALICE},
            {"name": "bob", "address": BOB},
        ]
        self.status = status
        self.error = error
        self.metadata_calls = 0
        self.submissions = []

    async def fetch_metadata(self):
        self.metadata_calls += 1
        return self.document

    async def fetch_accounts(self):
        return self.accounts

    async def submit(self, descriptor, *, mode, signer=None):
        self.submissions.append((descriptor, mode, signer))
        if self.error is not None:
            raise self.error
        return self.status

    async def aclose(self):
        return None


@pytest.fixture
def sample_document():
    return copy.deepcopy(SAMPLE_DOCUMENT)


@pytest.fixture
def gateway(monkeypatch):
    """Route the shared gateway client (metadata cache, dispatcher, tools) to a stub."""
    from pallet_interactor.gateway_api import default_client

    stub = StubGateway()
    for name in ("fetch_metadata", "fetch_accounts", "submit"):
        monkeypatch.setattr(default_client, name, getattr(stub, name))
    return stub


@pytest.fixture(autouse=True)
def reset_state():
    default_metrics.reset()
    default_store.clear()
    default_metadata_cache.invalidate()
    yield
    default_metrics.reset()
    default_store.clear()
    default_metadata_cache.invalidate()
