"""Shared fixtures for eth-metrics tests."""

from typing import Optional

import pytest

from ethmetrics.spec import VersionedBeaconState
from ethmetrics.store import Database

from .factories import pubkey, state_json, validator_json


@pytest.fixture
def make_state():
    """Factory for a state at the last slot of an epoch.

    Validators default to active, unslashed, 32 ETH effective balance and
    full participation. balances defaults to the effective balance.
    """

    def _make_state(
        epoch: int,
        slots_per_epoch: int = 32,
        version: str = "deneb",
        validators: Optional[list[dict]] = None,
        balances: Optional[list[int]] = None,
        participation: Optional[list[int]] = None,
        sync_committee: Optional[list[bytes]] = None,
        timestamp: int = 1_700_000_000,
        n_validators: int = 8,
    ) -> VersionedBeaconState:
        if validators is None:
            validators = [validator_json(i) for i in range(n_validators)]
        if balances is None:
            balances = [int(v["effective_balance"]) for v in validators]
        slot = (epoch + 1) * slots_per_epoch - 1
        return VersionedBeaconState.from_json(
            version,
            state_json(version, slot, validators, balances, participation, sync_committee, timestamp),
        )

    return _make_state


@pytest.fixture
def database(tmp_path):
    """Fresh database with all tables created."""
    db = Database(str(tmp_path / "ethmetrics.db"))
    db.create_tables()
    yield db
    db.close()


@pytest.fixture
def pool_file(tmp_path):
    """Factory writing a .txt pool file with the keys of the given indexes."""

    def _pool_file(name: str, indexes: list[int]) -> str:
        path = tmp_path / f"{name}.txt"
        path.write_text("f_validator_pubkey\n" + "".join(f"0x{pubkey(i).hex()}\n" for i in indexes))
        return str(path)

    return _pool_file
