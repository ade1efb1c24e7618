"""Tests for pool key files."""

import pytest

from ethmetrics.pools import (
    PoolError,
    read_custom_validators_file,
    read_ethsta_validators_file,
    resolve_keys,
)

from .factories import pubkey


class TestTxtFile:
    """One key per line."""

    def test_formats(self, tmp_path):
        path = tmp_path / "keys.txt"
        path.write_text(
            "f_public_key\n"
            f"0x{pubkey(0).hex()}\n"
            f"{pubkey(1).hex()}\n"
            f"\"0x{pubkey(2).hex()}\"\n"
            f"\\x{pubkey(3).hex()}\n"
            "\n"
        )

        assert read_custom_validators_file(str(path)) == [pubkey(i) for i in range(4)]

    @pytest.mark.parametrize("header", ["f_validator_pubkey", "f0_", "f_public_key"])
    def test_headers_skipped(self, tmp_path, header):
        path = tmp_path / "keys.txt"
        path.write_text(f"{header}\n0x{pubkey(0).hex()}\n")

        assert read_custom_validators_file(str(path)) == [pubkey(0)]

    def test_wrong_length(self, tmp_path):
        path = tmp_path / "keys.txt"
        path.write_text("0xabcdef\n")

        with pytest.raises(PoolError, match="length of key is incorrect"):
            read_custom_validators_file(str(path))

    def test_not_hex(self, tmp_path):
        path = tmp_path / "keys.txt"
        path.write_text("0x" + "zz" * 48 + "\n")

        with pytest.raises(PoolError, match="could not decode key"):
            read_custom_validators_file(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(PoolError):
            read_custom_validators_file(str(tmp_path / "missing.txt"))


class TestEthstaFile:
    """ethsta.com csv exports."""

    def test_read(self, tmp_path):
        path = tmp_path / "pool.csv"
        path.write_text(
            "address,version,entity\n"
            f"{pubkey(0).hex()},1,pool\n"
            f"{pubkey(1).hex()},1,pool\n"
        )

        assert read_ethsta_validators_file(str(path)) == [pubkey(0), pubkey(1)]

    def test_wrong_field_count(self, tmp_path):
        path = tmp_path / "pool.csv"
        path.write_text(f"address,version,entity\n{pubkey(0).hex()},1\n")

        with pytest.raises(PoolError, match="ethsta.com"):
            read_ethsta_validators_file(str(path))

    def test_prefixed_key_rejected(self, tmp_path):
        path = tmp_path / "pool.csv"
        path.write_text(f"0x{pubkey(0).hex()},1,pool\n")

        with pytest.raises(PoolError, match="length of key is incorrect"):
            read_ethsta_validators_file(str(path))


class TestResolveKeys:
    def test_name_from_file(self, pool_file):
        path = pool_file("my_pool", [0, 1, 2])

        pool = resolve_keys(path)

        assert pool.identifier == path
        assert pool.name == "my_pool"
        assert pool.pubkeys == (pubkey(0), pubkey(1), pubkey(2))

    def test_csv(self, tmp_path):
        path = tmp_path / "staking.csv"
        path.write_text(f"{pubkey(4).hex()},1,staking\n")

        pool = resolve_keys(str(path))

        assert pool.name == "staking"
        assert pool.pubkeys == (pubkey(4),)

    def test_unsupported_identifier(self):
        with pytest.raises(PoolError, match="Unsupported pool identifier"):
            resolve_keys("some-pool")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_text("f_validator_pubkey\n")

        with pytest.raises(PoolError, match="No validator keys"):
            resolve_keys(str(path))
