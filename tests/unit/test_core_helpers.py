"""Tests for tokens, clocks and digests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fragments.core.clock import FrozenClock, RealClock
from fragments.core.hasher import compact_json, sha1_files_hex, sha256_hex
from fragments.core.token import TOKEN_LENGTH, generate_token, token_timestamp_ms


class TestToken:
    def test_length_and_alphabet(self):
        token = generate_token()
        assert len(token) == TOKEN_LENGTH == 26
        assert set(token) <= set("0123456789ABCDEFGHJKMNPQRSTVWXYZ")

    def test_sorts_by_time(self):
        early = generate_token(timestamp_ms=1_500_000_000_000)
        late = generate_token(timestamp_ms=1_500_000_000_001)
        assert early < late

    def test_timestamp_round_trip(self):
        token = generate_token(timestamp_ms=1_514_764_800_000)
        assert token_timestamp_ms(token) == 1_514_764_800_000

    def test_unique(self):
        tokens = {generate_token(timestamp_ms=1) for _ in range(1000)}
        assert len(tokens) == 1000


class TestClock:
    def test_frozen_clock_default(self):
        assert FrozenClock().now() == datetime(2018, 1, 1, tzinfo=timezone.utc)

    def test_frozen_clock_advance(self):
        clock = FrozenClock()
        start = clock.now()
        clock.advance(timedelta(seconds=5))
        assert clock.now() - start == timedelta(seconds=5)

    def test_real_clock_is_utc(self):
        assert RealClock().now().tzinfo == timezone.utc


class TestHasher:
    def test_compact_json_keeps_order(self):
        assert compact_json('{\n  "b": 1,\n  "a": [1, 2]\n}') == '{"b":1,"a":[1,2]}'

    def test_sha256(self):
        assert sha256_hex(b"") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_sha1_files_concatenates(self, tmp_path):
        a = tmp_path / "a"
        b = tmp_path / "b"
        a.write_bytes(b"hello ")
        b.write_bytes(b"world")
        whole = tmp_path / "whole"
        whole.write_bytes(b"hello world")
        assert sha1_files_hex([a, b]) == sha1_files_hex([whole])
        assert sha1_files_hex([whole]) == "2aae6c35c94fcfb415dbe95f408b9ce91ee846ed"
