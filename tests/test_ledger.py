"""
Tests for the Star Registry Ledger

Demonstrates the complete ownership flow:
1. Initialize the chain (genesis)
2. Issue a challenge
3. Sign it with a wallet
4. Submit a star
5. Verify chain integrity
"""

import dataclasses
import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from starregistry.core import (
    Block,
    BlockNotFoundError,
    CanonicalSerializationError,
    ExpiredChallengeError,
    Hasher,
    InvalidSignatureError,
    Ledger,
    MalformedChallengeError,
    OwnershipService,
    WalletSigner,
)
from starregistry.schemas import BlockData, GENESIS_DATA, GenesisData, Star


def _claim(address: str, story: str = "test") -> Block:
    """Draft block for a star claim, bypassing the signature gate."""
    return Block.create(
        BlockData(
            message=f"{address}:1000:starRegistry",
            wallet_address=address,
            star=Star(dec="5", ra="10", story=story),
        )
    )


class TestHasher:
    """Test canonical hashing of block content."""

    def test_deterministic_hash(self):
        """Same input always produces same hash."""
        data = {"height": 1, "body": "abcd"}
        assert Hasher.hash_data(data) == Hasher.hash_data(data)

    def test_sorted_keys(self):
        """Key order doesn't affect hash."""
        assert Hasher.hash_data({"b": 2, "a": 1}) == Hasher.hash_data({"a": 1, "b": 2})

    def test_recursively_sorted_keys(self):
        data1 = {"outer": {"z": 1, "a": 2}, "inner": {"b": 3, "a": 4}}
        data2 = {"inner": {"a": 4, "b": 3}, "outer": {"a": 2, "z": 1}}
        assert Hasher.hash_data(data1) == Hasher.hash_data(data2)

    def test_null_handling(self):
        """Nulls are omitted, so a genesis block has no previous_hash key at all."""
        assert Hasher.canonicalize({"a": 1, "previous_hash": None}) == Hasher.canonicalize({"a": 1})

    def test_empty_string_preserved(self):
        assert Hasher.canonicalize({"a": ""}) != Hasher.canonicalize({"a": None})

    def test_no_whitespace_in_output(self):
        canonical = Hasher.canonicalize({"a": 1, "b": {"c": "two words"}})
        assert canonical == '{"a":1,"b":{"c":"two words"}}'

    def test_floats_banned(self):
        with pytest.raises(CanonicalSerializationError, match="Floats are banned"):
            Hasher.canonicalize({"dec": 5.5})

    def test_sets_not_allowed(self):
        with pytest.raises(CanonicalSerializationError, match="set"):
            Hasher.canonicalize({"items": {1, 2, 3}})

    def test_bytes_not_allowed(self):
        with pytest.raises(CanonicalSerializationError, match="bytes"):
            Hasher.canonicalize({"body": b"\x00"})

    def test_non_string_keys_rejected(self):
        with pytest.raises(CanonicalSerializationError, match="must be string"):
            Hasher.canonicalize({1: "a"})

    def test_top_level_must_be_dict(self):
        with pytest.raises(CanonicalSerializationError, match="requires a dict"):
            Hasher.canonicalize([1, 2, 3])

    def test_pydantic_models_canonicalized(self):
        star = Star(dec="5", ra="10", story="test")
        assert Hasher.canonicalize(star) == '{"dec":"5","ra":"10","story":"test"}'

    def test_digest_is_sha256(self):
        """Known SHA-256 test vectors."""
        assert Hasher.digest(b"") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )
        assert Hasher.digest(b"abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )


class TestWalletSigner:
    """Test Ed25519 wallet signatures."""

    def test_wallet_generation(self, wallet):
        assert WalletSigner.is_valid_address(wallet["address"])
        assert WalletSigner.address_from_private_key(wallet["private"]) == wallet["address"]

    def test_sign_and_verify(self, wallet):
        signature = WalletSigner.sign("test message", wallet["private"])
        assert WalletSigner.verify("test message", wallet["address"], signature)

    def test_wrong_wallet_fails(self, wallet, other_wallet):
        """A signature only proves control of the wallet that made it."""
        signature = WalletSigner.sign("message", other_wallet["private"])
        assert not WalletSigner.verify("message", wallet["address"], signature)

    def test_tampered_message_fails(self, wallet):
        signature = WalletSigner.sign("original message", wallet["private"])
        assert not WalletSigner.verify("tampered message", wallet["address"], signature)

    def test_malformed_signature_is_invalid(self, wallet):
        assert not WalletSigner.verify("message", wallet["address"], "not-base64!!")
        assert not WalletSigner.verify("message", wallet["address"], "c2hvcnQ=")

    def test_malformed_address_is_invalid(self, wallet):
        signature = WalletSigner.sign("message", wallet["private"])
        assert not WalletSigner.verify("message", "addrX", signature)
        assert not WalletSigner.verify("message", "", signature)

    def test_address_checksum_detects_typos(self, wallet):
        address = wallet["address"]
        replacement = "2" if address[-1] != "2" else "3"
        assert not WalletSigner.is_valid_address(address[:-1] + replacement)

    def test_address_requires_32_byte_key(self):
        with pytest.raises(ValueError, match="32 bytes"):
            WalletSigner.address_from_public_key(b"\x01" * 31)


class TestBlock:
    """Test the block record and its self-validation."""

    def test_create_leaves_linkage_unset(self):
        block = _claim("addrA")
        assert block.height is None
        assert block.time is None
        assert block.previous_hash is None
        assert block.hash is None
        assert not block.is_sealed

    def test_body_is_hex_encoded_canonical_json(self):
        block = Block.create(GenesisData())
        decoded = json.loads(bytes.fromhex(block.body).decode("utf-8"))
        assert decoded == {"data": GENESIS_DATA, "kind": "genesis"}

    def test_decoded_body_genesis(self):
        payload = Block.create(GenesisData()).decoded_body()
        assert isinstance(payload, GenesisData)
        assert payload.data == "Genesis Block"

    def test_decoded_body_star_claim(self):
        payload = _claim("addrA", story="my star").decoded_body()
        assert isinstance(payload, BlockData)
        assert payload.wallet_address == "addrA"
        assert payload.star == Star(dec="5", ra="10", story="my star")

    def test_decoded_body_rejects_unknown_kind(self):
        body = json.dumps({"kind": "mystery"}).encode("utf-8").hex()
        with pytest.raises(ValueError):
            Block(body=body).decoded_body()

    def test_draft_does_not_validate(self):
        assert not _claim("addrA").validate()

    def test_blocks_are_frozen(self, ledger):
        genesis = ledger.get_block_by_height(0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            genesis.body = "00"

    def test_appended_block_validates(self, ledger):
        block = ledger.append(_claim("addrA"))
        assert block.validate()

    @pytest.mark.parametrize(
        "field,value",
        [
            ("height", 7),
            ("time", 1),
            ("previous_hash", "0" * 64),
            ("body", "7b7d"),
        ],
    )
    def test_tampered_field_fails_validation(self, ledger, field, value):
        """Changing any hashed field invalidates the stored hash."""
        block = ledger.append(_claim("addrA"))
        tampered = dataclasses.replace(block, **{field: value})
        assert not tampered.validate()

    def test_forged_hash_fails_validation(self, ledger):
        block = ledger.append(_claim("addrA"))
        assert not dataclasses.replace(block, hash="f" * 64).validate()


class TestLedger:
    """Test the chain itself."""

    def test_genesis_invariant(self, ledger):
        """A fresh ledger holds exactly one block with no predecessor."""
        assert ledger.height == 0
        assert len(ledger) == 1

        genesis = ledger.get_block_by_height(0)
        assert genesis.is_genesis
        assert genesis.previous_hash is None
        assert genesis.time == 1000
        assert isinstance(genesis.decoded_body(), GenesisData)

    def test_initialize_is_idempotent(self, ledger):
        genesis = ledger.get_block_by_height(0)
        assert ledger.initialize() is ledger
        assert ledger.height == 0
        assert ledger.get_block_by_height(0) == genesis

    def test_append_heights_are_monotonic(self, ledger):
        """N appends give heights 1..N after genesis, no gaps or repeats."""
        blocks = [ledger.append(_claim("addrA", story=str(i))) for i in range(5)]
        assert [b.height for b in blocks] == [1, 2, 3, 4, 5]
        assert [b.height for b in ledger.blocks] == [0, 1, 2, 3, 4, 5]
        assert ledger.height == 5

    def test_linkage(self, ledger):
        for i in range(4):
            ledger.append(_claim("addrA", story=str(i)))

        blocks = ledger.blocks
        for previous, block in zip(blocks, blocks[1:]):
            assert block.previous_hash == previous.hash

    def test_append_uses_clock(self, ledger, clock):
        clock.advance(42)
        assert ledger.append(_claim("addrA")).time == 1042

    def test_append_does_not_modify_draft(self, ledger):
        draft = _claim("addrA")
        sealed = ledger.append(draft)
        assert draft.hash is None
        assert sealed.body == draft.body
        assert sealed.hash is not None

    def test_get_block_by_hash(self, ledger):
        block = ledger.append(_claim("addrA"))
        assert ledger.get_block_by_hash(block.hash) == block

    def test_get_block_by_hash_not_found(self, ledger):
        with pytest.raises(BlockNotFoundError, match="No block with hash"):
            ledger.get_block_by_hash("0" * 64)

    def test_get_block_by_height_not_found(self, ledger):
        """Height lookups use the same not-found convention as hash lookups."""
        with pytest.raises(BlockNotFoundError, match="No block at height 5"):
            ledger.get_block_by_height(5)
        with pytest.raises(BlockNotFoundError):
            ledger.get_block_by_height(-1)

    def test_stars_by_wallet_address(self, ledger):
        """A has 2 stars, B has 1; results are A's only, in chain order."""
        ledger.append(_claim("addrA", story="first"))
        ledger.append(_claim("addrB", story="other"))
        ledger.append(_claim("addrA", story="second"))

        records = ledger.get_stars_by_wallet_address("addrA")
        assert len(records) == 2
        assert all(r.owner == "addrA" for r in records)
        assert [r.star.story for r in records] == ["first", "second"]

    def test_stars_by_wallet_address_excludes_genesis(self, ledger):
        assert ledger.get_stars_by_wallet_address("Genesis Block") == []
        assert ledger.get_stars_by_wallet_address("nobody") == []

    def test_validate_chain_healthy(self, ledger):
        for i in range(3):
            ledger.append(_claim("addrA", story=str(i)))
        assert ledger.validate_chain() == []


class TestChainIntegrity:
    """Tampering is reported, never repaired."""

    @pytest.fixture
    def chain(self, ledger):
        for i in range(4):
            ledger.append(_claim("addrA", story=str(i)))
        return ledger

    def test_tampered_body_reports_hash_error(self, chain):
        original = chain._blocks[2]
        chain._blocks[2] = dataclasses.replace(original, body=_claim("addrEvil").body)

        assert chain.validate_chain() == ["Hash is not valid in block 2"]

    def test_non_ascii_hash_reported_not_raised(self, chain):
        chain._blocks[2] = dataclasses.replace(chain._blocks[2], hash="\u00e9" * 64)

        assert not chain._blocks[2].validate()
        errors = chain.validate_chain()
        assert "Hash is not valid in block 2" in errors
        assert any(e.startswith("Chain is broken at block 3.") for e in errors)

    def test_rehashed_block_breaks_link(self, chain):
        """Recomputing a tampered block's hash moves the error to its successor."""
        tampered = dataclasses.replace(chain._blocks[2], body=_claim("addrEvil").body)
        chain._blocks[2] = dataclasses.replace(tampered, hash=tampered.compute_hash())

        errors = chain.validate_chain()
        assert len(errors) == 1
        assert errors[0].startswith("Chain is broken at block 3.")
        assert chain._blocks[2].hash in errors[0]

    def test_all_problems_reported(self, chain):
        """One bad block does not stop the scan."""
        for height in (1, 3):
            chain._blocks[height] = dataclasses.replace(chain._blocks[height], time=0)

        errors = chain.validate_chain()
        assert "Hash is not valid in block 1" in errors
        assert "Hash is not valid in block 3" in errors

    def test_misplaced_block_reported(self, chain):
        block = chain._blocks[2]
        chain._blocks[2] = dataclasses.replace(block, height=9)

        errors = chain.validate_chain()
        assert "Block at position 2 claims height 9" in errors

    def test_validation_does_not_mutate(self, chain):
        chain._blocks[1] = dataclasses.replace(chain._blocks[1], time=0)
        before = chain.blocks

        chain.validate_chain()
        assert chain.blocks == before

    def test_concurrent_appends_never_share_a_height(self, ledger):
        """Appends are serialized: heights stay unique and the chain stays linked."""
        with ThreadPoolExecutor(max_workers=8) as pool:
            blocks = list(pool.map(
                lambda i: ledger.append(_claim(f"addr{i % 4}", story=str(i))),
                range(80),
            ))

        assert sorted(b.height for b in blocks) == list(range(1, 81))
        assert len({b.previous_hash for b in blocks}) == 80
        assert ledger.validate_chain() == []


class TestOwnershipService:
    """Test the challenge / submission gate."""

    def test_issue_challenge(self, registry):
        assert registry.issue_challenge("addrX") == "addrX:1000:starRegistry"

    @pytest.mark.parametrize("address", ["", "a:b"])
    def test_issue_challenge_refuses_unparseable_address(self, registry, address):
        with pytest.raises(ValueError):
            registry.issue_challenge(address)

    def test_submit_star_end_to_end(self, registry, ledger, clock, wallet, sample_star):
        address = wallet["address"]
        message = registry.issue_challenge(address)
        signature = WalletSigner.sign(message, wallet["private"])

        clock.advance(100)
        block = registry.submit_star(address, message, signature, sample_star)

        assert block.height == 1
        assert block.time == 1100
        assert ledger.height == 1

        data = block.decoded_body()
        assert data.wallet_address == address
        assert data.message == message
        assert data.star == sample_star
        assert ledger.validate_chain() == []

    def test_end_to_end_with_injected_verifier(self, ledger, clock):
        """The signature check is a collaborator: any verifier can be plugged in."""
        calls = []

        def verifier(message, address, signature):
            calls.append((message, address, signature))
            return signature == "good"

        registry = OwnershipService(ledger, clock=clock, verify_signature=verifier)
        message = registry.issue_challenge("addrX")
        assert message == "addrX:1000:starRegistry"

        clock.advance(100)
        block = registry.submit_star(
            "addrX", message, "good", Star(dec="5", ra="10", story="test")
        )

        assert calls == [("addrX:1000:starRegistry", "addrX", "good")]
        assert block.height == 1
        assert block.decoded_body().wallet_address == "addrX"
        assert block.decoded_body().star == Star(dec="5", ra="10", story="test")
        assert ledger.height == 1
        assert ledger.validate_chain() == []

    def test_freshness_boundary_299_accepted(self, registry, clock, wallet, sample_star):
        message = registry.issue_challenge(wallet["address"])
        signature = WalletSigner.sign(message, wallet["private"])

        clock.advance(299)
        block = registry.submit_star(wallet["address"], message, signature, sample_star)
        assert block.height == 1

    @pytest.mark.parametrize("age", [300, 301, 3600])
    def test_freshness_boundary_rejected(self, registry, ledger, clock, wallet, sample_star, age):
        message = registry.issue_challenge(wallet["address"])
        signature = WalletSigner.sign(message, wallet["private"])

        clock.advance(age)
        with pytest.raises(ExpiredChallengeError):
            registry.submit_star(wallet["address"], message, signature, sample_star)
        assert ledger.height == 0

    def test_custom_window(self, ledger, clock, wallet, sample_star):
        registry = OwnershipService(ledger, clock=clock, window_seconds=10)
        message = registry.issue_challenge(wallet["address"])
        signature = WalletSigner.sign(message, wallet["private"])

        clock.advance(10)
        with pytest.raises(ExpiredChallengeError):
            registry.submit_star(wallet["address"], message, signature, sample_star)

    def test_invalid_signature_rejected(self, registry, ledger, wallet, other_wallet, sample_star):
        """A well-formed signature from the wrong wallet creates no block."""
        message = registry.issue_challenge(wallet["address"])
        signature = WalletSigner.sign(message, other_wallet["private"])

        with pytest.raises(InvalidSignatureError):
            registry.submit_star(wallet["address"], message, signature, sample_star)
        assert ledger.height == 0

    def test_signature_over_different_message_rejected(self, registry, ledger, wallet, sample_star):
        message = registry.issue_challenge(wallet["address"])
        signature = WalletSigner.sign(message + "x", wallet["private"])

        with pytest.raises(InvalidSignatureError):
            registry.submit_star(wallet["address"], message, signature, sample_star)
        assert ledger.height == 0

    def test_expiry_checked_before_signature(self, registry, clock, wallet, sample_star):
        message = registry.issue_challenge(wallet["address"])
        clock.advance(300)

        with pytest.raises(ExpiredChallengeError):
            registry.submit_star(wallet["address"], message, "garbage", sample_star)

    @pytest.mark.parametrize(
        "message",
        [
            "addrX:1000",
            "addrX:1000:starRegistry:extra",
            "addrX:1000:otherRegistry",
            "addrY:1000:starRegistry",
            "addrX:soon:starRegistry",
            "addrX:1001:starRegistry",
        ],
    )
    def test_malformed_challenge_rejected(self, registry, ledger, message, sample_star):
        with pytest.raises(MalformedChallengeError):
            registry.submit_star("addrX", message, "sig", sample_star)
        assert ledger.height == 0

    def test_one_wallet_many_stars(self, registry, ledger, clock, wallet, other_wallet):
        for owner, story in ((wallet, "a1"), (other_wallet, "b1"), (wallet, "a2")):
            message = registry.issue_challenge(owner["address"])
            signature = WalletSigner.sign(message, owner["private"])
            registry.submit_star(
                owner["address"], message, signature, Star(dec="1", ra="2", story=story)
            )
            clock.advance(1)

        records = ledger.get_stars_by_wallet_address(wallet["address"])
        assert [r.star.story for r in records] == ["a1", "a2"]
        assert ledger.validate_chain() == []


class TestStar:
    """Star contents are opaque to the registry."""

    def test_values_kept_as_sent(self):
        star = Star(dec=5, ra=10.25, story=None)
        assert star.dec == 5
        assert star.ra == 10.25
        assert star.story is None

    @pytest.mark.parametrize(
        "star",
        [
            Star(dec="5", ra="10", story="test", note=None),
            Star(dec="1", ra="2", coords={"x": 1.5, "y": [2, None]}),
            Star(dec=True, ra=-3, story={"chapter": 1}),
        ],
    )
    def test_star_round_trips_through_submission(self, ledger, clock, star):
        registry = OwnershipService(
            ledger, clock=clock, verify_signature=lambda *args: True
        )
        message = registry.issue_challenge("addrA")

        block = registry.submit_star("addrA", message, "sig", star)

        assert block.decoded_body().star == star
        assert block.decoded_body().star.model_dump() == star.model_dump()
        assert ledger.validate_chain() == []

    def test_star_without_json_form_is_rejected(self, ledger):
        star = Star(dec="1", ra="2", magnitude=float("nan"))
        with pytest.raises(CanonicalSerializationError):
            Block.create(BlockData(message="m", wallet_address="addrA", star=star))
        assert ledger.height == 0

    def test_extra_fields_preserved_in_block(self, ledger):
        star = Star(dec="1", ra="2", story="s", mag="4.2", constellation="Lyra")
        block = ledger.append(
            Block.create(BlockData(message="m", wallet_address="addrA", star=star))
        )

        decoded = block.decoded_body().star
        assert decoded.model_dump() == {
            "dec": "1",
            "ra": "2",
            "story": "s",
            "mag": "4.2",
            "constellation": "Lyra",
        }
