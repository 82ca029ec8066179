import os

import pytest

import block
from block import bit, hash_block, message_from_string
from errors import EncodingError, RandomnessError
from lamport import Lamport, PublicKey, SecretKey, Signature, derive_public_key


class TestKeygen:
    def test_public_key_commits_to_secret_key(self, keypair):
        sk, pk = keypair
        assert len(sk.zero_pre) == len(sk.one_pre) == 256
        assert all(hash_block(sk.zero_pre[i]) == pk.zero_hash[i] for i in range(256))
        assert all(hash_block(sk.one_pre[i]) == pk.one_hash[i] for i in range(256))
        assert derive_public_key(sk) == pk

    def test_keys_are_fresh(self, lamport, keypair):
        _, pk = keypair
        _, other = lamport.keygen()
        assert other != pk

    def test_randomness_failure_aborts(self, lamport, monkeypatch):
        calls = []

        def failing(n):
            calls.append(n)
            if len(calls) > 10:
                raise OSError("no entropy")
            return b'\x00' * n

        monkeypatch.setattr(block.os, "urandom", failing)
        with pytest.raises(RandomnessError):
            lamport.keygen()

    def test_secret_key_repr_hides_material(self, keypair):
        sk, _ = keypair
        assert sk.zero_pre[0].hex() not in repr(sk)
        assert "redacted" in repr(sk)


class TestSignVerify:
    def test_sign_then_verify(self, lamport, keypair):
        sk, pk = keypair
        for _ in range(5):
            m = os.urandom(32)
            assert lamport.verify(m, pk, lamport.sign(m, sk))

    def test_sign_selects_side_by_bit(self, lamport, keypair):
        sk, _ = keypair
        m = message_from_string("1")
        sig = lamport.sign(m, sk)
        for i in range(256):
            expected = sk.one_pre[i] if bit(m, i) else sk.zero_pre[i]
            assert sig.preimage[i] == expected

    def test_sign_is_deterministic(self, lamport, keypair):
        sk, _ = keypair
        m = os.urandom(32)
        assert lamport.sign(m, sk) == lamport.sign(m, sk)

    def test_wrong_message_fails(self, lamport, keypair):
        sk, pk = keypair
        m = os.urandom(32)
        other = bytes([m[0] ^ 0x01]) + m[1:]
        assert not lamport.verify(other, pk, lamport.sign(m, sk))

    @pytest.mark.parametrize("position", [0, 7, 8, 128, 255])
    def test_flipped_preimage_bit_fails(self, lamport, keypair, position):
        sk, pk = keypair
        m = os.urandom(32)
        sig = lamport.sign(m, sk)
        preimage = list(sig.preimage)
        tampered = bytearray(preimage[position])
        tampered[position % 32] ^= 0x40
        preimage[position] = bytes(tampered)
        assert not lamport.verify(m, pk, Signature(preimage))

    @pytest.mark.parametrize("position", [0, 100, 255])
    def test_wrong_side_preimage_fails(self, lamport, keypair, position):
        sk, pk = keypair
        m = os.urandom(32)
        sig = lamport.sign(m, sk)
        preimage = list(sig.preimage)
        preimage[position] = sk.zero_pre[position] if bit(m, position) else sk.one_pre[position]
        assert not lamport.verify(m, pk, Signature(preimage))

    def test_malformed_message_is_false_not_error(self, lamport, keypair):
        sk, pk = keypair
        sig = lamport.sign(os.urandom(32), sk)
        assert lamport.verify(b'short', pk, sig) is False

    @pytest.mark.parametrize("sig", [None, b'\x00' * 8192, "00" * 8192])
    def test_non_signature_is_false_not_error(self, lamport, keypair, sig):
        _, pk = keypair
        assert lamport.verify(os.urandom(32), pk, sig) is False

    def test_sign_rejects_non_digest(self, lamport, keypair):
        sk, _ = keypair
        with pytest.raises(EncodingError):
            lamport.sign(b'not a digest', sk)

    def test_sign_data_digests_first(self, lamport, keypair):
        sk, pk = keypair
        sig = lamport.sign_data(b"hello", sk)
        assert sig == lamport.sign(message_from_string("hello"), sk)
        assert lamport.verify_data(b"hello", pk, sig)
        assert not lamport.verify_data(b"hellp", pk, sig)


class TestHexEncoding:
    def test_public_key_round_trip(self, keypair):
        _, pk = keypair
        s = pk.to_hex()
        assert len(s) == 32768
        assert s == s.lower()
        assert s.startswith(pk.zero_hash[0].hex())
        assert s[16384:16384 + 64] == pk.one_hash[0].hex()
        assert PublicKey.from_hex(s) == pk

    def test_signature_round_trip(self, lamport, keypair):
        sk, _ = keypair
        sig = lamport.sign(os.urandom(32), sk)
        s = sig.to_hex()
        assert len(s) == 16384
        assert Signature.from_hex(s) == sig

    def test_uppercase_hex_accepted(self, lamport, keypair):
        sk, _ = keypair
        sig = lamport.sign(os.urandom(32), sk)
        assert Signature.from_hex(sig.to_hex().upper()) == sig

    @pytest.mark.parametrize("length", [0, 64, 16383, 16385, 32768])
    def test_signature_wrong_length(self, length):
        with pytest.raises(EncodingError, match="expect 16384"):
            Signature.from_hex("a" * length)

    @pytest.mark.parametrize("length", [0, 16384, 32767])
    def test_public_key_wrong_length(self, length):
        with pytest.raises(EncodingError, match="expect 32768"):
            PublicKey.from_hex("0" * length)

    @pytest.mark.parametrize("bad", ["g", "z", " ", "\n", "-"])
    def test_non_hex_rejected(self, bad):
        s = "0" * 100 + bad + "0" * (16384 - 101)
        with pytest.raises(EncodingError, match="non-hex"):
            Signature.from_hex(s)

    def test_non_string_rejected(self):
        with pytest.raises(EncodingError):
            PublicKey.from_hex(b"00" * 16384)

    def test_wrong_block_count(self):
        with pytest.raises(EncodingError):
            SecretKey([b'\x00' * 32] * 255, [b'\x00' * 32] * 256)
