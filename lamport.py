import logging
import string

from block import BLOCK_SIZE, bits, digest, hash_block, random_bytes, to_block
from errors import EncodingError
from lamport_params import LamportParams

logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset(string.hexdigits)
BITS = 8 * BLOCK_SIZE


def _decode_blocks(s: str, count: int, what: str) -> list:
    """将十六进制串解码为 count 个32字节块"""
    if not isinstance(s, str):
        raise EncodingError(f"{what} must be a hex string, got {type(s).__name__}")

    expected = count * 2 * BLOCK_SIZE
    if len(s) != expected:
        raise EncodingError(f"{what} string {len(s)} characters, expect {expected}")

    for idx, ch in enumerate(s):
        if ch not in _HEX_DIGITS:
            raise EncodingError(f"{what} string has non-hex character {ch!r} at offset {idx}")

    raw = bytes.fromhex(s)
    return [raw[i * BLOCK_SIZE:(i + 1) * BLOCK_SIZE] for i in range(count)]


def _check_rows(rows, count: int, what: str) -> list:
    rows = list(rows)
    if len(rows) != count:
        raise EncodingError(f"{what} has {len(rows)} blocks, expect {count}")
    return [to_block(b) for b in rows]


class SecretKey:
    def __init__(self, zero_pre, one_pre):
        self.zero_pre = _check_rows(zero_pre, BITS, "ZeroPre")
        self.one_pre = _check_rows(one_pre, BITS, "OnePre")

    def __eq__(self, other):
        if not isinstance(other, SecretKey):
            return NotImplemented
        return self.zero_pre == other.zero_pre and self.one_pre == other.one_pre

    def __repr__(self):
        return "SecretKey(<redacted>)"


class PublicKey:
    def __init__(self, zero_hash, one_hash):
        self.zero_hash = _check_rows(zero_hash, BITS, "ZeroHash")
        self.one_hash = _check_rows(one_hash, BITS, "OneHash")

    def __eq__(self, other):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.zero_hash == other.zero_hash and self.one_hash == other.one_hash

    def __repr__(self):
        return f"PublicKey({self.zero_hash[0].hex()[:16]}...)"

    def to_hex(self) -> str:
        """ZeroHash[0..255] 后接 OneHash[0..255], 每块64个小写十六进制字符"""
        return "".join(b.hex() for b in self.zero_hash) + "".join(b.hex() for b in self.one_hash)

    @classmethod
    def from_hex(cls, s: str) -> "PublicKey":
        blocks = _decode_blocks(s, 2 * BITS, "Pubkey")
        return cls(blocks[:BITS], blocks[BITS:])


class Signature:
    def __init__(self, preimage):
        self.preimage = _check_rows(preimage, BITS, "Signature")

    def __eq__(self, other):
        if not isinstance(other, Signature):
            return NotImplemented
        return self.preimage == other.preimage

    def __len__(self):
        return len(self.preimage) * BLOCK_SIZE

    def __repr__(self):
        return f"Signature({self.preimage[0].hex()[:16]}...)"

    def to_hex(self) -> str:
        return "".join(b.hex() for b in self.preimage)

    @classmethod
    def from_hex(cls, s: str) -> "Signature":
        return cls(_decode_blocks(s, BITS, "Signature"))


def derive_public_key(sk: SecretKey) -> PublicKey:
    """由私钥重新计算公钥承诺"""
    return PublicKey([hash_block(b) for b in sk.zero_pre],
                     [hash_block(b) for b in sk.one_pre])


class Lamport:
    def __init__(self, params: LamportParams = None):
        self.params = params or LamportParams()
        self.n = self.params.n
        self.bits = self.params.bits

    def keygen(self) -> tuple:
        """生成密钥对, 随机源失败时不返回部分密钥"""
        zero_pre = []
        one_pre = []
        for _ in range(self.bits):
            zero_pre.append(random_bytes(self.n))
            one_pre.append(random_bytes(self.n))

        sk = SecretKey(zero_pre, one_pre)
        pk = derive_public_key(sk)
        logger.debug("generated key pair %r", pk)
        return sk, pk

    def sign(self, message: bytes, sk: SecretKey) -> Signature:
        """按消息各比特揭示对应一侧的私钥块"""
        msg_bits = bits(to_block(message))
        return Signature([sk.one_pre[i] if b else sk.zero_pre[i]
                          for i, b in enumerate(msg_bits)])

    def verify(self, message: bytes, pk: PublicKey, sig: Signature) -> bool:
        """验证签名, 任一位置不匹配立即返回 False"""
        if not isinstance(message, (bytes, bytearray)) or len(message) != self.n:
            return False
        if not isinstance(sig, Signature) or len(sig.preimage) != self.bits:
            return False

        msg_bits = bits(bytes(message))
        for i in range(self.bits):
            expected = pk.one_hash[i] if msg_bits[i] else pk.zero_hash[i]
            if hash_block(sig.preimage[i]) != expected:
                return False
        return True

    def sign_data(self, data: bytes, sk: SecretKey) -> Signature:
        return self.sign(digest(data), sk)

    def verify_data(self, data: bytes, pk: PublicKey, sig: Signature) -> bool:
        return self.verify(digest(data), pk, sig)
