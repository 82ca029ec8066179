import hashlib
import os

import numpy as np

from errors import EncodingError, RandomnessError

BLOCK_SIZE = 32


def to_block(data: bytes) -> bytes:
    """校验并返回32字节块"""
    if not isinstance(data, (bytes, bytearray)):
        raise EncodingError(f"block must be bytes, got {type(data).__name__}")
    if len(data) != BLOCK_SIZE:
        raise EncodingError(f"block is {len(data)} bytes, expect {BLOCK_SIZE}")
    return bytes(data)


def block_from_byte_slice(data: bytes) -> bytes:
    """截断或补零为一个块, 不做长度校验"""
    return bytes(data[:BLOCK_SIZE]).ljust(BLOCK_SIZE, b'\x00')


def hash_block(block: bytes) -> bytes:
    return hashlib.sha256(block).digest()


def is_preimage(block: bytes, commitment: bytes) -> bool:
    """block 是否为 commitment 的原像"""
    return hash_block(block) == commitment


def digest(data: bytes) -> bytes:
    """将任意输入压缩为待签名的消息"""
    return hashlib.sha256(data).digest()


def message_from_string(s: str) -> bytes:
    return digest(s.encode('utf-8'))


def bit(value: bytes, i: int) -> int:
    return (value[i // 8] >> (7 - i % 8)) & 1


def bits(value: bytes) -> np.ndarray:
    """按大端顺序展开为256个比特, 下标0为首字节最高位"""
    return np.unpackbits(np.frombuffer(value, dtype=np.uint8))


def random_bytes(n: int) -> bytes:
    """从操作系统安全随机源读取 n 字节"""
    try:
        data = os.urandom(n)
    except (OSError, NotImplementedError) as e:
        raise RandomnessError(f"secure random source failed: {e}") from e
    if len(data) != n:
        raise RandomnessError(f"secure random source returned {len(data)} bytes, expect {n}")
    return data
