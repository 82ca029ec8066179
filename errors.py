class LamportError(Exception):
    """所有签名与伪造错误的基类"""


class RandomnessError(LamportError):
    """安全随机源无法提供所需字节"""


class EncodingError(LamportError, ValueError):
    """十六进制编码长度或内容错误"""


class ProtocolViolationError(LamportError):
    """签名中的原像与公钥两侧承诺都不匹配"""

    def __init__(self, pair_idx: int, position: int, digest_hex: str):
        self.pair_idx = pair_idx
        self.position = position
        super().__init__(
            f"signature {pair_idx} preimage[{position}] hashes to {digest_hex}, "
            f"which matches neither the zero nor the one commitment")


class CoverageError(LamportError):
    """存在未泄露任何一侧原像的位置"""

    def __init__(self, positions):
        self.positions = list(positions)
        shown = ", ".join(str(p) for p in self.positions[:16])
        if len(self.positions) > 16:
            shown += ", ..."
        super().__init__(
            f"{len(self.positions)} position(s) have neither preimage revealed: {shown}")


class SearchAbortedError(LamportError):
    """搜索在找到结果前被取消或超时"""


class ForgeryError(LamportError):
    """伪造签名未通过内部验证"""
