import logging
import time

import numpy as np

from forge import ForgeryEngine
from lamport import Lamport
from lamport_params import LamportParams

logger = logging.getLogger(__name__)


class LamportCPU:
    def __init__(self, params: LamportParams = None):
        self.params = params or LamportParams()
        self.lamport = Lamport(self.params)
        self.keygen_time_ms = None
        self.sign_count = 0
        self.sign_stats = {
            'times_ms': [],
            'sizes': [],
            'verify_times_ms': []
        }
        self._generate_keys()

    def _generate_keys(self):
        start_time = time.time()
        self.private_key, self.public_key = self.lamport.keygen()
        self.keygen_time_ms = (time.time() - start_time) * 1000
        logger.info("Lamport密钥生成时间: %.2fms", self.keygen_time_ms)

    def sign(self, data: bytes) -> tuple:
        if self.sign_count >= 1:
            logger.warning("one-time key already signed %d message(s), signature %d leaks more key material",
                           self.sign_count, self.sign_count + 1)
        start_time = time.time()
        signature = self.lamport.sign_data(data, self.private_key)
        sign_time_ms = (time.time() - start_time) * 1000
        signature_size = len(signature)

        self.sign_count += 1
        self.sign_stats['times_ms'].append(sign_time_ms)
        self.sign_stats['sizes'].append(signature_size)
        return signature, sign_time_ms, signature_size

    def verify(self, data: bytes, signature) -> tuple:
        start_time = time.time()
        is_valid = self.lamport.verify_data(data, self.public_key, signature)
        verify_time_ms = (time.time() - start_time) * 1000
        self.sign_stats['verify_times_ms'].append(verify_time_ms)
        return is_valid, verify_time_ms

    def forge(self, payload, pairs, deadline: float = None) -> tuple:
        """用已泄露的签名伪造包含 payload 的新消息"""
        start_time = time.time()
        message, signature = ForgeryEngine(self.params).forge(self.public_key, payload, pairs, deadline=deadline)
        forge_time_ms = (time.time() - start_time) * 1000
        logger.info("伪造耗时: %.2fms", forge_time_ms)
        return message, signature, forge_time_ms

    def stats(self) -> dict:
        """签名与验证耗时统计"""
        times = self.sign_stats['times_ms']
        verify_times = self.sign_stats['verify_times_ms']
        sizes = self.sign_stats['sizes']
        return {
            'sign_count': len(times),
            'avg_sign_time_ms': float(np.mean(times)) if times else 0.0,
            'max_sign_time_ms': float(np.max(times)) if times else 0.0,
            'min_sign_time_ms': float(np.min(times)) if times else 0.0,
            'avg_verify_time_ms': float(np.mean(verify_times)) if verify_times else 0.0,
            'avg_sign_size': float(np.mean(sizes)) if sizes else 0.0,
        }
