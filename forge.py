import logging
import multiprocessing as mp
import queue
import time

import numpy as np

from block import bits, digest, hash_block, random_bytes, to_block
from errors import (CoverageError, ForgeryError, ProtocolViolationError, RandomnessError,
                    SearchAbortedError)
from lamport import Lamport, PublicKey, Signature
from lamport_params import LamportParams

logger = logging.getLogger(__name__)

NONE = 0
ZERO = 1
ONE = 2
BOTH = ZERO | ONE

# stop flag is polled once per this many candidates
CHECK_EVERY = 1024


class RevealedSet:
    """每个比特位置上已泄露的原像侧: NONE / ZERO / ONE / BOTH"""

    def __init__(self, states, zero_pre, one_pre):
        states = np.array(states, dtype=np.uint8)
        if states.ndim != 1 or np.any(states > BOTH):
            raise ValueError("states must be a flat array of values in 0..3")
        if len(zero_pre) != len(states) or len(one_pre) != len(states):
            raise ValueError("preimage rows must have one entry per position")

        for i, state in enumerate(states):
            if bool(state & ZERO) != (zero_pre[i] is not None):
                raise ValueError(f"position {i}: zero preimage does not agree with state {state}")
            if bool(state & ONE) != (one_pre[i] is not None):
                raise ValueError(f"position {i}: one preimage does not agree with state {state}")

        states.setflags(write=False)
        self.states = states
        self.zero_pre = list(zero_pre)
        self.one_pre = list(one_pre)
        self.size = len(states)

        # an uncovered position lands in both masks, so nothing can satisfy it
        need_one = 0
        need_zero = 0
        for i, state in enumerate(states):
            shift = self.size - 1 - i
            if not state & ZERO:
                need_one |= 1 << shift
            if not state & ONE:
                need_zero |= 1 << shift
        self._need_one = need_one
        self._need_zero = need_zero

    @classmethod
    def empty(cls, size: int = 256):
        return cls(np.zeros(size, dtype=np.uint8), [None] * size, [None] * size)

    def state(self, i: int) -> int:
        return int(self.states[i])

    def uncovered(self) -> list:
        return np.flatnonzero(self.states == NONE).tolist()

    def is_covered(self) -> bool:
        return not np.any(self.states == NONE)

    def single_sided(self) -> int:
        return int(np.count_nonzero((self.states == ZERO) | (self.states == ONE)))

    def expected_trials(self) -> int:
        """单侧位置每个各有1/2概率满足"""
        return 2 ** self.single_sided()

    def supports(self, message: bytes) -> bool:
        """该摘要的每一位是否都有对应侧的原像"""
        d = int.from_bytes(message, 'big')
        return d & self._need_one == self._need_one and d & self._need_zero == 0

    def preimage(self, i: int, side: int):
        return self.one_pre[i] if side else self.zero_pre[i]

    def __repr__(self):
        counts = np.bincount(self.states, minlength=4)
        return (f"RevealedSet(none={counts[NONE]}, zero={counts[ZERO]}, "
                f"one={counts[ONE]}, both={counts[BOTH]})")


def harvest(public_key: PublicKey, pairs, lamport: Lamport = None) -> RevealedSet:
    """从同一私钥下的多个签名中收集泄露的原像"""
    lamport = lamport or Lamport()
    pairs = list(pairs)
    size = len(public_key.zero_hash)
    states = np.zeros(size, dtype=np.uint8)
    zero_pre = [None] * size
    one_pre = [None] * size

    for pair_idx, (message, sig) in enumerate(pairs):
        if lamport.verify(message, public_key, sig):
            logger.info("prior signature %d verifies", pair_idx)
        else:
            logger.warning("prior signature %d does not verify for its message, harvesting anyway", pair_idx)

        for i, block in enumerate(sig.preimage):
            h = hash_block(block)
            if h == public_key.zero_hash[i]:
                zero_pre[i] = block
                states[i] |= ZERO
            elif h == public_key.one_hash[i]:
                one_pre[i] = block
                states[i] |= ONE
            else:
                raise ProtocolViolationError(pair_idx, i, h.hex())

    revealed = RevealedSet(states, zero_pre, one_pre)
    logger.info("harvested %d signature(s): %r", len(pairs), revealed)
    return revealed


def check_coverage(revealed: RevealedSet):
    missing = revealed.uncovered()
    if missing:
        raise CoverageError(missing)


def make_candidate(payload: bytes, prefix_len: int, suffix_len: int) -> bytes:
    """随机前缀 + 载荷 + 随机后缀"""
    return random_bytes(prefix_len) + payload + random_bytes(suffix_len)


def search_candidates(revealed: RevealedSet, payload: bytes, params: LamportParams,
                      stop_event=None, max_attempts: int = None, worker_id: int = 0):
    """单个工作者的搜索循环, 返回 (message, attempts) 或 None"""
    attempts = 0
    while max_attempts is None or attempts < max_attempts:
        if stop_event is not None and attempts % CHECK_EVERY == 0 and stop_event.is_set():
            logger.debug("worker %d stopped after %d attempts", worker_id, attempts)
            return None

        try:
            candidate = make_candidate(payload, params.prefix_len, params.suffix_len)
        except RandomnessError as e:
            logger.warning("worker %d: %s, retrying", worker_id, e)
            if stop_event is not None and stop_event.is_set():
                return None
            time.sleep(params.poll_interval)
            continue

        attempts += 1
        if revealed.supports(digest(candidate)):
            return candidate, attempts

    return None


def _worker(worker_id, revealed, payload, params, stop_event, result_q):
    try:
        found = search_candidates(revealed, payload, params, stop_event=stop_event, worker_id=worker_id)
    except Exception:
        logger.exception("search worker %d crashed", worker_id)
        raise
    if found is not None:
        message, attempts = found
        result_q.put((worker_id, message, attempts))
        stop_event.set()


def _drain(result_q):
    while True:
        try:
            worker_id, _, _ = result_q.get_nowait()
        except (queue.Empty, EOFError, OSError):
            return
        logger.debug("discarded late result from worker %d", worker_id)


class ForgeryEngine:
    def __init__(self, params: LamportParams = None):
        self.params = params or LamportParams()
        self.lamport = Lamport(self.params)

    def forge(self, public_key: PublicKey, payload, pairs, deadline: float = None, cancel=None) -> tuple:
        """收集 -> 覆盖检查 -> 并发搜索 -> 组装, 返回 (message, signature)"""
        revealed = harvest(public_key, pairs, self.lamport)
        return self.forge_from_revealed(public_key, payload, revealed, deadline=deadline, cancel=cancel)

    def forge_from_revealed(self, public_key: PublicKey, payload, revealed: RevealedSet,
                            deadline: float = None, cancel=None) -> tuple:
        check_coverage(revealed)
        logger.info("coverage complete, %d single-sided position(s), ~%d expected trials",
                    revealed.single_sided(), revealed.expected_trials())

        message = self.search(revealed, payload, deadline=deadline, cancel=cancel)
        sig = self.assemble(revealed, digest(message))

        if not self.lamport.verify(digest(message), public_key, sig):
            raise ForgeryError("assembled signature does not verify against the public key")
        return message, sig

    def search(self, revealed: RevealedSet, payload, deadline: float = None, cancel=None) -> bytes:
        """每个处理单元一个进程, 第一个结果胜出"""
        if isinstance(payload, str):
            payload = payload.encode('utf-8')
        if not isinstance(payload, (bytes, bytearray)):
            raise TypeError(f"payload must be str or bytes, got {type(payload).__name__}")
        payload = bytes(payload)
        if deadline is None:
            deadline = self.params.deadline

        stop_event = mp.Event()
        result_q = mp.Queue()
        procs = [mp.Process(target=_worker,
                            args=(i, revealed, payload, self.params, stop_event, result_q),
                            daemon=True)
                 for i in range(self.params.workers)]

        start_time = time.monotonic()
        for p in procs:
            p.start()
        logger.info("started %d search worker(s)", len(procs))

        try:
            while True:
                try:
                    worker_id, message, attempts = result_q.get(timeout=self.params.poll_interval)
                except queue.Empty:
                    pass
                else:
                    logger.info("worker %d found a forgeable message after %d attempts (%.2fs)",
                                worker_id, attempts, time.monotonic() - start_time)
                    return message

                if cancel is not None and cancel.is_set():
                    raise SearchAbortedError("search cancelled before a forgeable message was found")
                if deadline is not None and time.monotonic() - start_time >= deadline:
                    raise SearchAbortedError(f"no forgeable message found within {deadline}s")
                if not any(p.is_alive() for p in procs):
                    try:
                        worker_id, message, attempts = result_q.get(timeout=self.params.poll_interval)
                    except queue.Empty:
                        crashed = [(i, p.exitcode) for i, p in enumerate(procs) if p.exitcode]
                        if crashed:
                            raise ForgeryError(f"search worker(s) crashed, exit codes: {crashed}")
                        raise SearchAbortedError("all search workers exited without a result")
                    return message
        finally:
            stop_event.set()
            for p in procs:
                p.join(timeout=1.0)
                if p.is_alive():
                    p.terminate()
                    p.join()
            _drain(result_q)
            result_q.close()

    def assemble(self, revealed: RevealedSet, message: bytes) -> Signature:
        """按消息比特选取已泄露的原像组成签名"""
        preimage = []
        for i, b in enumerate(bits(to_block(message))):
            block = revealed.preimage(i, int(b))
            if block is None:
                side = "one" if b else "zero"
                raise ForgeryError(f"position {i} needs the {side} preimage, which was never revealed")
            preimage.append(block)
        return Signature(preimage)
