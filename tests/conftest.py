import os

import pytest

from forge import harvest
from lamport import Lamport


def complement(message: bytes) -> bytes:
    return bytes(b ^ 0xFF for b in message)


@pytest.fixture(scope="session")
def lamport():
    return Lamport()


@pytest.fixture(scope="session")
def keypair(lamport):
    return lamport.keygen()


@pytest.fixture(scope="session")
def covering_pairs(lamport, keypair):
    """A message and its complement reveal both sides of every position."""
    sk, _ = keypair
    m = os.urandom(32)
    return [(m, lamport.sign(m, sk)), (complement(m), lamport.sign(complement(m), sk))]


@pytest.fixture(scope="session")
def full_revealed(keypair, covering_pairs):
    _, pk = keypair
    return harvest(pk, covering_pairs)
