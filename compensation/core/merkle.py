"""
Merkle settlement tree.

Wire contract shared with the on-chain claim verifier:

- leaf preimage = abi.encode(address, uint256 periodStart, uint256 amount),
  96 bytes, address lowercased and left-padded to 32 bytes
- leaf = keccak256(preimage)
- parent = keccak256(min(a, b) || max(a, b))
- leaves sorted ascending by bytes before building
- an unpaired node is promoted unchanged to the next layer, and proofs
  skip the layers where the leaf's branch was promoted
"""

from collections.abc import Iterable
from datetime import UTC, date, datetime
from decimal import ROUND_FLOOR, Decimal

from eth_utils import is_hex_address, keccak
from pydantic import BaseModel, ConfigDict

from compensation.exceptions import ConsistencyError, ValidationError


WORD_SIZE = 32
LEAF_PREIMAGE_SIZE = 3 * WORD_SIZE
_UINT256_MAX = 2**256 - 1


class SettlementLeaf(BaseModel):
    """
    One payout claim per wallet and period.

    Settlements of participants sharing a wallet are merged into one leaf;
    ``amount`` is the sum of their floored smallest-unit amounts.
    """

    model_config = ConfigDict(frozen=True)

    user_ids: tuple[int, ...]
    wallet_address: str
    period_timestamp: int
    amount: int
    leaf: bytes


def to_hex(value: bytes) -> str:
    """0x-prefixed lowercase hex."""
    return "0x" + value.hex()


def from_hex(value: str) -> bytes:
    """Parse 0x-prefixed (or bare) hex."""
    return bytes.fromhex(value[2:] if value.startswith(("0x", "0X")) else value)


def to_smallest_unit(amount: Decimal, decimals: int) -> int:
    """Floor a token amount to integer smallest units."""
    return int((amount * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_FLOOR))


def from_smallest_unit(amount: int, decimals: int) -> Decimal:
    """Token amount of an integer smallest-unit value."""
    return Decimal(amount).scaleb(-decimals)


def period_timestamp(period_start: date) -> int:
    """Unix seconds of UTC midnight at the period start."""
    return int(
        datetime(period_start.year, period_start.month, period_start.day, tzinfo=UTC).timestamp()
    )


def _uint256(value: int, name: str) -> bytes:
    if not 0 <= value <= _UINT256_MAX:
        raise ConsistencyError(f"{name} {value} does not fit uint256")
    return value.to_bytes(WORD_SIZE, "big")


def encode_leaf(wallet_address: str, period_ts: int, amount: int) -> bytes:
    """
    abi.encode(address, uint256, uint256).

    Raises:
        ConsistencyError: Address or numbers cannot be encoded
    """
    if not isinstance(wallet_address, str) or not is_hex_address(wallet_address):
        raise ConsistencyError(f"Invalid wallet address for leaf: {wallet_address!r}")

    address_bytes = bytes.fromhex(wallet_address.lower()[2:])
    preimage = (
        address_bytes.rjust(WORD_SIZE, b"\x00")
        + _uint256(period_ts, "period timestamp")
        + _uint256(amount, "amount")
    )
    if len(preimage) != LEAF_PREIMAGE_SIZE:
        raise ConsistencyError(f"Leaf preimage has {len(preimage)} bytes")
    return preimage


def hash_leaf(wallet_address: str, period_ts: int, amount: int) -> bytes:
    """keccak256 of the encoded leaf."""
    return keccak(encode_leaf(wallet_address, period_ts, amount))


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Commutative parent hash."""
    return keccak(a + b) if a <= b else keccak(b + a)


def verify_proof(leaf: bytes, proof: Iterable[bytes], root: bytes) -> bool:
    """Fold the sibling path from ``leaf`` and compare with ``root``."""
    computed = leaf
    for sibling in proof:
        computed = hash_pair(computed, sibling)
    return computed == root


class MerkleTree:
    """
    Deterministic Merkle tree over a settlement leaf set.

    The tree depends only on the set of leaves, never on their input order.

    Example:
        >>> tree = MerkleTree([leaf_a, leaf_b, leaf_c])
        >>> proof = tree.proof(leaf_a)
        >>> verify_proof(leaf_a, proof, tree.root)
        True
    """

    def __init__(self, leaves: Iterable[bytes]) -> None:
        ordered = sorted(bytes(leaf) for leaf in leaves)
        if not ordered:
            raise ValidationError("Cannot build a Merkle tree without leaves")
        for leaf in ordered:
            if len(leaf) != WORD_SIZE:
                raise ConsistencyError(f"Leaf must be {WORD_SIZE} bytes, got {len(leaf)}")
        for prev, leaf in zip(ordered, ordered[1:]):
            if prev == leaf:
                raise ConsistencyError(f"Duplicate leaf {to_hex(leaf)}")

        self.leaves: list[bytes] = ordered
        self.layers: list[list[bytes]] = self._build(ordered)
        self._index = {leaf: i for i, leaf in enumerate(ordered)}

    @staticmethod
    def _build(leaves: list[bytes]) -> list[list[bytes]]:
        layers = [leaves]
        while len(layers[-1]) > 1:
            layer = layers[-1]
            next_layer = []
            for i in range(0, len(layer), 2):
                if i + 1 < len(layer):
                    next_layer.append(hash_pair(layer[i], layer[i + 1]))
                else:
                    next_layer.append(layer[i])
            layers.append(next_layer)
        return layers

    @property
    def root(self) -> bytes:
        return self.layers[-1][0]

    @property
    def root_hex(self) -> str:
        return to_hex(self.root)

    def proof(self, leaf: bytes) -> list[bytes]:
        """
        Sibling hashes from ``leaf`` up to the root.

        Raises:
            ConsistencyError: Leaf is not part of the tree
        """
        index = self._index.get(bytes(leaf))
        if index is None:
            raise ConsistencyError(f"Leaf {to_hex(leaf)} is not in the tree")

        proof = []
        for layer in self.layers[:-1]:
            sibling = index ^ 1
            if sibling < len(layer):
                proof.append(layer[sibling])
            index //= 2
        return proof

    def proof_hex(self, leaf: bytes) -> list[str]:
        return [to_hex(node) for node in self.proof(leaf)]

    def __len__(self) -> int:
        return len(self.leaves)
