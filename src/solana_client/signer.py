"""Transaction signer seam.

Key handling stays outside this package: the runner loads a signer from a
``"package.module:factory"`` path named in the config and calls the factory
with the wallet secret.
"""

from __future__ import annotations

import importlib
from typing import Callable, Protocol


class TransactionSigner(Protocol):
    @property
    def public_key(self) -> str:
        """Base58 wallet address."""

    def sign_transaction(self, serialized: bytes) -> bytes:
        """Sign a serialized (versioned) transaction and return the signed bytes."""

    def build_transfer(
        self, destination: str, lamports: int, recent_blockhash: str
    ) -> bytes:
        """Build and sign a system-program transfer; return the wire bytes."""


SignerFactory = Callable[[str], TransactionSigner]


def load_signer_factory(path: str) -> SignerFactory:
    """Resolve ``"package.module:callable"`` to a signer factory."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"signer_factory must look like 'package.module:callable', got: {path}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ValueError(f"Cannot import signer module '{module_name}': {exc}") from exc
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ValueError(f"Signer factory '{path}' is not callable.")
    return factory


def load_signer(path: str, secret: str) -> TransactionSigner:
    signer = load_signer_factory(path)(secret)
    if not getattr(signer, "public_key", None):
        raise ValueError(f"Signer from '{path}' has no public_key.")
    return signer
