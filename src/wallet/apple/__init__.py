"""Apple Wallet pass generation components."""

from wallet.apple.assembler import PassAssembler
from wallet.apple.generator import ApplePassGenerator, GeneratedPass
from wallet.apple.signer import ApplePassSigner

__all__ = [
    "ApplePassGenerator",
    "ApplePassSigner",
    "GeneratedPass",
    "PassAssembler",
]
