"""Apple Wallet Pass Configuration.

See: https://developer.apple.com/documentation/walletpasses
"""

from decouple import config

from .base import BASE_DIR

# Pass type identifier served by the default (global) certificate
WALLET_GLOBAL_PASS_TYPE_ID: str = config("GLOBAL_PASSTYPE_ID", default="")

# Apple WWDR intermediate used when a certificate has none of its own
WALLET_WWDR_CERT_PATH: str = config("WALLET_WWDR_CERT_PATH", default="")
WALLET_WWDR_CERT_URL: str = config("WALLET_WWDR_CERT_URL", default="")

# Remote blob storage holding certificate bundles
WALLET_BLOB_TOKEN: str = config("WALLET_BLOB_TOKEN", default="")
WALLET_BLOB_TIMEOUT: float = config("WALLET_BLOB_TIMEOUT", default=10.0, cast=float)
WALLET_BLOB_RETRIES: int = config("WALLET_BLOB_RETRIES", default=2, cast=int)

# pass.json defaults for templates that omit them
WALLET_DEFAULT_ORGANIZATION_NAME: str = config("WALLET_DEFAULT_ORGANIZATION_NAME", default="Passforge")
WALLET_DEFAULT_DESCRIPTION: str = config("WALLET_DEFAULT_DESCRIPTION", default="Digital Pass")

# Where onboarded certificate bundles are stored
WALLET_CERTIFICATE_ROOT: str = config("WALLET_CERTIFICATE_ROOT", default=str(BASE_DIR / "certificates"))

WALLET_REJECT_UNMATCHED_FIELDS: bool = config("WALLET_REJECT_UNMATCHED_FIELDS", default=True, cast=bool)

# Shared key for the pass API
WALLET_API_KEY: str = config("WALLET_API_KEY", default="")
