"""Print a signed Cosmos DB header pair built from ``COSMOS_*`` env vars.

Usage::

    COSMOS_HTTP_VERB=GET COSMOS_RESOURCE_TYPE=colls \\
    COSMOS_RESOURCE_ID=dbs/MyDatabase/colls/MyCollection \\
    COSMOS_MASTER_KEY=... python -m cosmos_auth
"""

from __future__ import annotations

import sys

from .config import CosmosAuthConfig
from .signer import InvalidCredentialError, sign


def main() -> None:
    config = CosmosAuthConfig()
    master_key = config.master_key.get_secret_value() if config.master_key else None
    try:
        token, date = sign(config.http_verb, config.resource_type, config.resource_id, master_key)
    except InvalidCredentialError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(2)

    print(f"{config.date_key}: {date}")
    print(f"{config.target_key}: {token}")


if __name__ == "__main__":
    main()
