"""Minimal sanity checks against a live gateway."""

from __future__ import annotations

import asyncio
import os
import sys

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from pallet_interactor.gateway_api import default_client  # noqa: E402
from pallet_interactor.interactor import Category  # noqa: E402
from pallet_interactor.tools import (  # noqa: E402
    call_callable_tool,
    describe_callable_tool,
    list_accounts_tool,
    list_callables_tool,
    list_namespaces_tool,
)

# Opt-in to a real submission (a storage query, nothing signed).
RUN_QUERY_SUBMIT = os.getenv("RUN_QUERY_SANITY", "false").lower() in {"1", "true", "yes"}


async def main() -> None:
    for category in Category:
        namespaces = (await list_namespaces_tool(category.value)).get("namespaces") or []
        print(f"{category.value}: {len(namespaces)} namespaces")
        if not namespaces:
            continue
        callables = (await list_callables_tool(category.value, namespaces[0])).get("callables") or []
        if callables:
            print("  first callable:", await describe_callable_tool(category.value, namespaces[0], callables[0]))

    print("Accounts:", await list_accounts_tool())

    if RUN_QUERY_SUBMIT:
        print("Query timestamp.now:", await call_callable_tool("QUERY", "timestamp", "now"))

    await default_client.aclose()


if __name__ == "__main__":
    asyncio.run(main())
