"""
Stateless tool implementations over the interaction core.

Each tool builds a short-lived form against the cached metadata view and
returns a plain dict, with failures reported in-band as ``{"error": ...}``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pallet_interactor.gateway_api import GatewayApiError, GatewayUnreachableError, UnauthorizedError, default_client
from pallet_interactor.interactor import (
    Category,
    Dispatcher,
    InteractionForm,
    describe_constant,
    list_callables,
    account_choices,
    list_namespaces,
    parse_accounts,
    submission_error,
)
from pallet_interactor.interactor.transfer import TRANSFER_HINTS, Account
from pallet_interactor.metadata_source import default_metadata_cache

logger = logging.getLogger(__name__)


def _parse_category(category: Any) -> Optional[Category]:
    try:
        return Category.parse(category)
    except ValueError:
        return None


async def list_namespaces_tool(category: str, *, cache=default_metadata_cache) -> Dict[str, Any]:
    """List namespaces exposing at least one callable for a category."""
    parsed = _parse_category(category)
    if parsed is None:
        return {"error": "Unknown category."}
    view = await cache.get()
    return {"category": parsed.value, "namespaces": [ref.name for ref in list_namespaces(view, parsed)]}


async def list_callables_tool(
    category: str, namespace: str, *, cache=default_metadata_cache
) -> Dict[str, Any]:
    """List callables inside a namespace."""
    parsed = _parse_category(category)
    if parsed is None:
        return {"error": "Unknown category."}
    view = await cache.get()
    return {
        "category": parsed.value,
        "namespace": namespace,
        "callables": [ref.name for ref in list_callables(view, parsed, namespace)],
    }


async def describe_callable_tool(
    category: str, namespace: str, callable: str, *, cache=default_metadata_cache
) -> Dict[str, Any]:
    """Return the ordered parameter declarations of a callable."""
    parsed = _parse_category(category)
    if parsed is None:
        return {"error": "Unknown category."}
    view = await cache.get()
    form = InteractionForm(view, category=parsed)
    form.select_namespace(namespace)
    if callable not in {ref.name for ref in form.callables}:
        return {"error": "Unknown callable."}
    form.select_callable(callable)
    result: Dict[str, Any] = {
        "category": parsed.value,
        "namespace": namespace,
        "callable": callable,
        "parameters": [param.to_dict() for param in form.parameters],
    }
    if parsed is Category.CONSTANT:
        result["constant"] = describe_constant(view, namespace, callable)
    return result


async def call_callable_tool(
    category: str,
    namespace: str,
    callable: str,
    args: Optional[List[Any]] = None,
    mode: Optional[str] = None,
    signer: Optional[str] = None,
    *,
    cache=default_metadata_cache,
    client=default_client,
) -> Dict[str, Any]:
    """Fill a callable's parameters positionally and submit it through the gateway."""
    parsed = _parse_category(category)
    if parsed is None:
        return {"error": "Unknown category."}
    if args is not None and not isinstance(args, list):
        return {"error": "Invalid args; must be a list."}
    invalid = submission_error(parsed, mode, signer)
    if invalid:
        return {"error": invalid}
    view = await cache.get()
    form = InteractionForm(view, category=parsed)
    form.select_namespace(namespace)
    if callable not in {ref.name for ref in form.callables}:
        return {"error": "Unknown callable."}
    form.select_callable(callable)

    values = args or []
    if len(values) > len(form.parameters):
        return {"error": f"Too many arguments; {callable} takes {len(form.parameters)}."}
    for index, value in enumerate(values):
        form.set_param_value(index, "" if value is None else str(value))

    status = await Dispatcher(client).submit(form.state, mode=mode, signer=signer)
    return {
        "call": status.descriptor.to_dict() if status.descriptor else None,
        "status": status.text,
        "state": status.state.value,
    }


async def _load_accounts(client) -> List[Account] | Dict[str, str]:
    """Fetch the account directory; failures come back as an error dict."""
    try:
        raw_accounts = await client.fetch_accounts()
    except UnauthorizedError:
        return {"error": "Unauthorized or API key required."}
    except GatewayUnreachableError:
        return {"error": "Gateway unreachable"}
    except GatewayApiError:
        return {"error": "Gateway API error."}
    except Exception:
        logger.exception("Unexpected error fetching accounts")
        return {"error": "Unexpected error while retrieving accounts."}
    return parse_accounts(raw_accounts)


async def list_accounts_tool(*, client=default_client) -> Dict[str, Any]:
    """Return the keyring accounts known to the gateway."""
    accounts = await _load_accounts(client)
    if isinstance(accounts, dict):
        return accounts
    return {
        "accounts": [
            {"displayName": account.display_name, "address": account.address}
            for account in accounts
        ]
    }


async def transfer_choices_tool(*, client=default_client) -> Dict[str, Any]:
    """Destination chooser entries and hints for the transfer form."""
    accounts = await _load_accounts(client)
    if isinstance(accounts, dict):
        return accounts
    return {"choices": account_choices(accounts), "hints": list(TRANSFER_HINTS)}
