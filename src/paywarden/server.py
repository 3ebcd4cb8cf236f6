"""MCP server setup and tool registration."""

from decimal import Decimal

from mcp.server.fastmcp import FastMCP

from paywarden.analysis.blast_radius import BlastRadiusAnalyzer
from paywarden.app import build_lifecycle
from paywarden.config import load_config
from paywarden.identity.agent import Agent, get_or_create_default_agent, list_agents
from paywarden.intents.lifecycle import IntentLifecycle
from paywarden.tools.payments import (
    handle_approve_payment,
    handle_blast_radius,
    handle_check_guards,
    handle_create_payment_intent,
    handle_execute_payment,
    handle_get_timeline,
    handle_pay_invoice,
    handle_replay_payment,
    handle_simulate_payment,
)

mcp = FastMCP("paywarden")

_lifecycle: IntentLifecycle | None = None


def _get_lifecycle() -> IntentLifecycle:
    """The process-wide lifecycle, built on first use."""
    global _lifecycle
    if _lifecycle is None:
        _lifecycle = build_lifecycle()
    return _lifecycle


def _get_agent() -> Agent:
    return get_or_create_default_agent()


@mcp.tool()
def create_payment_intent(
    amount: float,
    recipient: str,
    recipient_address: str,
    wallet_id: str,
    chain: str,
    currency: str = "USDC",
    description: str = "",
) -> dict:
    """Create a payment intent. It must be simulated before it can be executed.

    Args:
        amount: Amount in USDC, greater than zero
        recipient: Human-readable recipient name
        recipient_address: On-chain address or service URL of the recipient
        wallet_id: Wallet paying the amount
        chain: Source chain (e.g. base, ethereum)
        currency: Payment currency (default: USDC)
        description: Why the agent is paying
    """
    return handle_create_payment_intent(
        amount,
        recipient,
        recipient_address,
        wallet_id,
        chain,
        currency,
        description,
        lifecycle=_get_lifecycle(),
        agent=_get_agent(),
    )


@mcp.tool()
async def simulate_payment(intent_id: str) -> dict:
    """Simulate a payment and run guard checks against it.

    Args:
        intent_id: ID returned by create_payment_intent
    """
    return await handle_simulate_payment(intent_id, lifecycle=_get_lifecycle())


@mcp.tool()
async def approve_payment(intent_id: str) -> dict:
    """Approve a payment that is awaiting a human decision.

    Args:
        intent_id: The intent to approve
    """
    return await handle_approve_payment(intent_id, lifecycle=_get_lifecycle())


@mcp.tool()
async def execute_payment(intent_id: str) -> dict:
    """Execute an approved payment.

    Args:
        intent_id: The intent to execute
    """
    return await handle_execute_payment(intent_id, lifecycle=_get_lifecycle())


@mcp.tool()
def pay_invoice(
    amount: float,
    recipient: str,
    recipient_address: str,
    wallet_id: str,
    chain: str,
    currency: str = "USDC",
    description: str = "",
) -> dict:
    """Guard-check an invoice payment in one step.

    Args:
        amount: Invoice amount in USDC
        recipient: Vendor name
        recipient_address: Vendor address
        wallet_id: Wallet paying the invoice
        chain: Source chain
        currency: Payment currency (default: USDC)
        description: Invoice reference
    """
    return handle_pay_invoice(
        amount,
        recipient,
        recipient_address,
        wallet_id,
        chain,
        currency,
        description,
        lifecycle=_get_lifecycle(),
        agent=_get_agent(),
    )


@mcp.tool()
def replay_payment(intent_id: str) -> dict:
    """Re-evaluate a past payment against the current guard rules.

    Args:
        intent_id: The intent to replay
    """
    return handle_replay_payment(intent_id, lifecycle=_get_lifecycle())


@mcp.tool()
def check_guards(
    amount: float,
    recipient_address: str,
    wallet_id: str,
    chain: str = "base",
) -> dict:
    """Check whether a payment would pass the guards, without creating it.

    Args:
        amount: Amount in USDC
        recipient_address: Recipient address or service URL
        wallet_id: Wallet that would pay
        chain: Source chain (default: base)
    """
    return handle_check_guards(
        amount, recipient_address, wallet_id, chain, lifecycle=_get_lifecycle()
    )


@mcp.tool()
def blast_radius(guard_id: str, new_limit: float | None = None) -> dict:
    """Estimate which agents and tools a guard change would affect.

    Args:
        guard_id: Guard to analyze (e.g. guard_1)
        new_limit: Proposed new limit; omit to see current reach only
    """
    lifecycle = _get_lifecycle()
    config = load_config()
    return handle_blast_radius(
        guard_id,
        {"limit": new_limit} if new_limit is not None else None,
        lifecycle=lifecycle,
        agents=list_agents(),
        analyzer=BlastRadiusAnalyzer(
            lifecycle.evaluator,
            default_daily_exposure=Decimal(str(config.default_daily_exposure)),
        ),
    )


@mcp.tool()
def get_payment_timeline(intent_id: str) -> dict:
    """Get the timeline of a payment and why it was allowed or blocked.

    Args:
        intent_id: The intent to inspect
    """
    return handle_get_timeline(intent_id, lifecycle=_get_lifecycle())
