"""CLI entrypoint for Paywarden."""

import paywarden.cli.agent_cmd  # noqa: F401
import paywarden.cli.guards_cmd  # noqa: F401
import paywarden.cli.init  # noqa: F401
import paywarden.cli.ledger_cmd  # noqa: F401
import paywarden.cli.pay_cmd  # noqa: F401
import paywarden.cli.policy_cmd  # noqa: F401
import paywarden.cli.serve  # noqa: F401
from paywarden.cli.main import cli


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
