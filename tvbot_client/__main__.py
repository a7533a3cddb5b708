"""Package entry point for ``python -m tvbot_client``.

Delegates to the CLI's main(); see cli.py for the subcommands.
"""

from tvbot_client.cli import main

if __name__ == "__main__":
    main()
