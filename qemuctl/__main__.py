"""Allow ``python -m qemuctl``."""

from qemuctl import cli

if __name__ == "__main__":
    raise SystemExit(cli.main())
