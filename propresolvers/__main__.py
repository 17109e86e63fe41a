"""Allow ``python -m propresolvers``."""

from propresolvers.main import main

if __name__ == "__main__":
    raise SystemExit(main())
