"""Allow ``python -m rulesim``."""
from rulesim.cli import main

if __name__ == "__main__":
    main()
