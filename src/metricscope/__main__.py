"""Allow ``python -m metricscope``."""

from metricscope.cli import main

if __name__ == "__main__":
    main()
