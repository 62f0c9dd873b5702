"""Entry point for python -m cpap_edf."""

from cpap_edf.cli import main

if __name__ == "__main__":
    main()
