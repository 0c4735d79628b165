"""Module execution entrypoint for `python -m nus_terminal`.

Defers to the console script implementation in `nus_terminal.nus_terminal:main`.
"""

from .nus_terminal import main


if __name__ == "__main__":  # pragma: no cover - convenience path
    main()
