"""CLI entry point for running imagecustomizer.cli."""

from imagecustomizer.cli.main import main


if __name__ == "__main__":
    main()
