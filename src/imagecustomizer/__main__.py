"""Main entry point for running imagecustomizer as a module."""

from imagecustomizer.cli.main import main


if __name__ == "__main__":
    main()
