"""Allow ``python -m bookrouter.cli`` execution (runs the recommend CLI)."""

from bookrouter.cli.recommend import main

main()
