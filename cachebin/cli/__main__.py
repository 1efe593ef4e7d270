"""Allow ``python -m cachebin.cli`` execution."""

from cachebin.cli.admin import main

main()
