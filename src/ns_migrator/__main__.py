"""
Top-level entry point: python -m ns_migrator <subcommand>

Subcommands:
    serve     run the HTTP API
    migrate   migrate one instance into another namespace
    clone     clone a namespace or an instance
    unfreeze  make a frozen instance writable again
    jobs      list or show jobs
"""

import sys


USAGE = """\
usage: python -m ns_migrator <command> [options]

commands:
  serve      Run the HTTP API (uvicorn)
  migrate    Migrate an instance into another namespace (copy / copy_freeze / copy_delete)
  clone      Clone a namespace (--deep copies instance storage) or a single instance
  unfreeze   Make a frozen instance writable again
  jobs       List recent jobs, or show one job by id

Run 'python -m ns_migrator <command> --help' for command-specific options.
"""


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] in ("-h", "--help"):
        print(USAGE)
        sys.exit(0)

    command, rest = argv[0], argv[1:]

    if command == "serve":
        from .cli import serve_main
        serve_main(rest)
    elif command == "migrate":
        from .cli import migrate_main
        migrate_main(rest)
    elif command == "clone":
        from .cli import clone_main
        clone_main(rest)
    elif command == "unfreeze":
        from .cli import unfreeze_main
        unfreeze_main(rest)
    elif command == "jobs":
        from .cli import jobs_main
        jobs_main(rest)
    else:
        print(f"Unknown command: {command}\n")
        print(USAGE)
        sys.exit(1)


if __name__ == "__main__":
    main()
