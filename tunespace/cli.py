"""The CLI tool to inspect the search spaces of tunespace kernel families.

Basic usage:
$ tunespace {count, list, geometry} <family or declaration.json>

We can:
   - `count`: print the number of valid configurations next to the size of the unrestricted parameter space.
   - `list`: print the valid configurations, one per line, optionally limited with `--limit`.
   - `geometry`: print the local and global size of every listed configuration.

Common arguments:
   - <declaration>: a kernel family name (e.g. xgemm_direct) or a JSON declaration file.
   - `-v/--variation`: the variation of a kernel family, default 1.
   - `--mode`: `exhaustive` (default) or `sampling`, the latter with `--fraction` and `--seed`.
   - `-m/-n/-k`: problem sizes, only used by `geometry`.
   - `--unpinned`: leave out the pin constraints of the declaration.

Example usages:
$ tunespace count xgemm_direct
$ tunespace list xgemm_direct -v 2 --mode sampling --fraction 0.001 --seed 42
$ tunespace geometry xgemm_direct -m 1024 -n 512 --limit 10
"""

import argparse
import sys
from itertools import islice

from tunespace.core import TuningSession
from tunespace.interface import get_declaration
from tunespace.searchspace import supported_frameworks
from tunespace.util import TuningSpaceError, get_config_string


def _session(ap_res: argparse.Namespace) -> TuningSession:
    declaration = get_declaration(ap_res.declaration, ap_res.variation)
    problem_size = {}
    for name in ("m", "n", "k"):
        size = getattr(ap_res, name, None)
        if size is not None:
            problem_size[name] = size
    return TuningSession(declaration, problem_size=problem_size, framework=ap_res.framework, pinned=not ap_res.unpinned)


def _configurations(session: TuningSession, ap_res: argparse.Namespace):
    configurations = session.enumerate_configurations(ap_res.mode, ap_res.fraction, seed=ap_res.seed)
    if ap_res.limit is not None:
        configurations = islice(configurations, ap_res.limit)
    return configurations


def cli_count(ap_res: argparse.Namespace):
    """Print the number of valid configurations and the unrestricted size."""
    session = _session(ap_res)
    count = sum(1 for _ in _configurations(session, ap_res))
    print(f"{session.declaration.kernel_family}: {count} valid configurations of {session.searchspace.cartesian_size}")
    return count


def cli_list(ap_res: argparse.Namespace):
    """Print the valid configurations."""
    session = _session(ap_res)
    count = 0
    for configuration in _configurations(session, ap_res):
        print(get_config_string(configuration))
        count += 1
    return count


def cli_geometry(ap_res: argparse.Namespace):
    """Print the derived launch geometry of the valid configurations."""
    session = _session(ap_res)
    local_size, global_size = session.reference_geometry()
    print(f"reference: local_size={local_size}, global_size={global_size}")
    count = 0
    for configuration in _configurations(session, ap_res):
        local_size, global_size = session.derive_geometry(configuration)
        print(f"{get_config_string(configuration)}: local_size={local_size}, global_size={global_size}")
        count += 1
    return count


def _fraction(value):
    fraction = float(value)
    if not 0 < fraction <= 1:
        raise argparse.ArgumentTypeError(f"fraction should be in the interval (0, 1], got {value}")
    return fraction


def parse_args(args):
    """The main parsing function.

    Uses argparse to parse, the returned namespace holds the function to call, one of
    cli_{count, list, geometry}.
    """
    parser = argparse.ArgumentParser(
        prog="tunespace",
        description="A CLI tool to inspect the search spaces of tunespace kernel families.",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("declaration", help="A kernel family name (e.g. xgemm_direct) or a JSON declaration file.")
    common.add_argument("-v", "--variation", type=int, default=1, help="The variation of the kernel family.")
    common.add_argument("--mode", choices=["exhaustive", "sampling"], default="exhaustive", help="Enumerate all or a random sample.")
    common.add_argument("--fraction", type=_fraction, help="Fraction of the unrestricted space to sample.")
    common.add_argument("--seed", type=int, help="Seed of the random sample.")
    common.add_argument("--limit", type=int, help="Stop after this many configurations.")
    common.add_argument("--framework", choices=supported_frameworks, default="backtracking", help="Framework that resolves the space.")
    common.add_argument("--unpinned", action="store_true", help="Leave out the pin constraints of the declaration.")

    sp = parser.add_subparsers(required=True, help="Possible subcommands: 'count', 'list' and 'geometry'.")

    count = sp.add_parser("count", parents=[common], help="Count the valid configurations.")
    count.set_defaults(func=cli_count)

    listing = sp.add_parser("list", parents=[common], help="List the valid configurations.")
    listing.set_defaults(func=cli_list)

    geometry = sp.add_parser("geometry", parents=[common], help="Print the launch geometry of the valid configurations.")
    geometry.add_argument("-m", type=int, help="Problem size m.")
    geometry.add_argument("-n", type=int, help="Problem size n.")
    geometry.add_argument("-k", type=int, help="Problem size k.")
    geometry.set_defaults(func=cli_geometry)

    # Parse input and call the appropiate function.
    return parser.parse_args(args)


def main():
    """The function called when running the cli, parses the arguments and calls the subcommand."""
    ap_res = parse_args(sys.argv[1:])
    try:
        ap_res.func(ap_res)
    except (TuningSpaceError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
