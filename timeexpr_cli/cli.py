import argparse
import logging
import sys

from timeexpr import RangeHolder, Range, TimeExprError, catalog_labels, get_domain, resolve

logger = logging.getLogger("timeexpr")


def _context(args, domain):
    if not args.context:
        return None
    first, last = args.context
    return Range.parse(domain, first, last)


def _resolve(args):
    domain = get_domain(args.domain)
    result = resolve(args.expression, domain=domain, context=_context(args, domain))
    print("" if result is None else result)


def _range(args):
    domain = get_domain(args.domain)
    holder = RangeHolder(domain)
    holder.set_begin(args.begin)
    holder.set_end(args.end)
    context = _context(args, domain)
    if context is None:
        logger.info(f"begin={holder.get_begin_text()} end={holder.get_end_text()}")
        print(holder.get_range())
    else:
        print(holder.get_range(context))


def _domains(args):
    for label in catalog_labels():
        domain = get_domain(label)
        print(f"{label}\t{domain.resolution.name}")


def entrance(argv=None):
    timeexpr_argparse = argparse.ArgumentParser(
        prog="timeexpr",
        description="Resolve day expressions like today-5, end-2 or 2009-11-20+3.",
    )
    timeexpr_argparse.add_argument(
        "--verbose",
        "-v",
        help="Log debug information to stderr",
        action="store_true",
    )
    subparsers = timeexpr_argparse.add_subparsers(dest="command")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve one day expression")
    resolve_parser.add_argument("expression", type=str)
    resolve_parser.set_defaults(handler=_resolve)

    range_parser = subparsers.add_parser("range", help="Resolve a range from two day expressions")
    range_parser.add_argument("begin", type=str)
    range_parser.add_argument("end", type=str)
    range_parser.set_defaults(handler=_range)

    for subparser in (resolve_parser, range_parser):
        subparser.add_argument(
            "--domain",
            type=str,
            default="daily",
            choices=catalog_labels(),
            help='Time domain of the result (default "daily")',
        )
        subparser.add_argument(
            "--context",
            nargs=2,
            metavar=("FIRST", "LAST"),
            help="Range giving meaning to the keywords start and end",
        )

    domains_parser = subparsers.add_parser("domains", help="List the available time domains")
    domains_parser.set_defaults(handler=_domains)

    args = timeexpr_argparse.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        timeexpr_argparse.error(
            "timeexpr: You need to specify the command (i.e.: resolve, range or domains)"
        )

    try:
        args.handler(args)
    except TimeExprError as e:
        print(f"timeexpr: {e}", file=sys.stderr)
        return 2
    return 0


def main():
    sys.exit(entrance())
