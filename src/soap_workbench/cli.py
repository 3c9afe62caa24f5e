"""
CLI commands for exploring SOAP services.
"""

import argparse
import json
import logging
import sys

from .errors import DescriptorError
from .models import ParseRequest
from .presentation import present_operations
from .wsdl_parser import ParserConfig, parse_wsdl_sync

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_EMPTY = 2


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def print_operation(operation):
    """Print one operation with its parameters and sample envelope."""
    print(f"● {operation.name}")
    if operation.soap_action:
        print(f"    SOAPAction: {operation.soap_action}")
    if operation.input_message or operation.output_message:
        print(f"    Messages:   {operation.input_message or '-'} -> {operation.output_message or '-'}")
    if operation.documentation:
        print(f"    {operation.documentation}")
    for parameter in operation.parameters:
        marker = "[]" if parameter.is_array else ""
        type_name = f" ({parameter.type_name}{marker})" if parameter.type_name else marker
        print(f"    - {parameter.name}{type_name}")
        if parameter.value_description:
            print(f"        {parameter.value_description}")
        if parameter.example_value is not None:
            print(f"        e.g. {parameter.example_value}")
    print()
    for line in operation.sample_envelope.rstrip().splitlines():
        print(f"    {line}")
    print()


def cmd_describe(args):
    """Parse descriptors and print the operation catalog."""
    setup_logging(args.verbose)

    config = ParserConfig.from_env()
    if args.max_depth is not None:
        config.max_depth = args.max_depth

    request = ParseRequest(
        primary_source=args.url,
        additional_sources=tuple(args.source or ()),
        follow_imports=not args.no_follow_imports,
    )

    try:
        result = parse_wsdl_sync(request, config=config)
    except DescriptorError as e:
        print(f"✗ Failed to parse descriptors: {e}")
        return EXIT_FAILED

    operations = present_operations(result.operations)
    if args.operation:
        wanted = args.operation.lower()
        operations = [op for op in operations if op.name.lower() == wanted]

    if not operations:
        print("✗ No operations were discovered in the provided sources.")
        return EXIT_EMPTY

    if args.json:
        payload = {
            "operations": [operation.to_dict() for operation in operations],
            "sources": result.sources,
        }
        print(json.dumps(payload, indent=2))
        return EXIT_OK

    print(f"✓ Loaded {len(result.sources)} document(s):")
    for source in result.sources:
        print(f"  {source}")
    print()
    for operation in operations:
        print_operation(operation)
    return EXIT_OK


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="SOAP service explorer",
        prog="soap-workbench"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands"
    )

    # Describe command
    describe_parser = subparsers.add_parser(
        "describe",
        help="List the operations of a WSDL with example request envelopes"
    )
    describe_parser.add_argument(
        "url",
        nargs="?",
        help="Primary WSDL / descriptor URL"
    )
    describe_parser.add_argument(
        "--source",
        action="append",
        metavar="URL",
        help="Additional descriptor URL (repeatable)"
    )
    describe_parser.add_argument(
        "--no-follow-imports",
        action="store_true",
        help="Do not fetch imported WSDL / XSD documents"
    )
    describe_parser.add_argument(
        "--operation",
        metavar="NAME",
        help="Only show the named operation"
    )
    describe_parser.add_argument(
        "--max-depth",
        type=int,
        help="Maximum example nesting depth"
    )
    describe_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the catalog as JSON"
    )
    describe_parser.set_defaults(func=cmd_describe)

    args = parser.parse_args(argv)

    if not hasattr(args, 'func'):
        parser.print_help()
        return EXIT_FAILED

    if args.command == "describe" and not args.url and not args.source:
        describe_parser.error("provide a URL or at least one --source")

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
