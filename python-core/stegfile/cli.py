#!/usr/bin/env python3
"""
StegFile Command Line Interface

Hide a short message at the end of a media file and read it back.

Usage:
    stegfile encode --carrier FILE --key KEY (--message TEXT | --message-file FILE)
    stegfile decode --carrier FILE --key KEY
    stegfile inspect --carrier FILE
    stegfile strip --carrier FILE --output FILE
    stegfile --version
    stegfile --help
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import StegoConfig, configure_logging
from .errors import StegFileError
from .payload import RecordFormat
from .steganography import MediaKind, StegFileManager


class StegFileCLI:
    """Main CLI application for StegFile."""

    def __init__(self, config: Optional[StegoConfig] = None):
        self.config = config or StegoConfig()
        self.manager = StegFileManager(self.config)

    def run(self, args: List[str]) -> int:
        """Run the CLI with given arguments and return the exit status."""
        parser = self.create_parser()
        parsed = parser.parse_args(args)

        if parsed.verbose or parsed.log_file:
            configure_logging("DEBUG" if parsed.verbose else self.config.log_level, parsed.log_file)

        if hasattr(parsed, 'func'):
            try:
                return parsed.func(parsed)
            except (StegFileError, OSError, UnicodeDecodeError) as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1
        else:
            parser.print_help()
            return 0

    def create_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser."""
        parser = argparse.ArgumentParser(
            prog="stegfile",
            description="Hide short messages in image, audio and video files",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
    stegfile encode --carrier photo.png --message "meet at noon" --key k1
    stegfile decode --carrier encoded_photo.png --key k1
    stegfile inspect --carrier encoded_photo.png --json
    stegfile strip --carrier encoded_photo.png --output photo.png
            """
        )

        parser.add_argument(
            '--version',
            action='version',
            version=f'StegFile v{__version__}'
        )
        parser.add_argument('--verbose', '-v', action='store_true',
                            help='Log progress to stderr')
        parser.add_argument('--log-file', help='Also write log records to this file')

        subparsers = parser.add_subparsers(title='commands', dest='command')

        self.add_encode_command(subparsers)
        self.add_decode_command(subparsers)
        self.add_inspect_command(subparsers)
        self.add_strip_command(subparsers)

        return parser

    def add_encode_command(self, subparsers):
        """Add encode command to parser."""
        cmd = subparsers.add_parser('encode', help='Hide a message in a carrier file')
        cmd.add_argument('--carrier', '-c', required=True, help='Carrier file')
        group = cmd.add_mutually_exclusive_group(required=True)
        group.add_argument('--message', '-m', help='Message text')
        group.add_argument('--message-file', help='Read the message from a UTF-8 text file')
        cmd.add_argument('--key', '-k', required=True, help='Key (1-8 letters or digits)')
        cmd.add_argument('--output', '-o',
                         help='Output file (default: encoded_<carrier name>)')
        cmd.add_argument('--type', '-t', dest='media_kind',
                         choices=['image', 'audio', 'video'],
                         help='Only accept carriers of this kind')
        cmd.add_argument('--format', '-f', dest='record_format',
                         choices=[fmt.value for fmt in RecordFormat],
                         help='Record format (default: %s)' % self.config.record_format.value)
        cmd.set_defaults(func=self.handle_encode)

    def add_decode_command(self, subparsers):
        """Add decode command to parser."""
        cmd = subparsers.add_parser('decode', help='Reveal a hidden message')
        cmd.add_argument('--carrier', '-c', required=True, help='Encoded file')
        cmd.add_argument('--key', '-k', required=True, help='Key used at encode time')
        cmd.add_argument('--output', '-o', help='Write the message to this file')
        cmd.set_defaults(func=self.handle_decode)

    def add_inspect_command(self, subparsers):
        """Add inspect command to parser."""
        cmd = subparsers.add_parser('inspect', help='Describe an embedded record')
        cmd.add_argument('--carrier', '-c', required=True, help='Encoded file')
        cmd.add_argument('--json', action='store_true', help='Output as JSON')
        cmd.set_defaults(func=self.handle_inspect)

    def add_strip_command(self, subparsers):
        """Add strip command to parser."""
        cmd = subparsers.add_parser('strip', help='Remove appended records')
        cmd.add_argument('--carrier', '-c', required=True, help='Encoded file')
        cmd.add_argument('--output', '-o', required=True, help='Output file')
        cmd.set_defaults(func=self.handle_strip)

    # Command handlers

    def handle_encode(self, args) -> int:
        """Handle encode command."""
        if args.message_file:
            message = Path(args.message_file).read_text(encoding='utf-8')
        else:
            message = args.message

        carrier = Path(args.carrier)
        expected = MediaKind(args.media_kind) if args.media_kind else None
        fmt = RecordFormat(args.record_format) if args.record_format else None

        result = self.manager.encode(
            carrier.read_bytes(), message, args.key,
            filename=carrier.name, expected_kind=expected, record_format=fmt,
        )
        out = Path(args.output) if args.output else self.manager.default_output_path(carrier)
        out.write_bytes(result.data)
        result.output_path = str(out)

        print(f"Message hidden in {out} ({result.media_type}, +{result.payload_size} bytes)")
        return 0

    def handle_decode(self, args) -> int:
        """Handle decode command."""
        result = self.manager.decode_file(args.carrier, args.key)
        if args.output:
            Path(args.output).write_text(result.message, encoding='utf-8')
            print(f"Message written to {args.output}")
        else:
            print(result.message)
        return 0

    def handle_inspect(self, args) -> int:
        """Handle inspect command."""
        info = self.manager.inspect(Path(args.carrier).read_bytes())
        if args.json:
            print(json.dumps(info.to_dict(), indent=2))
        else:
            print(f"Format:      {info.record_format.value}")
            print(f"Key hash:    {info.key_hash}")
            print(f"Message:     {info.ciphertext_size} bytes")
            print(f"Record:      {info.record_size} bytes")
            print(f"Host:        {info.host_size} bytes")
        return 0

    def handle_strip(self, args) -> int:
        """Handle strip command."""
        data = Path(args.carrier).read_bytes()
        host = self.manager.strip(data)
        Path(args.output).write_bytes(host)
        print(f"Removed {len(data) - len(host)} bytes, wrote {args.output}")
        return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    cli = StegFileCLI()
    sys.exit(cli.run(sys.argv[1:] if argv is None else argv))


if __name__ == "__main__":
    main()
