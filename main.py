"""
Командная строка для архиватора Хаффмана.
"""

import argparse
import io
import sys
from archiver import Archiver


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Huffman Compressor / Archiver',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py compress book.txt book.huf --stats
  python main.py decompress book.huf book.txt
  cat book.txt | python main.py compress - - > book.huf
  python main.py create -o archive.hufa file1.txt file2.txt
  python main.py extract archive.hufa -d ./output
  python main.py list archive.hufa
  python main.py add archive.hufa file3.txt
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command')

    compress_parser = subparsers.add_parser('compress', help='Compress a single file')
    compress_parser.add_argument('input', help="Input file ('-' for stdin)")
    compress_parser.add_argument('output', help="Output file ('-' for stdout)")
    compress_parser.add_argument('--stats', action='store_true', help='Print compression statistics')

    decompress_parser = subparsers.add_parser('decompress', help='Decompress a single file')
    decompress_parser.add_argument('input', help="Input file ('-' for stdin)")
    decompress_parser.add_argument('output', help="Output file ('-' for stdout)")

    create_parser = subparsers.add_parser('create', help='Create archive')
    create_parser.add_argument('files', nargs='+', help='Files to archive')
    create_parser.add_argument('-o', '--output', required=True, help='Archive path')

    extract_parser = subparsers.add_parser('extract', help='Extract archive')
    extract_parser.add_argument('archive', help='Archive path')
    extract_parser.add_argument('-d', '--dir', default='.', help='Output directory')

    list_parser = subparsers.add_parser('list', help='List archive contents')
    list_parser.add_argument('archive', help='Archive path')

    add_parser = subparsers.add_parser('add', help='Add files to archive')
    add_parser.add_argument('archive', help='Archive path')
    add_parser.add_argument('files', nargs='+', help='Files to add')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    archiver = Archiver()

    try:
        if args.command == 'compress':
            stats = _compress(archiver, args.input, args.output)
            if args.stats:
                # stdout может быть занят сжатыми данными
                out = sys.stderr if args.output == '-' else sys.stdout
                stats.print_stats(file=out)

        elif args.command == 'decompress':
            _decompress(archiver, args.input, args.output)

        elif args.command == 'create':
            archiver.create_archive(args.files, args.output)

        elif args.command == 'extract':
            if not archiver.extract_archive(args.archive, args.dir):
                return 1

        elif args.command == 'list':
            if not archiver.list_archive(args.archive):
                return 1

        elif args.command == 'add':
            if not archiver.add_files(args.archive, args.files):
                return 1

    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


def _compress(archiver: Archiver, input_path: str, output_path: str):
    if input_path == '-':
        # два прохода требуют перемотки, stdin читается целиком
        source = io.BytesIO(sys.stdin.buffer.read())
    else:
        source = open(input_path, 'rb')

    with source:
        if output_path == '-':
            stats = archiver.compress_stream(source, sys.stdout.buffer)
            sys.stdout.buffer.flush()
            return stats
        with open(output_path, 'wb') as target:
            return archiver.compress_stream(source, target)


def _decompress(archiver: Archiver, input_path: str, output_path: str):
    source = sys.stdin.buffer if input_path == '-' else open(input_path, 'rb')
    try:
        if output_path == '-':
            count = archiver.decompress_stream(source, sys.stdout.buffer)
            sys.stdout.buffer.flush()
            return count
        with open(output_path, 'wb') as target:
            return archiver.decompress_stream(source, target)
    finally:
        if source is not sys.stdin.buffer:
            source.close()


if __name__ == '__main__':
    sys.exit(main())
