import argparse


def args_parser(argv=None):
    parser = argparse.ArgumentParser(description="Lamport one-time signatures and key-reuse forgery")

    parser.add_argument('--workers', type=int, default=None, help='number of search workers (default: cpu count)')
    parser.add_argument('--prefix_len', type=int, default=27, help='random bytes before the payload')
    parser.add_argument('--suffix_len', type=int, default=29, help='random bytes after the payload')
    parser.add_argument('--deadline', type=float, default=None, help='seconds before the search is aborted')

    args = parser.parse_args(argv)

    return args
