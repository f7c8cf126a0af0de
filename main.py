from rich.pretty import pprint

from sargent import *


@schema(shell=True)
class Args:
    help: bool = field("h")
    name: str = field("n", env="NAME", default="world")
    times: int = field("t", default=1, policy=Policy.DISCARD)
    tags: list[str] = field(env="TAGS", policy=Policy.KEEP)


if __name__ == '__main__':
    args, remainder = Args.parse_process()
    pprint(args)
    pprint(remainder)
