import os


class LamportParams:
    def __init__(self, workers: int = None, prefix_len: int = 27, suffix_len: int = 29,
                 deadline: float = None, poll_interval: float = 0.05):
        self.n = 32
        """消息摘要位数, 每一位对应一对私钥块"""
        self.bits = 8 * self.n

        if workers is None:
            workers = os.cpu_count() or 1
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        if prefix_len < 0 or suffix_len < 0:
            raise ValueError("prefix and suffix lengths must be non-negative")

        self.workers = workers
        self.prefix_len = prefix_len
        self.suffix_len = suffix_len
        self.deadline = deadline
        self.poll_interval = poll_interval

    @classmethod
    def from_args(cls, args):
        """由命令行参数构造"""
        return cls(workers=args.workers,
                   prefix_len=args.prefix_len,
                   suffix_len=args.suffix_len,
                   deadline=args.deadline)
