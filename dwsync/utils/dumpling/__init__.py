from .dump_runner import DumplingRunner, parse_progress

__all__ = ['DumplingRunner', 'parse_progress']
