"""Digest assembly and renderers."""
from .digest import assemble_digest, sort_work_units
from .jsonout import JSONAssembler
from .markdown import MarkdownAssembler
from .social import render_threads_digest, render_x_digest
from .splitter import number, pack, split_thread
from .writer import DigestWriter

__all__ = [
    'assemble_digest',
    'sort_work_units',
    'JSONAssembler',
    'MarkdownAssembler',
    'render_threads_digest',
    'render_x_digest',
    'number',
    'pack',
    'split_thread',
    'DigestWriter',
]
