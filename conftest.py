"""Collect the Markdown pages under ``docs/`` as doctests."""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

import numpy as np
from sybil import Sybil
from sybil.parsers.markdown import PythonCodeBlockParser, SkipParser

import op_algebra

DOCS = Path(__file__).parent / "docs"


def setup_page(namespace: dict[str, Any]) -> None:
    """Run each page in a scratch directory with ``np`` and ``op_algebra`` bound."""
    namespace["_cwd"] = Path.cwd()
    namespace["_scratch"] = tempfile.mkdtemp(prefix="op_algebra-docs-")
    os.chdir(namespace["_scratch"])
    namespace.setdefault("np", np)
    namespace.setdefault("op_algebra", op_algebra)


def teardown_page(namespace: dict[str, Any]) -> None:
    """Return to the original directory and remove the scratch directory."""
    os.chdir(namespace.pop("_cwd"))
    shutil.rmtree(namespace.pop("_scratch"), ignore_errors=True)


pytest_collect_file = Sybil(
    parsers=[PythonCodeBlockParser(), SkipParser()],
    path=str(DOCS),
    pattern="**/*.md",
    setup=setup_page,
    teardown=teardown_page,
).pytest()
