"""
Resolution of input and output specifications into optimization tasks.

Inputs are a single PNG file, a list of files, or a directory (searched
recursively on request). Outputs are one of five variants:

- Identity: overwrite every input in place
- FixedPath: a single output file, only valid for a single input
- PathList: one output path per input
- Directory: outputs go under a directory, mirroring the input tree
- MappingFunction: a callable mapping each input path to its output path
"""
import os
import re
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from tinyimg.config import PNG_PATTERN
from tinyimg.core.errors import ValidationError
from tinyimg.models.task import Task
from tinyimg.utils.file_handling import ensure_parent_dir

# Set up logging
logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

_png_name = re.compile(PNG_PATTERN)


@dataclass(frozen=True)
class Identity:
    """Write each output over its input"""


@dataclass(frozen=True)
class FixedPath:
    path: Path


@dataclass(frozen=True)
class PathList:
    paths: Tuple[Path, ...]


@dataclass(frozen=True)
class Directory:
    path: Path


@dataclass(frozen=True)
class MappingFunction:
    fn: Callable[[Path], PathLike]


OutputSpec = Union[Identity, FixedPath, PathList, Directory, MappingFunction]
OUTPUT_VARIANTS = (Identity, FixedPath, PathList, Directory, MappingFunction)
IDENTITY = Identity()


def as_output_spec(output, input_is_dir: bool = False) -> OutputSpec:
    """
    Lift a loose output argument into an output variant.

    Args:
        output: None, a variant, a callable, a list/tuple of paths, or a path
        input_is_dir: Whether the input is a directory; a plain path output is
            then always treated as a target directory

    Returns:
        The matching output variant
    """
    if isinstance(output, OUTPUT_VARIANTS):
        if input_is_dir and isinstance(output, FixedPath):
            return Directory(output.path)
        return output
    if output is None:
        return IDENTITY
    if isinstance(output, (str, os.PathLike)):
        text = os.fspath(output)
        if input_is_dir or os.path.isdir(text) or text.endswith(("/", os.sep)):
            return Directory(Path(text))
        return FixedPath(Path(text))
    if callable(output):
        return MappingFunction(output)
    if isinstance(output, (list, tuple)):
        return PathList(tuple(Path(p) for p in output))
    raise ValidationError(f"output: unsupported type {type(output).__name__}")


def is_png_name(name: str) -> bool:
    return _png_name.search(name) is not None


def find_pngs(root: Path, recursive: bool = True) -> List[Path]:
    """
    List PNG and APNG files under a directory in a stable order.

    Args:
        root: Directory to search
        recursive: Whether to descend into subdirectories

    Returns:
        Sorted list of file paths (sorted by their path relative to root)
    """
    candidates = root.rglob("*") if recursive else root.iterdir()
    found = [p for p in candidates if p.is_file() and is_png_name(p.name)]
    return sorted(found, key=lambda p: p.relative_to(root).as_posix())


def resolve_inputs(input_spec, recursive: bool = True) -> Tuple[List[Path], Optional[Path]]:
    """
    Expand the input specification into source files.

    Returns:
        Tuple of (sources, root) where root is the input directory, or None
        when explicit files were given

    Raises:
        ValidationError: listing every missing or non-file source
    """
    if isinstance(input_spec, (str, os.PathLike)):
        single = Path(input_spec)
        if single.is_dir():
            sources = find_pngs(single, recursive)
            logger.debug(f"Found {len(sources)} PNG file(s) in {single}")
            return sources, single
        paths = [single]
    else:
        paths = [Path(p) for p in input_spec]

    problems = []
    for path in paths:
        if not path.exists():
            problems.append(f"Input file does not exist: {path}")
        elif not path.is_file():
            problems.append(f"Input is not a regular file: {path}")
    if problems:
        raise ValidationError(problems)
    return paths, None


def _mapped(fn, source: Path) -> Path:
    result = fn(source)
    if not isinstance(result, (str, os.PathLike)):
        raise ValidationError(
            f"output function returned {type(result).__name__} for {source}, expected a path"
        )
    return Path(result)


def resolve_outputs(sources: Sequence[Path], spec: OutputSpec, root: Optional[Path] = None) -> List[Path]:
    """
    Compute one destination per source for an output variant.

    Args:
        sources: Resolved source files
        spec: Output variant
        root: Input directory the sources were found in, if any

    Raises:
        ValidationError: If the output cannot provide one path per source
    """
    if isinstance(spec, Identity):
        return list(sources)
    if isinstance(spec, FixedPath):
        if len(sources) > 1:
            raise ValidationError(
                f"output is a single path ({spec.path}) but {len(sources)} input files were given; "
                f"use a directory, a list of {len(sources)} paths or a function"
            )
        return [spec.path for _ in sources]
    if isinstance(spec, PathList):
        if len(spec.paths) != len(sources):
            raise ValidationError(
                f"output has {len(spec.paths)} path(s) but {len(sources)} input file(s) were given"
            )
        return list(spec.paths)
    if isinstance(spec, Directory):
        if root is not None:
            return [spec.path / source.relative_to(root) for source in sources]
        return [spec.path / source.name for source in sources]
    if isinstance(spec, MappingFunction):
        return [_mapped(spec.fn, source) for source in sources]
    raise TypeError(f"Unknown output specification: {spec!r}")


def _check_distinct(destinations: Sequence[Path]) -> None:
    seen = {}
    duplicates = []
    for dest in destinations:
        key = os.path.normcase(os.path.abspath(dest))
        if key in seen and seen[key] == 1:
            duplicates.append(f"Output path is used more than once: {dest}")
        seen[key] = seen.get(key, 0) + 1
    if duplicates:
        raise ValidationError(duplicates)


def resolve(input_spec, output_spec=IDENTITY, recursive: bool = True) -> List[Task]:
    """
    Turn input and output specifications into an ordered list of tasks.

    All validation happens before anything is created on disk. On return,
    the parent directory of every destination exists.

    Args:
        input_spec: A file path, a list of file paths, or a directory
        output_spec: An output variant or a loose value accepted by as_output_spec
        recursive: Whether a directory input is searched recursively

    Returns:
        Tasks in input order; empty if no sources were found

    Raises:
        ValidationError: For missing inputs or an output that does not fit them
        OptimizationIOError: If a destination directory cannot be created
    """
    sources, root = resolve_inputs(input_spec, recursive)
    spec = as_output_spec(output_spec, input_is_dir=root is not None)
    destinations = resolve_outputs(sources, spec, root)
    if len(destinations) != len(sources):
        raise ValidationError(
            f"Resolved {len(destinations)} output path(s) for {len(sources)} input file(s)"
        )
    _check_distinct(destinations)

    for destination in destinations:
        ensure_parent_dir(destination)

    return [Task(source, destination) for source, destination in zip(sources, destinations)]
