"""
Output capture protocol.

A step script reports results by writing ``key=value`` lines to the file
named by its ``OUTPUT`` environment variable. The first ``=`` splits key
from value, so values may contain ``=``. Blank lines are ignored. A missing
file means the step produced no outputs.
"""

import logging
from pathlib import Path
from typing import Dict, Union

from ..exceptions import MalformedOutputError

logger = logging.getLogger(__name__)

OUTPUT_ENV_VAR = "OUTPUT"
OUTPUT_FILE_NAME = "outputs.env"
INPUT_ENV_PREFIX = "INPUT_"


def input_env_name(name: str) -> str:
    """Environment variable carrying the value of a declared input."""
    return f"{INPUT_ENV_PREFIX}{name}"


def parse_outputs(text: str) -> Dict[str, str]:
    """
    Parse captured output text into key/value pairs.

    Later lines win when a key repeats.

    Raises:
        MalformedOutputError: A non-blank line has no '=' delimiter
    """
    outputs: Dict[str, str] = {}
    for number, line in enumerate(text.split('\n'), start=1):
        line = line.rstrip('\r')
        if not line:
            continue
        key, sep, value = line.partition('=')
        if not sep:
            raise MalformedOutputError(line, number)
        outputs[key] = value
    return outputs


def read_outputs(path: Union[str, Path]) -> Dict[str, str]:
    """Read and parse an output capture file; a missing file yields no outputs."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        logger.debug(f"No output file written at {path}")
        return {}
    return parse_outputs(raw.decode('utf-8', errors='replace'))
