import logging
import os
from pathlib import Path

logger = logging.getLogger("promptsync")

try:
    USER_DATA_PATH = Path(os.path.expanduser("~")) / ".promptsync"
except (KeyError, RuntimeError):
    USER_DATA_PATH = Path(os.path.abspath(os.getcwd())) / ".promptsync"

LEARNED_DICTIONARY_FILE = USER_DATA_PATH / "learned_dictionary.json"
